"""Pydantic schemas for the candidate and persistence API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from candidates.models import CamelModel, Candidate, CandidateFields, InterviewSummary, Question
from candidates.store import SortBy, SortOrder


class CreateCandidateReq(CandidateFields):
    id: Optional[str] = None


class UpdateCandidateReq(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    skills: Optional[List[str]] = None
    resume_text: Optional[str] = None
    file_name: Optional[str] = None


class StartReq(CamelModel):
    questions: Optional[List[Question]] = None


class AnswerReq(CamelModel):
    question_id: str
    answer: str = ""
    selected_answer: Optional[int] = None


class DraftReq(CamelModel):
    text: Optional[str] = None
    selected_option: Optional[int] = None


class CompleteReq(CamelModel):
    summary: Optional[InterviewSummary] = None


class AnswerResp(CamelModel):
    applied: bool
    completed: bool = False
    score: Optional[int] = None
    feedback: str = ""
    fallback_applied: bool = False
    notice: Optional[str] = None
    candidate: Optional[Candidate] = None


class CandidateListResp(CamelModel):
    candidates: List[Candidate] = Field(default_factory=list)
    unfinished: List[str] = Field(default_factory=list)


class DeleteResp(CamelModel):
    candidate_id: str
    purged: bool


class FlushResp(CamelModel):
    ok: bool


class ReconcileResp(CamelModel):
    inserted: List[str] = Field(default_factory=list)
    replaced: List[str] = Field(default_factory=list)
    kept: List[str] = Field(default_factory=list)
    skipped_tombstoned: List[str] = Field(default_factory=list)
    decode_failures: List[str] = Field(default_factory=list)


class ResumeReq(CamelModel):
    resume_text: str
    file_name: str = ""
    id: Optional[str] = None


class ViewReq(CamelModel):
    search_term: Optional[str] = None
    sort_by: Optional[SortBy] = None
    sort_order: Optional[SortOrder] = None
