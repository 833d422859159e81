"""Candidate domain models shared by the lifecycle engine and the snapshot codec."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Status = Literal["info_collection", "interview", "paused", "completed"]
Difficulty = Literal["Easy", "Medium", "Hard"]

DIFFICULTY_CAPS: Dict[str, int] = {"Easy": 10, "Medium": 20, "Hard": 30}
DIFFICULTY_SECONDS: Dict[str, int] = {"Easy": 20, "Medium": 60, "Hard": 120}

ACTIVE_STATUSES = ("interview", "paused")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _list_or_empty(value: Any) -> Any:
    return value if isinstance(value, list) else []


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Question(CamelModel):  # Interview question with its answer slot
    id: str = Field(default_factory=lambda: uuid4().hex)
    question: str
    difficulty: Difficulty
    time: int = 0
    options: Optional[List[str]] = None
    correct_answer: Optional[int] = None
    explanation: Optional[str] = None

    answer: str = ""
    selected_answer: Optional[int] = None
    score: Optional[int] = None
    feedback: str = ""
    answered_at: Optional[datetime] = None

    @field_validator("answer", "feedback", mode="before")
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("answered_at", mode="after")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value else value

    @model_validator(mode="after")
    def _default_time(self) -> "Question":
        if not self.time:
            self.time = DIFFICULTY_SECONDS[self.difficulty]
        return self

    @property
    def cap(self) -> int:
        return DIFFICULTY_CAPS[self.difficulty]

    @property
    def is_multiple_choice(self) -> bool:
        return bool(self.options)


class InterviewSummary(CamelModel):  # Structured result attached on completion
    overall_rating: str = ""
    recommendation: str = ""
    summary: str = ""
    technical_strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    key_highlights: List[str] = Field(default_factory=list)
    final_score: Optional[int] = None
    max_score: Optional[int] = None


class ChatMessage(CamelModel):  # Informational transcript entry
    id: str = Field(default_factory=lambda: uuid4().hex)
    type: str = "system"
    text: str = ""
    sender: str = "assistant"
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class CandidateFields(CamelModel):
    """Flat field struct produced by the resume extraction collaborator."""

    name: str = ""
    email: str = ""
    phone: str = ""
    skills: List[str] = Field(default_factory=list)
    resume_text: str = ""
    file_name: str = ""


class Candidate(CamelModel):
    """One interview attempt by one person."""

    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    skills: List[str] = Field(default_factory=list)
    resume_text: str = ""
    file_name: str = ""

    status: Status = "info_collection"
    questions: List[Question] = Field(default_factory=list)
    current_question_index: int = 0
    total_score: int = 0
    max_score: int = 0

    interview_started_at: Optional[datetime] = None
    interview_completed_at: Optional[datetime] = None
    summary: Optional[InterviewSummary] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    restored_at: Optional[datetime] = None

    chat_history: List[ChatMessage] = Field(default_factory=list)

    @field_validator("questions", "chat_history", "skills", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @field_validator(
        "interview_started_at",
        "interview_completed_at",
        "created_at",
        "updated_at",
        "restored_at",
        mode="after",
    )
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value else value

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def question_by_id(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    def score_sum(self) -> int:
        return sum(q.score or 0 for q in self.questions)

    def cap_sum(self) -> int:
        return sum(q.cap for q in self.questions)


__all__ = [
    "ACTIVE_STATUSES",
    "DIFFICULTY_CAPS",
    "DIFFICULTY_SECONDS",
    "Candidate",
    "CandidateFields",
    "ChatMessage",
    "Difficulty",
    "InterviewSummary",
    "Question",
    "Status",
    "as_utc",
    "utcnow",
]
