"""FastAPI routes for candidate lifecycle and persistence control."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from api.schemas import (
    AnswerReq,
    AnswerResp,
    CandidateListResp,
    CompleteReq,
    CreateCandidateReq,
    DeleteResp,
    DraftReq,
    FlushResp,
    ReconcileResp,
    ResumeReq,
    StartReq,
    UpdateCandidateReq,
    ViewReq,
)
from candidates.models import Candidate
from candidates.store import SortBy, SortOrder
from services.sessions import InterviewRuntime
from storage.sqlite import SqlitePort


router = APIRouter(prefix="/api/candidates")
persistence_router = APIRouter(prefix="/api/persistence")

_runtime: Optional[InterviewRuntime] = None


def get_runtime() -> InterviewRuntime:
    """Process-wide runtime over the SQLite store, bootstrapped on first use."""

    global _runtime
    if _runtime is None:
        runtime = InterviewRuntime(SqlitePort())
        runtime.bootstrap()
        _runtime = runtime
    return _runtime


def set_runtime(runtime: Optional[InterviewRuntime]) -> None:
    global _runtime
    _runtime = runtime


def _require(runtime: InterviewRuntime, candidate_id: str) -> Candidate:
    candidate = runtime.get(candidate_id)
    if candidate is None:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate


def _conflict(runtime: InterviewRuntime, candidate_id: str, action: str) -> HTTPException:
    candidate = _require(runtime, candidate_id)
    return HTTPException(status_code=409, detail=f"Cannot {action} while candidate is {candidate.status}")


@router.post("", response_model=Candidate, status_code=201)
async def create_candidate(payload: CreateCandidateReq, runtime: InterviewRuntime = Depends(get_runtime)) -> Candidate:
    fields = payload.model_dump(exclude={"id"})
    candidate = runtime.create_candidate(fields, candidate_id=payload.id)
    if candidate is None:
        raise HTTPException(status_code=409, detail="Candidate id is already taken or was deleted")
    return candidate


@router.post("/from-resume", response_model=Candidate, status_code=201)
async def create_from_resume(payload: ResumeReq, runtime: InterviewRuntime = Depends(get_runtime)) -> Candidate:
    candidate = runtime.create_from_resume(payload.resume_text, payload.file_name, candidate_id=payload.id)
    if candidate is None:
        raise HTTPException(status_code=409, detail="Candidate id is already taken or was deleted")
    return candidate


@router.get("", response_model=CandidateListResp)
async def list_candidates(
    search: Optional[str] = None,
    sort_by: Optional[SortBy] = None,
    sort_order: Optional[SortOrder] = None,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> CandidateListResp:
    return CandidateListResp(
        candidates=runtime.listing(search, sort_by, sort_order),
        unfinished=[c.id for c in runtime.unfinished()],
    )


@router.put("/view", response_model=CandidateListResp)
async def update_view(payload: ViewReq, runtime: InterviewRuntime = Depends(get_runtime)) -> CandidateListResp:
    if payload.search_term is not None:
        runtime.search(payload.search_term)
    if payload.sort_by is not None or payload.sort_order is not None:
        runtime.sort(payload.sort_by or runtime.store.view.sort_by, payload.sort_order)
    return CandidateListResp(
        candidates=runtime.listing(),
        unfinished=[c.id for c in runtime.unfinished()],
    )


@router.get("/{candidate_id}", response_model=Candidate)
async def get_candidate(candidate_id: str, runtime: InterviewRuntime = Depends(get_runtime)) -> Candidate:
    return _require(runtime, candidate_id)


@router.patch("/{candidate_id}", response_model=Candidate)
async def update_candidate(
    candidate_id: str,
    payload: UpdateCandidateReq,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> Candidate:
    _require(runtime, candidate_id)
    candidate = runtime.update_candidate(candidate_id, payload.model_dump(exclude_unset=True))
    if candidate is None:
        raise _conflict(runtime, candidate_id, "update")
    return candidate


@router.post("/{candidate_id}/start", response_model=Candidate)
async def start_interview(
    candidate_id: str,
    payload: Optional[StartReq] = None,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> Candidate:
    _require(runtime, candidate_id)
    questions = payload.questions if payload is not None else None
    candidate = runtime.start_interview(candidate_id, questions)
    if candidate is None:
        raise _conflict(runtime, candidate_id, "start the interview")
    return candidate


@router.post("/{candidate_id}/answer", response_model=AnswerResp)
async def answer_question(
    candidate_id: str,
    payload: AnswerReq,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> AnswerResp:
    _require(runtime, candidate_id)
    result = runtime.submit(candidate_id, payload.question_id, payload.answer, payload.selected_answer)
    if not result.applied:
        raise HTTPException(status_code=409, detail="Question is not the current question of a running interview")
    outcome = result.outcome
    return AnswerResp(
        applied=True,
        completed=result.completed,
        score=outcome.score if outcome else None,
        feedback=outcome.feedback if outcome else "",
        fallback_applied=outcome.fallback_applied if outcome else False,
        notice=outcome.notice if outcome else None,
        candidate=result.candidate,
    )


@router.put("/{candidate_id}/draft")
async def save_draft(
    candidate_id: str,
    payload: DraftReq,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    _require(runtime, candidate_id)
    if payload.selected_option is not None:
        saved = runtime.record_selection(candidate_id, payload.selected_option)
    else:
        saved = runtime.record_text(candidate_id, payload.text or "")
    return {"saved": saved, "draft": runtime.draft_for(candidate_id)}


@router.post("/{candidate_id}/pause", response_model=Candidate)
async def pause_interview(candidate_id: str, runtime: InterviewRuntime = Depends(get_runtime)) -> Candidate:
    _require(runtime, candidate_id)
    candidate = runtime.pause(candidate_id)
    if candidate is None:
        raise _conflict(runtime, candidate_id, "pause")
    return candidate


@router.post("/{candidate_id}/resume", response_model=Candidate)
async def resume_interview(candidate_id: str, runtime: InterviewRuntime = Depends(get_runtime)) -> Candidate:
    _require(runtime, candidate_id)
    candidate = runtime.resume(candidate_id)
    if candidate is None:
        raise _conflict(runtime, candidate_id, "resume")
    return candidate


@router.post("/{candidate_id}/complete", response_model=Candidate)
async def complete_interview(
    candidate_id: str,
    payload: Optional[CompleteReq] = None,
    runtime: InterviewRuntime = Depends(get_runtime),
) -> Candidate:
    _require(runtime, candidate_id)
    summary = payload.summary if payload is not None else None
    return runtime.complete(candidate_id, summary)


@router.delete("/{candidate_id}", response_model=DeleteResp)
async def delete_candidate(candidate_id: str, runtime: InterviewRuntime = Depends(get_runtime)) -> DeleteResp:
    purged = runtime.delete(candidate_id)
    return DeleteResp(candidate_id=candidate_id, purged=purged)


@persistence_router.post("/flush", response_model=FlushResp)
async def flush(runtime: InterviewRuntime = Depends(get_runtime)) -> FlushResp:
    return FlushResp(ok=runtime.flush_now())


@persistence_router.get("/debug")
async def debug_dump(runtime: InterviewRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return runtime.debug_dump()


@persistence_router.post("/reconcile", response_model=ReconcileResp)
async def run_reconcile(runtime: InterviewRuntime = Depends(get_runtime)) -> ReconcileResp:
    report = runtime.reconcile()
    return ReconcileResp(**report.model_dump())


__all__ = ["get_runtime", "persistence_router", "router", "set_runtime"]
