"""Candidate lifecycle transitions.

Every public transition has the shape ``(store, ...) -> store'`` and never
mutates its input. Work happens on a deep copy; if the transition hits a
missing candidate or a malformed payload the original store object is returned
unchanged, so callers detect a no-op with ``new_store is store``.

State flow::

    info_collection --start_interview--> interview
    interview --pause--> paused --resume--> interview
    interview --next_question past last index | complete_interview--> completed

``completed`` is terminal; only deletion removes it.
"""
from __future__ import annotations

import functools
from datetime import datetime
from typing import Annotated, Any, Callable, Iterable, Literal, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from observability.logger import log_event

from .models import (
    Candidate,
    CandidateFields,
    ChatMessage,
    InterviewSummary,
    Question,
    utcnow,
)
from .store import CandidateStore, SortBy, SortOrder


class NotFoundError(LookupError):
    """Transition referenced a candidate or question that is not in the store."""


class InvalidTransitionError(ValueError):
    """Transition is not allowed from the candidate's current status."""


class ManualAnswer(BaseModel):
    """Answer submitted by the candidate; ``score`` is filled in by the scorer."""

    kind: Literal["manual"] = "manual"
    question_id: str
    answer: str = ""
    selected_answer: Optional[int] = None
    score: Optional[int] = None
    feedback: str = ""


class ExpiredAnswer(BaseModel):
    """Clock expiry on an unanswered question; supplies the empty-submission defaults."""

    kind: Literal["expired"] = "expired"
    question_id: str
    generation: int = 0


AnswerEvent = Annotated[Union[ManualAnswer, ExpiredAnswer], Field(discriminator="kind")]

EXPIRED_TEXT_FEEDBACK = "Time expired with no answer provided."
EXPIRED_CHOICE_FEEDBACK = "Time expired with no answer selected."


def _candidate_ref(args: tuple, kwargs: dict) -> str:
    if args and isinstance(args[0], str):
        return args[0]
    return str(kwargs.get("candidate_id", "-"))


def transition(fn: Callable[..., None]) -> Callable[..., CandidateStore]:
    """Run ``fn`` against a deep copy of the store, absorbing failures as no-ops."""

    @functools.wraps(fn)
    def wrapper(store: CandidateStore, *args: Any, **kwargs: Any) -> CandidateStore:
        draft = store.model_copy(deep=True)
        try:
            fn(draft, *args, **kwargs)
        except (NotFoundError, InvalidTransitionError, ValueError, TypeError) as exc:
            log_event(
                "transition_noop",
                _candidate_ref(args, kwargs),
                op=fn.__name__,
                reason=f"{type(exc).__name__}: {exc}",
            )
            return store
        return draft

    return wrapper


def _require(store: CandidateStore, candidate_id: str) -> Candidate:
    candidate = store.find(candidate_id)
    if candidate is None:
        raise NotFoundError(f"candidate {candidate_id!r} not found")
    return candidate


def _require_mutable(store: CandidateStore, candidate_id: str) -> Candidate:
    candidate = _require(store, candidate_id)
    if candidate.status == "completed":
        raise InvalidTransitionError("completed candidates are immutable")
    return candidate


# ---------------------------------------------------------------------------
# Candidate creation and info collection
# ---------------------------------------------------------------------------


@transition
def create_candidate(
    store: CandidateStore,
    fields: Union[CandidateFields, Mapping[str, Any]],
    *,
    candidate_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Insert a new candidate in ``info_collection`` and make it the active one."""

    info = fields if isinstance(fields, CandidateFields) else CandidateFields.model_validate(fields)
    new_id = candidate_id or str(uuid4())
    if store.find(new_id) is not None or store.is_tombstoned(new_id):
        raise InvalidTransitionError(f"candidate id {new_id!r} is already taken")
    stamp = now or utcnow()
    store.candidates.append(
        Candidate(id=new_id, **info.model_dump(), created_at=stamp, updated_at=stamp)
    )
    store.view.active_candidate_id = new_id
    log_event("candidate_created", new_id, name=info.name)


@transition
def update_candidate(
    store: CandidateStore,
    candidate_id: str,
    fields: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> None:
    candidate = _require_mutable(store, candidate_id)
    changes = CandidateFields.model_validate(dict(fields)).model_dump(exclude_unset=True)
    merged = {**candidate.model_dump(include=set(CandidateFields.model_fields)), **changes}
    info = CandidateFields.model_validate(merged)
    for key, value in info.model_dump().items():
        setattr(candidate, key, value)
    candidate.updated_at = now or utcnow()


@transition
def add_chat_message(
    store: CandidateStore,
    candidate_id: str,
    message: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> None:
    candidate = _require_mutable(store, candidate_id)
    stamp = now or utcnow()
    entry = ChatMessage.model_validate({**dict(message), "timestamp": stamp})
    candidate.chat_history.append(entry)
    candidate.updated_at = stamp


# ---------------------------------------------------------------------------
# Interview progression
# ---------------------------------------------------------------------------


@transition
def start_interview(
    store: CandidateStore,
    candidate_id: str,
    questions: Iterable[Union[Question, Mapping[str, Any]]],
    *,
    now: Optional[datetime] = None,
) -> None:
    """Assign questions and move the candidate into ``interview``.

    Re-assigning questions to an interview that is already underway is only
    allowed before any progress was made, so the question index never moves
    backwards.
    """

    candidate = _require_mutable(store, candidate_id)
    if candidate.is_active and (
        candidate.current_question_index > 0 or any(q.answered_at for q in candidate.questions)
    ):
        raise InvalidTransitionError("interview already in progress")

    assigned = [
        q.model_copy(deep=True) if isinstance(q, Question) else Question.model_validate(q)
        for q in questions
    ]
    if not assigned:
        raise ValueError("an interview needs at least one question")
    if len({q.id for q in assigned}) != len(assigned):
        raise ValueError("question ids must be unique")

    stamp = now or utcnow()
    candidate.questions = assigned
    candidate.status = "interview"
    candidate.current_question_index = 0
    candidate.max_score = candidate.cap_sum()
    candidate.total_score = candidate.score_sum()
    candidate.interview_started_at = stamp
    candidate.updated_at = stamp
    log_event("interview_started", candidate_id, questions=len(assigned), max_score=candidate.max_score)


@transition
def submit_answer(
    store: CandidateStore,
    candidate_id: str,
    question_id: str,
    answer: str,
    selected_answer: Optional[int],
    score: int,
    feedback: str,
    *,
    now: Optional[datetime] = None,
) -> None:
    """Record an answer and recompute ``total_score`` from every question."""

    candidate = _require_mutable(store, candidate_id)
    if not candidate.is_active:
        raise InvalidTransitionError(f"cannot answer while {candidate.status}")
    question = candidate.question_by_id(question_id)
    if question is None:
        raise NotFoundError(f"question {question_id!r} not found")
    if isinstance(score, bool) or not isinstance(score, int) or score < 0:
        raise ValueError(f"score must be a non-negative integer, got {score!r}")

    stamp = now or utcnow()
    question.answer = answer or ""
    question.selected_answer = selected_answer
    question.score = score
    question.feedback = feedback or ""
    question.answered_at = stamp
    candidate.total_score = candidate.score_sum()
    candidate.updated_at = stamp
    log_event("answer_submitted", candidate_id, question=question_id, score=score, total=candidate.total_score)


@transition
def next_question(store: CandidateStore, candidate_id: str, *, now: Optional[datetime] = None) -> None:
    """Advance to the next question, or complete the interview past the last one."""

    candidate = _require_mutable(store, candidate_id)
    if not candidate.is_active:
        raise InvalidTransitionError(f"cannot advance while {candidate.status}")
    stamp = now or utcnow()
    if candidate.current_question_index < len(candidate.questions) - 1:
        candidate.current_question_index += 1
    else:
        candidate.status = "completed"
        candidate.interview_completed_at = candidate.interview_completed_at or stamp
        log_event("interview_completed", candidate_id, total=candidate.total_score, max=candidate.max_score)
    candidate.updated_at = stamp


@transition
def complete_interview(
    store: CandidateStore,
    candidate_id: str,
    summary: Optional[Union[InterviewSummary, Mapping[str, Any]]] = None,
    *,
    now: Optional[datetime] = None,
) -> None:
    """Mark the interview completed (idempotent) and attach the summary if given."""

    candidate = _require(store, candidate_id)
    parsed = None
    if summary is not None:
        parsed = summary if isinstance(summary, InterviewSummary) else InterviewSummary.model_validate(summary)
    if candidate.status == "completed" and parsed is None:
        return
    stamp = now or utcnow()
    candidate.status = "completed"
    if parsed is not None:
        candidate.summary = parsed.model_copy(deep=True)
    candidate.interview_completed_at = candidate.interview_completed_at or stamp
    candidate.updated_at = stamp


@transition
def pause_interview(store: CandidateStore, candidate_id: str, *, now: Optional[datetime] = None) -> None:
    candidate = _require(store, candidate_id)
    if candidate.status != "interview":
        raise InvalidTransitionError(f"cannot pause from {candidate.status}")
    candidate.status = "paused"
    candidate.updated_at = now or utcnow()


@transition
def resume_interview(store: CandidateStore, candidate_id: str, *, now: Optional[datetime] = None) -> None:
    candidate = _require(store, candidate_id)
    if candidate.status != "paused":
        raise InvalidTransitionError(f"cannot resume from {candidate.status}")
    candidate.status = "interview"
    candidate.updated_at = now or utcnow()


def answer_question(
    store: CandidateStore,
    candidate_id: str,
    event: Union[ManualAnswer, ExpiredAnswer],
    *,
    now: Optional[datetime] = None,
) -> CandidateStore:
    """Single entry point for the answer boundary: submit, then advance.

    Expiry only supplies default values; both variants go through
    :func:`submit_answer` followed by :func:`next_question` on its result, so
    the score write is visible before the index moves.
    """

    candidate = store.find(candidate_id)
    current = candidate.current_question if candidate else None
    if current is None or current.id != event.question_id:
        log_event("answer_ignored", candidate_id, question=event.question_id, kind=event.kind)
        return store

    if isinstance(event, ExpiredAnswer):
        feedback = EXPIRED_CHOICE_FEEDBACK if current.is_multiple_choice else EXPIRED_TEXT_FEEDBACK
        submitted = submit_answer(store, candidate_id, current.id, "", None, 0, feedback, now=now)
    else:
        if event.score is None:
            log_event("answer_ignored", candidate_id, question=event.question_id, reason="unscored")
            return store
        submitted = submit_answer(
            store,
            candidate_id,
            current.id,
            event.answer,
            event.selected_answer,
            event.score,
            event.feedback,
            now=now,
        )
    if submitted is store:
        return store
    return next_question(submitted, candidate_id, now=now)


# ---------------------------------------------------------------------------
# Deletion and view state
# ---------------------------------------------------------------------------


@transition
def delete_candidate(store: CandidateStore, candidate_id: str) -> None:
    """Remove the record and tombstone its id, even if it is not in memory."""

    store.tombstone(candidate_id)
    store.candidates = [c for c in store.candidates if c.id != candidate_id]
    if store.view.active_candidate_id == candidate_id:
        store.view.active_candidate_id = None
    if store.view.selected_candidate_id == candidate_id:
        store.view.selected_candidate_id = None
    log_event("candidate_deleted", candidate_id, tombstones=len(store.deleted_candidate_ids))


@transition
def set_active_candidate(store: CandidateStore, candidate_id: str) -> None:
    _require(store, candidate_id)
    store.view.active_candidate_id = candidate_id


@transition
def clear_active_candidate(store: CandidateStore) -> None:
    store.view.active_candidate_id = None


@transition
def set_selected_candidate(store: CandidateStore, candidate_id: Optional[str]) -> None:
    if candidate_id is not None and store.is_tombstoned(candidate_id):
        raise NotFoundError(f"candidate {candidate_id!r} was deleted")
    store.view.selected_candidate_id = candidate_id


@transition
def set_search_term(store: CandidateStore, term: str) -> None:
    store.view.search_term = str(term)


@transition
def set_sort(store: CandidateStore, sort_by: SortBy, sort_order: Optional[SortOrder] = None) -> None:
    store.view = store.view.model_validate(
        {**store.view.model_dump(), "sort_by": sort_by, "sort_order": sort_order or store.view.sort_order}
    )


__all__ = [
    "AnswerEvent",
    "EXPIRED_CHOICE_FEEDBACK",
    "EXPIRED_TEXT_FEEDBACK",
    "ExpiredAnswer",
    "InvalidTransitionError",
    "ManualAnswer",
    "NotFoundError",
    "add_chat_message",
    "answer_question",
    "clear_active_candidate",
    "complete_interview",
    "create_candidate",
    "delete_candidate",
    "next_question",
    "pause_interview",
    "resume_interview",
    "set_active_candidate",
    "set_search_term",
    "set_selected_candidate",
    "set_sort",
    "start_interview",
    "submit_answer",
    "update_candidate",
]
