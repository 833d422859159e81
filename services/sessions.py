"""Interview runtime: lifecycle transitions wired to the clock, autosave and persistence."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel

from candidates import lifecycle
from candidates.lifecycle import ExpiredAnswer, ManualAnswer
from candidates.models import Candidate, InterviewSummary, Question, utcnow
from candidates.store import CandidateStore, SortBy, SortOrder
from observability.logger import log_event
from storage.port import PersistencePort
from storage.repository import SnapshotRepository

from .autosave import AutosaveDraft
from .backup import BackupWriter
from .countdown import QuestionTimer, TimerExpired
from .diagnostics import build_debug_report
from .flush import FlushScheduler
from .questions import generate_questions
from .reconcile import ReconcileReport, hydrate_from_primary, reconcile
from .resume import extract_fields
from .scoring import ScoreOutcome, Scorer, Summarizer, build_summary, score_answer


class ReentrantTransitionError(RuntimeError):
    """A runtime entry point was invoked while another one was still running."""


class AnswerResult(BaseModel):
    applied: bool
    candidate: Optional[Candidate] = None
    outcome: Optional[ScoreOutcome] = None
    completed: bool = False


class TickResult(BaseModel):
    expired: Optional[AnswerResult] = None
    autosaved: Optional[bool] = None
    flushed: Optional[bool] = None


class InterviewRuntime:
    """Single-threaded owner of the candidate store.

    Every public method runs to completion before the next one may start; a
    nested call from inside a running entry point raises
    :class:`ReentrantTransitionError`. Time only moves through ``now`` arguments
    and :meth:`tick`, which is what a host event loop calls periodically.
    """

    def __init__(
        self,
        port: PersistencePort,
        *,
        scorer: Optional[Scorer] = None,
        summarizer: Optional[Summarizer] = None,
        throttle_seconds: Optional[float] = None,
        settle_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        debounce_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = SnapshotRepository(port)
        self.store = CandidateStore()
        self.scorer = scorer
        self.summarizer = summarizer
        self.clock = clock
        self.writer = BackupWriter(self.repository, throttle_seconds=throttle_seconds)
        self.scheduler = FlushScheduler(
            self.writer,
            lambda: self.store,
            settle_seconds=settle_seconds,
            interval_seconds=interval_seconds,
            clock=clock,
        )
        self.timer = QuestionTimer()
        self.autosave = AutosaveDraft(self.repository, debounce_seconds=debounce_seconds)
        self.notices: List[str] = []
        self._running: Optional[str] = None

    @contextmanager
    def _exclusive(self, op: str) -> Iterator[None]:
        if self._running is not None:
            raise ReentrantTransitionError(f"{op} called while {self._running} is running")
        self._running = op
        try:
            yield
        finally:
            self._running = None

    def _now(self, now: Optional[datetime]) -> datetime:
        return now or self.clock()

    # ------------------------------------------------------------------
    # Startup and recovery
    # ------------------------------------------------------------------

    def bootstrap(self, now: Optional[datetime] = None) -> ReconcileReport:
        """Hydrate from the primary blob, then reconcile backups into it."""

        stamp = self._now(now)
        with self._exclusive("bootstrap"):
            hydrated, skipped = hydrate_from_primary(self.store, self.repository)
            merged, report = reconcile(hydrated, self.repository, stamp)
            self.store = merged
            self.writer.cleanup_old_backups(stamp)
            if report.changed or skipped:
                self.writer.flush_primary(self.store, stamp)
            active = self.store.active_candidate
            if active is not None and active.status == "interview":
                self._arm_timer(active, stamp)
        return report

    def reconcile(self, now: Optional[datetime] = None) -> ReconcileReport:
        stamp = self._now(now)
        with self._exclusive("reconcile"):
            merged, report = reconcile(self.store, self.repository, stamp)
            if merged is not self.store:
                self.store = merged
                self.writer.request_primary(self.store, stamp)
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, candidate_id: str) -> Optional[Candidate]:
        return self.store.find(candidate_id)

    def listing(
        self,
        search: Optional[str] = None,
        sort_by: Optional[SortBy] = None,
        sort_order: Optional[SortOrder] = None,
    ) -> List[Candidate]:
        """Filtered and sorted candidates; overrides apply to this call only, the stored view is untouched."""

        overrides = {"search_term": search, "sort_by": sort_by, "sort_order": sort_order}
        view = self.store.view.model_copy(update={k: v for k, v in overrides.items() if v is not None})
        return self.store.listing(view)

    def unfinished(self) -> List[Candidate]:
        return self.store.unfinished()

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        return self.timer.remaining(self._now(now))

    # ------------------------------------------------------------------
    # Candidate info
    # ------------------------------------------------------------------

    def _commit(self, updated: CandidateStore, now: datetime) -> bool:
        if updated is self.store:
            return False
        self.store = updated
        self.writer.request_primary(self.store, now)
        return True

    def create_candidate(
        self,
        fields: Mapping[str, Any],
        *,
        candidate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Candidate]:
        stamp = self._now(now)
        with self._exclusive("create_candidate"):
            updated = lifecycle.create_candidate(self.store, fields, candidate_id=candidate_id, now=stamp)
            if not self._commit(updated, stamp):
                return None
            return self.store.active_candidate

    def create_from_resume(
        self,
        resume_text: str,
        file_name: str = "",
        *,
        candidate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Candidate]:
        fields = extract_fields(resume_text, file_name)
        return self.create_candidate(fields.model_dump(), candidate_id=candidate_id, now=now)

    def update_candidate(
        self, candidate_id: str, fields: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Optional[Candidate]:
        stamp = self._now(now)
        with self._exclusive("update_candidate"):
            if not self._commit(lifecycle.update_candidate(self.store, candidate_id, fields, now=stamp), stamp):
                return None
            return self.store.find(candidate_id)

    def add_chat_message(
        self, candidate_id: str, message: Mapping[str, Any], now: Optional[datetime] = None
    ) -> bool:
        stamp = self._now(now)
        with self._exclusive("add_chat_message"):
            return self._commit(lifecycle.add_chat_message(self.store, candidate_id, message, now=stamp), stamp)

    def select(self, candidate_id: Optional[str]) -> bool:
        with self._exclusive("select"):
            return self._commit(lifecycle.set_selected_candidate(self.store, candidate_id), self.clock())

    def set_active(self, candidate_id: Optional[str]) -> bool:
        with self._exclusive("set_active"):
            if candidate_id is None:
                updated = lifecycle.clear_active_candidate(self.store)
            else:
                updated = lifecycle.set_active_candidate(self.store, candidate_id)
            return self._commit(updated, self.clock())

    def search(self, term: str) -> List[Candidate]:
        with self._exclusive("search"):
            self._commit(lifecycle.set_search_term(self.store, term), self.clock())
            return self.store.listing()

    def sort(self, sort_by: SortBy, sort_order: Optional[SortOrder] = None) -> List[Candidate]:
        with self._exclusive("sort"):
            self._commit(lifecycle.set_sort(self.store, sort_by, sort_order), self.clock())
            return self.store.listing()

    # ------------------------------------------------------------------
    # Interview flow
    # ------------------------------------------------------------------

    def _arm_timer(self, candidate: Candidate, now: datetime) -> None:
        question = candidate.current_question
        if question is None:
            self.timer.cancel()
            return
        self.timer.start(candidate.id, question.id, question.time, now)

    def start_interview(
        self,
        candidate_id: str,
        questions: Optional[Iterable[Union[Question, Mapping[str, Any]]]] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Candidate]:
        """Assign questions (generated when not given) and arm the clock for the first one."""

        stamp = self._now(now)
        with self._exclusive("start_interview"):
            candidate = self.store.find(candidate_id)
            if candidate is None:
                log_event("transition_noop", candidate_id, op="start_interview", reason="not found")
                return None
            assigned = list(questions) if questions is not None else generate_questions(candidate)
            if not self._commit(lifecycle.start_interview(self.store, candidate_id, assigned, now=stamp), stamp):
                return None
            self.store = lifecycle.set_active_candidate(self.store, candidate_id)
            started = self.store.find(candidate_id)
            self._arm_timer(started, stamp)
            return started

    def record_selection(self, candidate_id: str, option: int, now: Optional[datetime] = None) -> bool:
        stamp = self._now(now)
        with self._exclusive("record_selection"):
            candidate = self.store.find(candidate_id)
            if candidate is None or not candidate.is_active:
                return False
            return self.autosave.record_selection(candidate_id, candidate.current_question_index, option, stamp)

    def record_text(self, candidate_id: str, text: str, now: Optional[datetime] = None) -> bool:
        stamp = self._now(now)
        with self._exclusive("record_text"):
            candidate = self.store.find(candidate_id)
            if candidate is None or not candidate.is_active:
                return False
            return self.autosave.record_text(candidate_id, candidate.current_question_index, text, stamp)

    def draft_for(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        with self._exclusive("draft_for"):
            candidate = self.store.find(candidate_id)
            if candidate is None:
                return None
            entry = self.autosave.restore(candidate_id, candidate.current_question_index)
            return entry.to_wire() if entry else None

    def submit(
        self,
        candidate_id: str,
        question_id: str,
        answer: str = "",
        selected_answer: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AnswerResult:
        """Score a manual answer through the scorer and feed it into the engine."""

        stamp = self._now(now)
        with self._exclusive("submit"):
            candidate = self.store.find(candidate_id)
            current = candidate.current_question if candidate else None
            if candidate is None or current is None or current.id != question_id or candidate.status != "interview":
                log_event("answer_ignored", candidate_id, question=question_id)
                return AnswerResult(applied=False, candidate=candidate)
            outcome = score_answer(candidate_id, current, answer, selected_answer, self.scorer)
            event = ManualAnswer(
                question_id=question_id,
                answer=answer,
                selected_answer=selected_answer,
                score=outcome.score,
                feedback=outcome.feedback,
            )
            return self._apply_answer(candidate_id, event, outcome, stamp)

    def expire(self, event: TimerExpired, now: Optional[datetime] = None) -> AnswerResult:
        """Handle a clock expiry; stale generations are ignored."""

        stamp = self._now(now)
        with self._exclusive("expire"):
            return self._expire(event, stamp)

    def _expire(self, event: TimerExpired, now: datetime) -> AnswerResult:
        if not self.timer.is_current(event):
            log_event("expiry_ignored", event.candidate_id, question=event.question_id, reason="stale generation")
            return AnswerResult(applied=False, candidate=self.store.find(event.candidate_id))

        candidate = self.store.find(event.candidate_id)
        current = candidate.current_question if candidate else None
        if candidate is None or current is None or candidate.status != "interview":
            return AnswerResult(applied=False, candidate=candidate)

        draft = self.autosave.restore(candidate.id, candidate.current_question_index)
        has_text = draft is not None and bool((draft.current_answer_text or "").strip())
        if draft is not None and (draft.selected_option is not None or has_text):
            answer = draft.current_answer_text or ""
            outcome = score_answer(candidate.id, current, answer, draft.selected_option, self.scorer)
            answer_event: Union[ManualAnswer, ExpiredAnswer] = ManualAnswer(
                question_id=current.id,
                answer=answer,
                selected_answer=draft.selected_option,
                score=outcome.score,
                feedback=outcome.feedback,
            )
        else:
            outcome = None
            answer_event = ExpiredAnswer(question_id=current.id, generation=event.generation)
        log_event("question_expired", candidate.id, question=current.id, op=answer_event.kind)
        return self._apply_answer(candidate.id, answer_event, outcome, now)

    def _apply_answer(
        self,
        candidate_id: str,
        event: Union[ManualAnswer, ExpiredAnswer],
        outcome: Optional[ScoreOutcome],
        now: datetime,
    ) -> AnswerResult:
        updated = lifecycle.answer_question(self.store, candidate_id, event, now=now)
        if updated is self.store:
            return AnswerResult(applied=False, candidate=self.store.find(candidate_id), outcome=outcome)

        self.store = updated
        if outcome is not None and outcome.notice:
            self.notices.append(outcome.notice)
        self.autosave.clear()
        self.writer.on_answer_submitted(self.store, candidate_id, now)
        self.scheduler.request("answer_submitted", now)

        candidate = self.store.find(candidate_id)
        if candidate.status == "completed":
            self._finish(candidate_id, None, now)
            candidate = self.store.find(candidate_id)
        else:
            self._arm_timer(candidate, now)
        return AnswerResult(
            applied=True,
            candidate=candidate,
            outcome=outcome,
            completed=candidate.status == "completed",
        )

    def _finish(
        self,
        candidate_id: str,
        summary: Optional[Union[InterviewSummary, Mapping[str, Any]]],
        now: datetime,
    ) -> bool:
        candidate = self.store.find(candidate_id)
        if candidate is None:
            return False
        if summary is None and candidate.summary is None:
            summary = build_summary(candidate, self.summarizer)
        updated = lifecycle.complete_interview(self.store, candidate_id, summary, now=now)
        self.store = updated
        if self.timer.candidate_id == candidate_id:
            self.timer.cancel()
        self.writer.on_completed(self.store, candidate_id, now)
        self.scheduler.request("interview_completed", now)
        return self.store.find(candidate_id).status == "completed"

    def complete(
        self,
        candidate_id: str,
        summary: Optional[Union[InterviewSummary, Mapping[str, Any]]] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Candidate]:
        """Finish the interview early or attach a summary to a finished one."""

        stamp = self._now(now)
        with self._exclusive("complete"):
            if self.store.find(candidate_id) is None:
                log_event("transition_noop", candidate_id, op="complete", reason="not found")
                return None
            self._finish(candidate_id, summary, stamp)
            return self.store.find(candidate_id)

    def pause(self, candidate_id: str, now: Optional[datetime] = None) -> Optional[Candidate]:
        stamp = self._now(now)
        with self._exclusive("pause"):
            if not self._commit(lifecycle.pause_interview(self.store, candidate_id, now=stamp), stamp):
                return None
            if self.timer.candidate_id == candidate_id:
                self.timer.pause(stamp)
            return self.store.find(candidate_id)

    def resume(self, candidate_id: str, now: Optional[datetime] = None) -> Optional[Candidate]:
        stamp = self._now(now)
        with self._exclusive("resume"):
            if not self._commit(lifecycle.resume_interview(self.store, candidate_id, now=stamp), stamp):
                return None
            self.store = lifecycle.set_active_candidate(self.store, candidate_id)
            candidate = self.store.find(candidate_id)
            question = candidate.current_question
            if self.timer.paused and question is not None and self.timer.question_id == question.id:
                self.timer.resume(stamp)
            else:
                self._arm_timer(candidate, stamp)
            return candidate

    def delete(self, candidate_id: str, now: Optional[datetime] = None) -> bool:
        """Remove the candidate, tombstone its id and purge every durable copy."""

        stamp = self._now(now)
        with self._exclusive("delete"):
            updated = lifecycle.delete_candidate(self.store, candidate_id)
            if updated is self.store:
                return False
            self.store = updated
            if self.timer.candidate_id == candidate_id:
                self.timer.cancel()
            ok = self.writer.on_deleted(self.store, candidate_id, stamp)
            self.scheduler.request("candidate_deleted", stamp)
            return ok

    # ------------------------------------------------------------------
    # Event loop hooks
    # ------------------------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        """Advance clock-driven work: question expiry, autosave debounce, throttle and flushes."""

        stamp = self._now(now)
        with self._exclusive("tick"):
            result = TickResult()
            expiry = self.timer.poll(stamp)
            if expiry is not None:
                result.expired = self._expire(expiry, stamp)
            result.autosaved = self.autosave.tick(stamp)
            self.writer.tick(stamp)
            result.flushed = self.scheduler.tick(stamp)
            return result

    def flush_now(self) -> bool:
        with self._exclusive("flush_now"):
            return self.scheduler.flush_now()

    def debug_dump(self) -> Dict[str, Any]:
        status = {
            "lastOk": self.scheduler.last_ok,
            "dueAt": self.scheduler.due_at.isoformat() if self.scheduler.due_at else None,
            "primaryPending": self.writer.has_pending,
            "recent": list(self.scheduler.events[-10:]),
        }
        return build_debug_report(self.store, self.repository, status)


__all__ = ["AnswerResult", "InterviewRuntime", "ReentrantTransitionError", "TickResult"]
