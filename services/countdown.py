"""Per-question countdown with generation tracking."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from candidates.models import as_utc, utcnow


@dataclass(frozen=True)
class TimerExpired:
    candidate_id: str
    question_id: str
    generation: int


class QuestionTimer:
    """Countdown for the current question.

    Every :meth:`start` or :meth:`cancel` bumps ``generation``. Expiry events
    carry the generation they were armed under, and :meth:`is_current` rejects
    any event whose generation is stale, so a timer from a question that has
    already advanced can never submit against the next one.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.candidate_id: Optional[str] = None
        self.question_id: Optional[str] = None
        self._deadline: Optional[datetime] = None
        self._remaining: Optional[timedelta] = None  # set while paused

    @property
    def running(self) -> bool:
        return self._deadline is not None

    @property
    def paused(self) -> bool:
        return self._remaining is not None

    def start(self, candidate_id: str, question_id: str, seconds: int, now: Optional[datetime] = None) -> int:
        self.generation += 1
        self.candidate_id = candidate_id
        self.question_id = question_id
        self._deadline = as_utc(now or utcnow()) + timedelta(seconds=seconds)
        self._remaining = None
        return self.generation

    def pause(self, now: Optional[datetime] = None) -> None:
        if self._deadline is None:
            return
        left = self._deadline - as_utc(now or utcnow())
        self._remaining = max(left, timedelta(0))
        self._deadline = None
        self.generation += 1

    def resume(self, now: Optional[datetime] = None) -> int:
        if self._remaining is None:
            return self.generation
        self._deadline = as_utc(now or utcnow()) + self._remaining
        self._remaining = None
        self.generation += 1
        return self.generation

    def cancel(self) -> None:
        self.generation += 1
        self.candidate_id = None
        self.question_id = None
        self._deadline = None
        self._remaining = None

    def remaining(self, now: Optional[datetime] = None) -> int:
        """Whole seconds left, rounded up; 0 when idle or expired."""

        if self._remaining is not None:
            left = self._remaining
        elif self._deadline is not None:
            left = self._deadline - as_utc(now or utcnow())
        else:
            return 0
        seconds = left.total_seconds()
        if seconds <= 0:
            return 0
        return int(seconds) + (0 if seconds == int(seconds) else 1)

    def poll(self, now: Optional[datetime] = None) -> Optional[TimerExpired]:
        """Return an expiry event once the deadline has passed, disarming the timer."""

        if self._deadline is None or self.candidate_id is None or self.question_id is None:
            return None
        if as_utc(now or utcnow()) < self._deadline:
            return None
        self._deadline = None
        return TimerExpired(self.candidate_id, self.question_id, self.generation)

    def is_current(self, event: TimerExpired) -> bool:
        return (
            event.generation == self.generation
            and event.candidate_id == self.candidate_id
            and event.question_id == self.question_id
        )


__all__ = ["QuestionTimer", "TimerExpired"]
