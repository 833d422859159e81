"""Flush scheduling: settle-delayed flushes after lifecycle events plus an interval flush."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from candidates.models import utcnow
from candidates.store import CandidateStore
from config.settings import settings
from observability.logger import log_event
from observability.tracing import span

from .backup import BackupWriter


class FlushScheduler:
    """Decides when the in-memory store is forced to durable storage.

    Lifecycle events call :meth:`request`; the flush happens once the settle
    delay has passed and :meth:`tick` runs. While any candidate is mid-interview
    :meth:`tick` also flushes on a fixed interval. :meth:`flush_now` takes no
    arguments so any collaborator holding the scheduler can trigger a save.
    """

    def __init__(
        self,
        writer: BackupWriter,
        store_provider: Callable[[], CandidateStore],
        *,
        settle_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.writer = writer
        self.store_provider = store_provider
        self.settle = timedelta(
            seconds=settings.FLUSH_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        )
        self.interval = timedelta(
            seconds=settings.FLUSH_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.clock = clock
        self._due_at: Optional[datetime] = None
        self._reasons: List[str] = []
        self._last_flush_at: Optional[datetime] = None
        self.last_ok: Optional[bool] = None
        self.events: List[Dict[str, Any]] = []

    @property
    def due_at(self) -> Optional[datetime]:
        return self._due_at

    def request(self, reason: str, now: Optional[datetime] = None) -> datetime:
        """Schedule a flush after the settle delay; repeated requests keep the earliest deadline."""

        due = (now or self.clock()) + self.settle
        if self._due_at is None or due < self._due_at:
            self._due_at = due
        self._reasons.append(reason)
        return self._due_at

    def tick(self, now: Optional[datetime] = None) -> Optional[bool]:
        """Run whichever flush is due; ``None`` when nothing ran."""

        stamp = now or self.clock()
        if self._due_at is not None and stamp >= self._due_at:
            return self._flush(stamp, "settled")

        if not self.store_provider().has_active_session():
            return None
        if self._last_flush_at is None:
            # start the interval from the first tick of an active session
            self._last_flush_at = stamp
            return None
        if stamp - self._last_flush_at >= self.interval:
            return self._flush(stamp, "interval")
        return None

    def flush_now(self) -> bool:
        """Write the current store, bypassing throttle and settle delay."""
        return self._flush(self.clock(), "manual")

    def _flush(self, now: datetime, trigger: str) -> bool:
        store = self.store_provider()
        reasons = self._reasons or [trigger]
        self._due_at = None
        self._reasons = []
        with span(self.events, f"flush:{trigger}"):
            ok = self.writer.flush_all(store, now)
        self._last_flush_at = now
        self.last_ok = ok
        log_event(
            "flush",
            store.view.active_candidate_id or "-",
            op=trigger,
            reason=",".join(reasons),
            ok=ok,
            ms=self.events[-1]["ms"],
        )
        if len(self.events) > 100:
            del self.events[:-100]
        return ok


__all__ = ["FlushScheduler"]
