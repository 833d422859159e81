"""Redundant snapshot writes for lifecycle events."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from candidates.models import Candidate, as_utc, utcnow
from candidates.store import CandidateStore
from config.settings import settings
from observability.logger import log_event
from storage.repository import Namespace, SnapshotRepository
from storage.snapshots import DecodeError, decode_candidate, encode_candidate, encode_primary


class BackupWriter:
    """Writes the primary blob, per-candidate backups and emergency snapshots.

    Primary writes requested through :meth:`request_primary` are throttled:
    requests inside the throttle window are coalesced and the latest store
    wins when the window elapses (:meth:`tick`) or on an explicit flush.
    """

    def __init__(self, repository: SnapshotRepository, *, throttle_seconds: Optional[float] = None) -> None:
        self.repository = repository
        seconds = settings.PRIMARY_THROTTLE_SECONDS if throttle_seconds is None else throttle_seconds
        self.throttle = timedelta(seconds=seconds)
        self._pending: Optional[CandidateStore] = None
        self._last_primary_at: Optional[datetime] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Primary blob
    # ------------------------------------------------------------------

    def request_primary(self, store: CandidateStore, now: Optional[datetime] = None) -> bool:
        stamp = now or utcnow()
        self._pending = store
        if self._last_primary_at is None or stamp - self._last_primary_at >= self.throttle:
            return self._write_pending(stamp)
        return True

    def tick(self, now: Optional[datetime] = None) -> bool:
        stamp = now or utcnow()
        if self._pending is None:
            return True
        if self._last_primary_at is not None and stamp - self._last_primary_at < self.throttle:
            return True
        return self._write_pending(stamp)

    def flush_primary(self, store: CandidateStore, now: Optional[datetime] = None) -> bool:
        self._pending = store
        return self._write_pending(now or utcnow())

    def _write_pending(self, now: datetime) -> bool:
        store = self._pending
        if store is None:
            return True
        self._pending = None
        ok = self.repository.write(Namespace.PRIMARY, encode_primary(store))
        self._last_primary_at = now
        log_event(
            "primary_written",
            store.view.active_candidate_id or "-",
            ok=ok,
            candidates=len(store.candidates),
            tombstones=len(store.deleted_candidate_ids),
        )
        return ok

    # ------------------------------------------------------------------
    # Per-candidate snapshots
    # ------------------------------------------------------------------

    def backup_candidate(self, candidate: Candidate, now: Optional[datetime] = None) -> bool:
        ok = self.repository.write(Namespace.BACKUP, encode_candidate(candidate, now), candidate.id)
        log_event("backup_written", candidate.id, namespace=Namespace.BACKUP.value, status=candidate.status, ok=ok)
        return ok

    def write_emergency(self, candidate: Candidate, now: Optional[datetime] = None) -> bool:
        if candidate.status != "completed":
            log_event("emergency_skipped", candidate.id, status=candidate.status)
            return False
        ok = self.repository.write(Namespace.EMERGENCY, encode_candidate(candidate, now), candidate.id)
        log_event("backup_written", candidate.id, namespace=Namespace.EMERGENCY.value, status=candidate.status, ok=ok)
        return ok

    def flush_all(self, store: CandidateStore, now: Optional[datetime] = None) -> bool:
        """Primary blob plus a backup for every in-progress candidate, bypassing the throttle."""

        stamp = now or utcnow()
        ok = True
        for candidate in store.candidates:
            if candidate.is_active:
                ok = self.backup_candidate(candidate, stamp) and ok
        return self.flush_primary(store, stamp) and ok

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def on_answer_submitted(self, store: CandidateStore, candidate_id: str, now: Optional[datetime] = None) -> bool:
        candidate = store.find(candidate_id)
        if candidate is None:
            return False
        ok = self.backup_candidate(candidate, now)
        return self.request_primary(store, now) and ok

    def on_completed(self, store: CandidateStore, candidate_id: str, now: Optional[datetime] = None) -> bool:
        candidate = store.find(candidate_id)
        if candidate is None:
            return False
        ok = self.backup_candidate(candidate, now)
        ok = self.write_emergency(candidate, now) and ok
        return self.flush_primary(store, now) and ok

    def on_deleted(self, store: CandidateStore, candidate_id: str, now: Optional[datetime] = None) -> bool:
        """Purge every durable copy, then persist the post-deletion store immediately.

        Any coalesced primary write still holding the deleted record is dropped
        first so it can never land after the purge.
        """

        self._pending = None
        ok = self.repository.purge_candidate(candidate_id)
        return self.flush_primary(store, now) and ok

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup_old_backups(self, now: Optional[datetime] = None, retention_days: Optional[int] = None) -> List[str]:
        """Remove per-candidate backups saved before the retention cutoff."""

        days = retention_days or settings.BACKUP_RETENTION_DAYS
        cutoff = as_utc(now or utcnow()) - timedelta(days=days)
        removed: List[str] = []
        for item in self.repository.list_by_namespace(Namespace.BACKUP):
            raw = self.repository.read(item.key)
            if raw is None:
                continue
            try:
                snapshot = decode_candidate(raw)
            except DecodeError:
                continue
            if snapshot.saved_at is not None and as_utc(snapshot.saved_at) < cutoff:
                if self.repository.delete(item.key):
                    removed.append(item.key)
        if removed:
            log_event("backups_expired", "-", removed=removed, retention_days=days)
        return removed


__all__ = ["BackupWriter"]
