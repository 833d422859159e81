"""Startup and on-demand reconciliation of durable snapshots into the store."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from candidates.models import Candidate, utcnow
from candidates.store import CandidateStore
from observability.logger import log_event
from storage.repository import Namespace, SnapshotRepository
from storage.snapshots import DecodeError, decode_candidate, decode_primary

logger = logging.getLogger(__name__)

BACKUP_NAMESPACES = (Namespace.BACKUP, Namespace.EMERGENCY)


class ReconcileReport(BaseModel):
    inserted: List[str] = Field(default_factory=list)
    replaced: List[str] = Field(default_factory=list)
    kept: List[str] = Field(default_factory=list)
    skipped_tombstoned: List[str] = Field(default_factory=list)
    decode_failures: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.replaced)


def should_replace(existing: Candidate, decoded: Candidate) -> bool:
    """Completion-biased, recency-biased choice between two copies of one record.

    A completed copy always beats one that is not completed. Between two
    completed copies the decoded one wins only with a completion stamp that the
    existing copy lacks or that is strictly later.
    """

    if decoded.status != "completed":
        return False
    if existing.status != "completed":
        return True
    if decoded.interview_completed_at is None:
        return False
    if existing.interview_completed_at is None:
        return True
    return decoded.interview_completed_at > existing.interview_completed_at


def merge_candidate(
    store: CandidateStore,
    decoded: Candidate,
    report: ReconcileReport,
    now: datetime,
) -> CandidateStore:
    """Fold one decoded snapshot into ``store``; whole-record insert or replace only."""

    if store.is_tombstoned(decoded.id):
        report.skipped_tombstoned.append(decoded.id)
        log_event("restore_skipped", decoded.id, reason="tombstoned")
        return store

    index = store.index_of(decoded.id)
    if index < 0:
        restored = decoded.model_copy(update={"restored_at": now}, deep=True)
        candidates = [*store.candidates, restored]
        report.inserted.append(decoded.id)
        log_event("candidate_restored", decoded.id, status=decoded.status, op="insert")
        return store.model_copy(update={"candidates": candidates})

    existing = store.candidates[index]
    if not should_replace(existing, decoded):
        report.kept.append(decoded.id)
        return store

    replacement = decoded.model_copy(update={"restored_at": now}, deep=True)
    candidates = list(store.candidates)
    candidates[index] = replacement
    report.replaced.append(decoded.id)
    log_event("candidate_restored", decoded.id, status=decoded.status, op="replace")
    return store.model_copy(update={"candidates": candidates})


def reconcile(
    store: CandidateStore,
    repository: SnapshotRepository,
    now: Optional[datetime] = None,
) -> Tuple[CandidateStore, ReconcileReport]:
    """Merge every backup and emergency snapshot into ``store``.

    Corrupt keys are logged and skipped. Running the pass again over the same
    durable state leaves the store unchanged.
    """

    stamp = now or utcnow()
    report = ReconcileReport()
    current = store
    for namespace in BACKUP_NAMESPACES:
        for item in repository.list_by_namespace(namespace):
            raw = repository.read(item.key)
            if raw is None:
                continue
            try:
                snapshot = decode_candidate(raw)
            except DecodeError as exc:
                logger.warning("Skipping undecodable snapshot %s: %s", item.key, exc)
                report.decode_failures.append(item.key)
                continue
            if snapshot.candidate.id != item.candidate_id:
                logger.warning(
                    "Snapshot %s holds candidate %s, expected %s",
                    item.key,
                    snapshot.candidate.id,
                    item.candidate_id,
                )
            current = merge_candidate(current, snapshot.candidate, report, stamp)

    log_event(
        "reconcile_pass",
        "-",
        inserted=report.inserted,
        replaced=report.replaced,
        kept=len(report.kept),
        tombstoned=report.skipped_tombstoned,
        failures=report.decode_failures,
    )
    return current, report


def hydrate_from_primary(
    store: CandidateStore,
    repository: SnapshotRepository,
) -> Tuple[CandidateStore, List[str]]:
    """Load the primary blob into ``store``.

    Tombstones are unioned, records already in memory win, and records whose id
    is tombstoned on either side are dropped. Returns the new store and the ids
    that could not be decoded.
    """

    raw = repository.read(repository.key_for(Namespace.PRIMARY))
    if raw is None:
        return store, []
    try:
        snapshot = decode_primary(raw)
    except DecodeError as exc:
        logger.warning("Primary blob is unreadable, starting from backups only: %s", exc)
        return store, [repository.primary_key]

    loaded = snapshot.store
    tombstones = list(store.deleted_candidate_ids)
    for candidate_id in loaded.deleted_candidate_ids:
        if candidate_id not in tombstones:
            tombstones.append(candidate_id)

    candidates = [c for c in store.candidates if c.id not in tombstones]
    known = {c.id for c in candidates}
    for candidate in loaded.candidates:
        if candidate.id not in known and candidate.id not in tombstones:
            candidates.append(candidate)
            known.add(candidate.id)

    view = store.view if store.candidates else loaded.view
    if view.active_candidate_id not in known:
        view = view.model_copy(update={"active_candidate_id": None})
    if view.selected_candidate_id not in known:
        view = view.model_copy(update={"selected_candidate_id": None})

    hydrated = CandidateStore(candidates=candidates, view=view, deleted_candidate_ids=tombstones)
    log_event(
        "primary_hydrated",
        view.active_candidate_id or "-",
        candidates=len(candidates),
        tombstones=len(tombstones),
        version=snapshot.source_version,
        skipped=snapshot.skipped,
    )
    return hydrated, snapshot.skipped


__all__ = ["ReconcileReport", "hydrate_from_primary", "merge_candidate", "reconcile", "should_replace"]
