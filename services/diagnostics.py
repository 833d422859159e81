"""Side-effect free diagnostics over the store and its durable keys."""
from __future__ import annotations

from typing import Any, Dict, Optional

from candidates.store import CandidateStore
from storage.repository import Namespace, SnapshotRepository
from storage.snapshots import DecodeError, decode_candidate


def build_debug_report(
    store: CandidateStore,
    repository: SnapshotRepository,
    flush_status: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Structured dump of in-memory candidates and every durable snapshot key."""

    snapshots: Dict[str, Dict[str, Any]] = {}
    for namespace in (Namespace.BACKUP, Namespace.EMERGENCY):
        for item in repository.list_by_namespace(namespace):
            raw = repository.read(item.key)
            entry: Dict[str, Any] = {
                "namespace": namespace.value,
                "candidateId": item.candidate_id,
                "legacy": item.is_legacy,
                "bytes": len(raw) if raw is not None else 0,
            }
            if raw is not None:
                try:
                    snapshot = decode_candidate(raw)
                    entry.update(
                        status=snapshot.candidate.status,
                        savedAt=snapshot.saved_at.isoformat() if snapshot.saved_at else None,
                        sourceVersion=snapshot.source_version,
                        tombstoned=store.is_tombstoned(snapshot.candidate.id),
                    )
                except DecodeError as exc:
                    entry["error"] = str(exc)
            snapshots[item.key] = entry

    return {
        "candidates": [
            {
                "id": c.id,
                "name": c.name,
                "status": c.status,
                "currentQuestionIndex": c.current_question_index,
                "questions": len(c.questions),
                "totalScore": c.total_score,
                "maxScore": c.max_score,
                "interviewCompletedAt": c.interview_completed_at.isoformat() if c.interview_completed_at else None,
                "restoredAt": c.restored_at.isoformat() if c.restored_at else None,
            }
            for c in store.candidates
        ],
        "view": store.view.to_wire(),
        "deletedCandidateIds": list(store.deleted_candidate_ids),
        "unfinished": [c.id for c in store.unfinished()],
        "durableKeys": repository.all_keys(),
        "snapshots": snapshots,
        "flush": flush_status or {},
    }


__all__ = ["build_debug_report"]
