from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from candidates.lifecycle import complete_interview, create_candidate, delete_candidate, pause_interview, start_interview
from candidates.models import Candidate
from candidates.store import CandidateStore
from services.backup import BackupWriter
from services.reconcile import hydrate_from_primary, reconcile, should_replace
from storage.port import MemoryPort
from storage.repository import SnapshotRepository
from storage.snapshots import encode_candidate, encode_primary


@pytest.fixture
def repo():
    return SnapshotRepository(MemoryPort())


def _completed(candidate_id: str, completed_at: datetime, score: int = 10) -> Candidate:
    return Candidate(
        id=candidate_id,
        name="Backup",
        status="completed",
        total_score=score,
        interview_completed_at=completed_at,
    )


def test_deleted_candidate_is_never_resurrected(repo, t0):
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C1", now=t0)
    repo.port.set("backup:C1", encode_candidate(_completed("C1", t0), t0))
    repo.port.set("completed-interview-C1", encode_candidate(_completed("C1", t0 + timedelta(days=1)), t0))

    store = delete_candidate(store, "C1")
    count = len(store.candidates)
    merged, report = reconcile(store, repo, t0)
    assert len(merged.candidates) == count
    assert merged.find("C1") is None
    assert report.skipped_tombstoned == ["C1", "C1"]


def test_completed_backup_is_chosen_over_incomplete(repo, t0):
    incomplete = Candidate(id="C2", name="Draft", status="interview")
    repo.port.set("backup:C2", encode_candidate(incomplete, t0))
    completed = _completed("C2", datetime(2024, 1, 1, tzinfo=timezone.utc), score=30)
    repo.port.set("emergency:C2", encode_candidate(completed, t0))

    merged, report = reconcile(CandidateStore(), repo, t0)
    candidate = merged.find("C2")
    assert candidate.status == "completed"
    assert candidate.total_score == 30
    assert candidate.restored_at == t0
    assert report.inserted == ["C2"]
    assert report.replaced == ["C2"]


def test_completed_backup_wins_over_in_progress_memory(repo, t0, easy_question):
    store = create_candidate(CandidateStore(), {}, candidate_id="C3", now=t0)
    store = start_interview(store, "C3", [easy_question], now=t0 + timedelta(days=5))
    repo.port.set("backup:C3", encode_candidate(_completed("C3", t0), t0))

    merged, report = reconcile(store, repo, t0)
    assert merged.find("C3").status == "completed"
    assert report.replaced == ["C3"]


@pytest.mark.parametrize("backup_offset, expected_score", [(timedelta(hours=1), 99), (-timedelta(hours=1), 5)])
def test_recency_decides_between_completed_records(repo, t0, backup_offset, expected_score):
    memory = _completed("C4", t0, score=5)
    store = CandidateStore(candidates=[memory])
    repo.port.set("backup:C4", encode_candidate(_completed("C4", t0 + backup_offset, score=99), t0))

    merged, _ = reconcile(store, repo, t0)
    assert merged.find("C4").total_score == expected_score


def test_paused_memory_wins_over_paused_backup(repo, t0, easy_question):
    store = create_candidate(CandidateStore(), {"name": "Memory"}, candidate_id="C5", now=t0)
    store = start_interview(store, "C5", [easy_question], now=t0)
    store = pause_interview(store, "C5", now=t0)
    newer = store.find("C5").model_copy(update={"name": "Backup", "updated_at": t0 + timedelta(days=1)})
    repo.port.set("backup:C5", encode_candidate(newer, t0))

    merged, report = reconcile(store, repo, t0)
    assert merged is store
    assert merged.find("C5").name == "Memory"
    assert report.kept == ["C5"]


def test_reconcile_is_idempotent(repo, t0):
    repo.port.set("backup:a", encode_candidate(_completed("a", t0), t0))
    repo.port.set("backup:b", encode_candidate(Candidate(id="b", status="paused"), t0))

    once, _ = reconcile(CandidateStore(), repo, t0)
    twice, report = reconcile(once, repo, t0 + timedelta(hours=1))
    assert twice.model_dump() == once.model_dump()
    assert not report.changed


def test_corrupt_keys_are_skipped(repo, t0):
    repo.port.set("backup:bad", b"{oops")
    repo.port.set("backup:worse", json.dumps({"version": 3, "candidate": {"status": "completed"}}).encode())
    repo.port.set("backup:good", encode_candidate(Candidate(id="good"), t0))

    merged, report = reconcile(CandidateStore(), repo, t0)
    assert [c.id for c in merged.candidates] == ["good"]
    assert sorted(report.decode_failures) == ["backup:bad", "backup:worse"]


def test_replacement_is_whole_record(repo, t0, easy_question):
    store = create_candidate(CandidateStore(), {"name": "Ada", "email": "ada@x.io"}, candidate_id="C6", now=t0)
    store = start_interview(store, "C6", [easy_question], now=t0)
    repo.port.set("backup:C6", encode_candidate(_completed("C6", t0), t0))

    merged, _ = reconcile(store, repo, t0)
    candidate = merged.find("C6")
    assert candidate.email == ""
    assert candidate.questions == []


def test_should_replace_stamp_rules(t0):
    in_progress = Candidate(id="x", status="interview")
    assert should_replace(in_progress, Candidate(id="x", status="completed"))
    assert should_replace(in_progress, _completed("x", t0))
    assert not should_replace(in_progress, Candidate(id="x", status="paused"))

    finished = _completed("x", t0)
    assert not should_replace(finished, Candidate(id="x", status="completed"))
    assert should_replace(finished, _completed("x", t0 + timedelta(seconds=1)))

    unstamped = Candidate(id="x", status="completed")
    assert not should_replace(unstamped, Candidate(id="x", status="completed"))
    assert should_replace(unstamped, _completed("x", t0))


def test_unstamped_completed_backup_replaces_in_progress_memory(repo, t0, easy_question):
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C3", now=t0)
    store = start_interview(store, "C3", [easy_question], now=t0)
    repo.port.set("backup:C3", json.dumps({"version": 2, "candidate": {"id": "C3", "status": "completed", "totalScore": 10}}).encode())

    merged, report = reconcile(store, repo, t0)
    assert report.replaced == ["C3"]
    assert merged.find("C3").status == "completed"
    assert merged.find("C3").total_score == 10


def test_hydrate_unions_tombstones_and_drops_deleted(repo, t0):
    on_disk = create_candidate(CandidateStore(), {}, candidate_id="A", now=t0)
    on_disk = create_candidate(on_disk, {}, candidate_id="B", now=t0)
    on_disk = delete_candidate(on_disk, "gone")
    repo.port.set(repo.primary_key, encode_primary(on_disk))

    memory = delete_candidate(CandidateStore(), "B")
    hydrated, skipped = hydrate_from_primary(memory, repo)
    assert [c.id for c in hydrated.candidates] == ["A"]
    assert hydrated.deleted_candidate_ids == ["B", "gone"]
    assert skipped == []


def test_hydrate_survives_unreadable_primary(repo):
    repo.port.set(repo.primary_key, b"{garbage")
    store = CandidateStore()
    hydrated, skipped = hydrate_from_primary(store, repo)
    assert hydrated is store
    assert skipped == [repo.primary_key]


def test_delete_then_reconcile_through_the_writer(repo, t0, easy_question):
    writer = BackupWriter(repo, throttle_seconds=0)
    store = create_candidate(CandidateStore(), {}, candidate_id="C7", now=t0)
    store = start_interview(store, "C7", [easy_question], now=t0)
    store = complete_interview(store, "C7", now=t0)
    writer.on_completed(store, "C7", t0)

    store = delete_candidate(store, "C7")
    writer.on_deleted(store, "C7", t0)
    # a stale copy written by an older build reappears after the purge
    repo.port.set("interview-backup-C7", encode_candidate(_completed("C7", t0 + timedelta(days=1)), t0))

    fresh, _ = hydrate_from_primary(CandidateStore(), repo)
    merged, report = reconcile(fresh, repo, t0)
    assert merged.find("C7") is None
    assert report.skipped_tombstoned == ["C7"]
