from __future__ import annotations

import json
from datetime import timedelta

from candidates.lifecycle import (
    ManualAnswer,
    answer_question,
    complete_interview,
    create_candidate,
    delete_candidate,
    start_interview,
)
from candidates.store import CandidateStore
from services.backup import BackupWriter
from storage.port import MemoryPort
from storage.repository import Namespace, SnapshotRepository
from storage.snapshots import decode_candidate, decode_primary, encode_candidate


class CountingPort(MemoryPort):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.writes = []

    def _write(self, key, value):
        super()._write(key, value)
        self.writes.append(key)


def _setup(t0, easy_question, throttle=0.1):
    port = CountingPort()
    writer = BackupWriter(SnapshotRepository(port), throttle_seconds=throttle)
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C1", now=t0)
    store = start_interview(store, "C1", [easy_question], now=t0)
    return port, writer, store


def test_primary_writes_are_coalesced_within_the_throttle(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)

    assert writer.request_primary(store, t0)
    later = create_candidate(store, {"name": "Bob"}, candidate_id="C2", now=t0)
    writer.request_primary(later, t0 + timedelta(milliseconds=20))
    writer.request_primary(later, t0 + timedelta(milliseconds=40))
    assert port.writes.count("persist:ai-interview-app") == 1
    assert writer.has_pending

    writer.tick(t0 + timedelta(milliseconds=60))
    assert port.writes.count("persist:ai-interview-app") == 1
    writer.tick(t0 + timedelta(milliseconds=150))
    assert port.writes.count("persist:ai-interview-app") == 2
    assert not writer.has_pending

    blob = decode_primary(port.get("persist:ai-interview-app"))
    assert [c.id for c in blob.store.candidates] == ["C1", "C2"]


def test_answer_writes_backup_and_primary(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)
    store = answer_question(store, "C1", ManualAnswer(question_id="q1", selected_answer=0, score=10), now=t0)

    assert writer.on_answer_submitted(store, "C1", t0)
    snapshot = decode_candidate(port.get("backup:C1"))
    assert snapshot.candidate.total_score == 10
    assert port.get("persist:ai-interview-app") is not None
    assert port.get("emergency:C1") is None


def test_emergency_snapshot_only_for_completed(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)
    assert writer.write_emergency(store.find("C1"), t0) is False
    assert port.get("emergency:C1") is None

    done = complete_interview(store, "C1", now=t0)
    assert writer.on_completed(done, "C1", t0)
    assert decode_candidate(port.get("emergency:C1")).candidate.status == "completed"
    assert decode_candidate(port.get("backup:C1")).candidate.status == "completed"


def test_delete_purges_and_drops_pending_primary(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)
    writer.backup_candidate(store.find("C1"), t0)
    port.set("interview-backup-C1", encode_candidate(store.find("C1"), t0))
    writer.request_primary(store, t0)
    writer.request_primary(store, t0 + timedelta(milliseconds=10))
    assert writer.has_pending

    after = delete_candidate(store, "C1")
    assert writer.on_deleted(after, "C1", t0 + timedelta(milliseconds=20))
    assert not writer.has_pending
    assert port.list_keys("backup:") == set()
    assert port.list_keys("interview-backup-") == set()

    blob = decode_primary(port.get("persist:ai-interview-app"))
    assert blob.store.candidates == []
    assert blob.store.deleted_candidate_ids == ["C1"]

    writer.tick(t0 + timedelta(seconds=1))
    assert decode_primary(port.get("persist:ai-interview-app")).store.candidates == []


def test_quota_failures_are_reported(t0, easy_question):
    port = MemoryPort(quota_bytes=16)
    writer = BackupWriter(SnapshotRepository(port), throttle_seconds=0)
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C1", now=t0)
    assert writer.flush_all(store, t0) is False
    assert writer.backup_candidate(store.find("C1"), t0) is False


def test_cleanup_old_backups(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)
    candidate = store.find("C1")
    port.set("backup:old", encode_candidate(candidate.model_copy(update={"id": "old"}), t0 - timedelta(days=8)))
    port.set("backup:new", encode_candidate(candidate.model_copy(update={"id": "new"}), t0 - timedelta(days=1)))
    port.set("backup:junk", b"not json")

    removed = writer.cleanup_old_backups(t0, retention_days=7)
    assert removed == ["backup:old"]
    assert port.list_keys("backup:") == {"backup:new", "backup:junk"}


def test_flush_all_backs_up_active_candidates_only(t0, easy_question):
    port, writer, store = _setup(t0, easy_question)
    store = create_candidate(store, {"name": "Idle"}, candidate_id="C2", now=t0)
    assert writer.flush_all(store, t0)
    assert port.list_keys("backup:") == {"backup:C1"}
    assert json.loads(port.get("persist:ai-interview-app"))["version"] == 3
    assert port.get(SnapshotRepository(port).key_for(Namespace.PRIMARY)) is not None


def test_cleanup_treats_offsetless_stamps_as_utc(t0):
    port = MemoryPort()
    writer = BackupWriter(SnapshotRepository(port))
    port.set(
        "backup:C9",
        json.dumps({"version": 3, "savedAt": "2023-12-01T00:00:00", "candidate": {"id": "C9"}}).encode(),
    )
    port.set(
        "interview-backup-C8",
        json.dumps({"id": "C8", "status": "interview", "timestamp": "2023-12-31T12:00:00"}).encode(),
    )

    assert writer.cleanup_old_backups(t0, retention_days=7) == ["backup:C9"]
    assert decode_candidate(port.get("interview-backup-C8")).saved_at.tzinfo is not None
