"""Lightweight CLI helpers for inspecting durable interview snapshots."""
from __future__ import annotations

import argparse
import json
from typing import List, Optional

from candidates.store import CandidateStore
from config.settings import settings
from services.backup import BackupWriter
from services.diagnostics import build_debug_report
from services.reconcile import hydrate_from_primary
from storage.repository import Namespace, SnapshotRepository
from storage.sqlite import SqlitePort


def _repository(db_path: Optional[str]) -> SnapshotRepository:
    return SnapshotRepository(SqlitePort(db_path or settings.DB_PATH))


def dump(db_path: Optional[str] = None) -> None:
    repository = _repository(db_path)
    store, _ = hydrate_from_primary(CandidateStore(), repository)
    print(json.dumps(build_debug_report(store, repository), indent=2, default=str))


def list_keys(namespace: str, db_path: Optional[str] = None) -> None:
    repository = _repository(db_path)
    for item in repository.list_by_namespace(Namespace(namespace)):
        legacy = " (legacy)" if item.namespace in (Namespace.BACKUP, Namespace.EMERGENCY) and item.is_legacy else ""
        print(f"{item.key}{legacy}")


def cleanup(days: int, db_path: Optional[str] = None) -> None:
    removed = BackupWriter(_repository(db_path)).cleanup_old_backups(retention_days=days)
    print(f"removed {len(removed)} backup(s)")
    for key in removed:
        print(f"  {key}")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", help="SQLite file to inspect (defaults to DB_PATH)")
    parser.add_argument("--dump", action="store_true", help="Print the diagnostics report")
    parser.add_argument("--keys", choices=[n.value for n in Namespace], help="List durable keys in a namespace")
    parser.add_argument("--cleanup-days", type=int, help="Delete backups older than this many days")
    args = parser.parse_args(argv)

    if args.dump:
        dump(args.db)
    if args.keys:
        list_keys(args.keys, args.db)
    if args.cleanup_days:
        cleanup(args.cleanup_days, args.db)


if __name__ == "__main__":
    main()
