"""SQLite helpers and the SQLite-backed persistence port."""
from __future__ import annotations

import datetime as dt
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from config.settings import settings

from .migrate import migrate
from .port import PersistencePort, QuotaExceededError


@contextmanager
def get_conn(db_path: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection, ensuring the data directory exists."""

    path = db_path or settings.DB_PATH
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


class SqlitePort(PersistencePort):
    """Key/value medium stored in the ``kv_store`` table."""

    name = "sqlite"

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or settings.DB_PATH
        migrate(self.db_path)

    def _read(self, key: str) -> Optional[bytes]:
        with get_conn(self.db_path) as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return bytes(row[0]) if row else None

    def _write(self, key: str, value: bytes) -> None:
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
        try:
            with get_conn(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
                    (key, sqlite3.Binary(value), timestamp),
                )
        except sqlite3.OperationalError as exc:
            if "full" in str(exc).lower():
                raise QuotaExceededError(str(exc)) from exc
            raise

    def _remove(self, key: str) -> None:
        with get_conn(self.db_path) as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def _keys(self) -> Iterable[str]:
        with get_conn(self.db_path) as conn:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [row[0] for row in rows]


__all__ = ["SqlitePort", "get_conn"]
