"""Persistence port: the only seam allowed to touch durable storage."""
from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Set

logger = logging.getLogger(__name__)


class QuotaExceededError(OSError):
    """The storage medium rejected a write because it is full."""


_MEDIUM_ERRORS = (OSError, sqlite3.Error)


class PersistencePort(ABC):
    """Synchronous key/value access over a durable medium.

    Public methods never raise for medium failures: reads report ``None``,
    writes and deletes report ``False``. Subclasses implement the underscore
    hooks and may raise freely.
    """

    name = "port"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._read(key)
        except _MEDIUM_ERRORS as exc:
            logger.warning("%s read failed for %s: %s", self.name, key, exc)
            return None

    def set(self, key: str, value: bytes) -> bool:
        try:
            self._write(key, value)
        except QuotaExceededError as exc:
            logger.error("%s quota exceeded writing %s: %s", self.name, key, exc)
            return False
        except _MEDIUM_ERRORS as exc:
            logger.error("%s write failed for %s: %s", self.name, key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self._remove(key)
        except _MEDIUM_ERRORS as exc:
            logger.error("%s delete failed for %s: %s", self.name, key, exc)
            return False
        return True

    def list_keys(self, prefix: str = "") -> Set[str]:
        try:
            return {key for key in self._keys() if key.startswith(prefix)}
        except _MEDIUM_ERRORS as exc:
            logger.warning("%s key listing failed: %s", self.name, exc)
            return set()

    @abstractmethod
    def _read(self, key: str) -> Optional[bytes]:
        """Return the stored bytes or ``None`` when the key is absent."""

    @abstractmethod
    def _write(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def _remove(self, key: str) -> None:
        """Remove ``key``; removing an absent key is not an error."""

    @abstractmethod
    def _keys(self) -> Iterable[str]:
        """Enumerate every stored key."""


class MemoryPort(PersistencePort):
    """Dict-backed medium with an optional byte quota across all values."""

    name = "memory"

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._data: Dict[str, bytes] = {}
        self.quota_bytes = quota_bytes

    def _read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def _write(self, key: str, value: bytes) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self.quota_bytes:
                raise QuotaExceededError(f"{used + len(value)} bytes exceeds quota of {self.quota_bytes}")
        self._data[key] = bytes(value)

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)

    def _keys(self) -> Iterable[str]:
        return list(self._data)


__all__ = ["MemoryPort", "PersistencePort", "QuotaExceededError"]
