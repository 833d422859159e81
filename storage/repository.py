"""Typed repository over the persistence port, organised by key namespace."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from config.settings import settings
from observability.logger import log_event

from .port import PersistencePort


class Namespace(str, Enum):
    PRIMARY = "primary"
    BACKUP = "backup"
    EMERGENCY = "emergency"
    AUTOSAVE = "autosave"


# Current prefix first; the rest are legacy prefixes still recognised on read and purge.
CANDIDATE_PREFIXES: Dict[Namespace, Tuple[str, ...]] = {
    Namespace.BACKUP: ("backup:", "interview-backup-"),
    Namespace.EMERGENCY: ("emergency:", "completed-interview-"),
}


@dataclass(frozen=True)
class SnapshotKey:
    namespace: Namespace
    candidate_id: str
    key: str

    @property
    def is_legacy(self) -> bool:
        return not self.key.startswith(CANDIDATE_PREFIXES[self.namespace][0])


class SnapshotRepository:
    """Namespace-aware access to durable snapshots.

    Namespace membership is decided here, once, instead of at every call site
    that scans storage keys.
    """

    def __init__(
        self,
        port: PersistencePort,
        *,
        primary_key: Optional[str] = None,
        autosave_key: Optional[str] = None,
    ) -> None:
        self.port = port
        self.primary_key = primary_key or settings.PRIMARY_KEY
        self.autosave_key = autosave_key or settings.AUTOSAVE_KEY

    def key_for(self, namespace: Namespace, candidate_id: Optional[str] = None) -> str:
        if namespace is Namespace.PRIMARY:
            return self.primary_key
        if namespace is Namespace.AUTOSAVE:
            return self.autosave_key
        if not candidate_id:
            raise ValueError(f"{namespace.value} keys need a candidate id")
        return f"{CANDIDATE_PREFIXES[namespace][0]}{candidate_id}"

    def list_by_namespace(self, namespace: Namespace) -> List[SnapshotKey]:
        """Every stored key in ``namespace``, sorted by key for a stable pass order."""

        if namespace in CANDIDATE_PREFIXES:
            found: List[SnapshotKey] = []
            for prefix in CANDIDATE_PREFIXES[namespace]:
                for key in self.port.list_keys(prefix):
                    candidate_id = key[len(prefix):]
                    if candidate_id:
                        found.append(SnapshotKey(namespace, candidate_id, key))
            return sorted(found, key=lambda item: item.key)
        key = self.key_for(namespace)
        if self.port.get(key) is None:
            return []
        return [SnapshotKey(namespace, "", key)]

    def read(self, key: str) -> Optional[bytes]:
        return self.port.get(key)

    def write(self, namespace: Namespace, payload: bytes, candidate_id: Optional[str] = None) -> bool:
        return self.port.set(self.key_for(namespace, candidate_id), payload)

    def delete(self, key: str) -> bool:
        return self.port.delete(key)

    def purge_candidate(self, candidate_id: str) -> bool:
        """Remove every backup, emergency and autosave entry owned by ``candidate_id``."""

        ok = True
        removed: List[str] = []
        for namespace, prefixes in CANDIDATE_PREFIXES.items():
            for prefix in prefixes:
                key = f"{prefix}{candidate_id}"
                if self.port.get(key) is not None:
                    ok = self.port.delete(key) and ok
                    removed.append(key)
        if self._autosave_owner() == candidate_id:
            ok = self.port.delete(self.autosave_key) and ok
            removed.append(self.autosave_key)
        log_event("durable_purge", candidate_id, ok=ok, keys=removed)
        return ok

    def all_keys(self) -> Dict[str, List[str]]:
        report: Dict[str, List[str]] = {}
        for namespace in Namespace:
            report[namespace.value] = [item.key for item in self.list_by_namespace(namespace)]
        return report

    def _autosave_owner(self) -> Optional[str]:
        raw = self.port.get(self.autosave_key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return data.get("candidateId") if isinstance(data, dict) else None


__all__ = ["CANDIDATE_PREFIXES", "Namespace", "SnapshotKey", "SnapshotRepository"]
