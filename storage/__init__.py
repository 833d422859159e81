"""Durable storage: persistence port, media, namespaces and snapshot codec."""
from .files import DirectoryPort
from .port import MemoryPort, PersistencePort, QuotaExceededError
from .repository import Namespace, SnapshotKey, SnapshotRepository
from .snapshots import DecodeError
from .sqlite import SqlitePort

__all__ = [
    "DecodeError",
    "DirectoryPort",
    "MemoryPort",
    "Namespace",
    "PersistencePort",
    "QuotaExceededError",
    "SnapshotKey",
    "SnapshotRepository",
    "SqlitePort",
]
