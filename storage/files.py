"""JSON-directory persistence port with atomic replace-on-write."""
from __future__ import annotations

import os
from typing import Iterable, Optional
from urllib.parse import quote, unquote

from .port import PersistencePort

_SUFFIX = ".json"


class DirectoryPort(PersistencePort):
    """One file per key under ``base_dir``; keys are percent-encoded into file names."""

    name = "directory"

    def __init__(self, base_dir: str) -> None:
        self.base_dir = base_dir
        os.makedirs(base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.base_dir, quote(key, safe="") + _SUFFIX)

    def _read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as handle:
            return handle.read()

    def _write(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_path = path + ".tmp"
        with open(tmp_path, "wb") as handle:
            handle.write(value)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)

    def _remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def _keys(self) -> Iterable[str]:
        return [unquote(name[: -len(_SUFFIX)]) for name in os.listdir(self.base_dir) if name.endswith(_SUFFIX)]


__all__ = ["DirectoryPort"]
