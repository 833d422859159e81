"""Question-scoped autosave of in-progress answers."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from candidates.models import CamelModel, utcnow
from config.settings import settings
from storage.repository import Namespace, SnapshotRepository

logger = logging.getLogger(__name__)


class AutosaveEntry(CamelModel):
    candidate_id: str
    current_question_index: int
    selected_option: Optional[int] = None
    current_answer_text: Optional[str] = None
    timestamp: datetime

    def matches(self, candidate_id: str, question_index: int) -> bool:
        return self.candidate_id == candidate_id and self.current_question_index == question_index


class AutosaveDraft:
    """Keeps the single autosave slot in sync with what the candidate is typing.

    Discrete selections are written immediately; free text is debounced and
    only the latest text survives.
    """

    def __init__(self, repository: SnapshotRepository, *, debounce_seconds: Optional[float] = None) -> None:
        self.repository = repository
        seconds = settings.AUTOSAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.debounce = timedelta(seconds=seconds)
        self._pending: Optional[AutosaveEntry] = None
        self._due_at: Optional[datetime] = None

    def record_selection(
        self,
        candidate_id: str,
        question_index: int,
        option: int,
        now: Optional[datetime] = None,
    ) -> bool:
        entry = AutosaveEntry(
            candidate_id=candidate_id,
            current_question_index=question_index,
            selected_option=option,
            timestamp=now or utcnow(),
        )
        self._pending = None
        self._due_at = None
        return self._write(entry)

    def record_text(
        self,
        candidate_id: str,
        question_index: int,
        text: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Queue ``text`` for a debounced write; blank text is ignored. Returns True if queued."""

        if not text or not text.strip():
            return False
        stamp = now or utcnow()
        self._pending = AutosaveEntry(
            candidate_id=candidate_id,
            current_question_index=question_index,
            current_answer_text=text,
            timestamp=stamp,
        )
        self._due_at = stamp + self.debounce
        return True

    def tick(self, now: Optional[datetime] = None) -> Optional[bool]:
        if self._pending is None or self._due_at is None:
            return None
        if (now or utcnow()) < self._due_at:
            return None
        entry = self._pending
        self._pending = None
        self._due_at = None
        return self._write(entry)

    def restore(self, candidate_id: str, question_index: int) -> Optional[AutosaveEntry]:
        """Latest draft for this exact candidate and question, pending text included."""

        if self._pending is not None and self._pending.matches(candidate_id, question_index):
            return self._pending
        raw = self.repository.read(self.repository.key_for(Namespace.AUTOSAVE))
        if raw is None:
            return None
        try:
            entry = AutosaveEntry.model_validate(json.loads(raw))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Discarding unreadable autosave entry: %s", exc)
            return None
        return entry if entry.matches(candidate_id, question_index) else None

    def clear(self) -> bool:
        self._pending = None
        self._due_at = None
        key = self.repository.key_for(Namespace.AUTOSAVE)
        if self.repository.read(key) is None:
            return True
        return self.repository.delete(key)

    def _write(self, entry: AutosaveEntry) -> bool:
        payload = json.dumps(entry.to_wire(), ensure_ascii=False).encode("utf-8")
        return self.repository.write(Namespace.AUTOSAVE, payload)


__all__ = ["AutosaveDraft", "AutosaveEntry"]
