import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage.migrate import migrate
from config import registry
from config.settings import settings


T0 = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture(autouse=True)
def clean_registry():
    for key in (registry.SCORER_KEY, registry.QUESTIONS_KEY, registry.SUMMARY_KEY, registry.RESUME_KEY):
        registry.unbind_collaborator(key)
    yield
    for key in (registry.SCORER_KEY, registry.QUESTIONS_KEY, registry.SUMMARY_KEY, registry.RESUME_KEY):
        registry.unbind_collaborator(key)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def easy_question():
    return {
        "id": "q1",
        "question": "What does len([]) return?",
        "difficulty": "Easy",
        "options": ["0", "1", "None", "Error"],
        "correctAnswer": 0,
        "explanation": "An empty list has length zero.",
    }


@pytest.fixture
def hard_question():
    return {
        "id": "q2",
        "question": "Explain how a write-ahead log keeps a store durable.",
        "difficulty": "Hard",
    }
