"""Question generation through the collaborator, falling back to the YAML bank."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import yaml
from pydantic import ValidationError

from candidates.models import Candidate, Question
from config.registry import QUESTIONS_KEY, get_collaborator
from config.settings import settings

logger = logging.getLogger(__name__)


def load_question_bank(path: Optional[str] = None) -> List[Question]:
    """Read the fallback bank; ``time`` is derived from difficulty when absent."""

    with open(path or settings.QUESTION_BANK_PATH, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    entries = data.get("questions", []) if isinstance(data, dict) else []
    return [Question.model_validate(entry) for entry in entries]


def _coerce(produced: Any) -> List[Question]:
    if not isinstance(produced, list) or not produced:
        raise ValueError("generator returned no questions")
    return [q if isinstance(q, Question) else Question.model_validate(q) for q in produced]


def generate_questions(candidate: Candidate, limit: Optional[int] = None) -> List[Question]:
    """Ordered questions for ``candidate``; never empty as long as the bank is readable."""

    count = limit or settings.QUESTIONS_PER_INTERVIEW
    try:
        generator = get_collaborator(QUESTIONS_KEY)
    except KeyError:
        generator = None

    if generator is not None:
        try:
            return _coerce(generator(candidate=candidate, count=count))[:count]
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning("Question generator returned unusable output for %s: %s", candidate.id, exc)
        except Exception as exc:  # collaborator boundary
            logger.warning("Question generator failed for %s: %s", candidate.id, exc)

    return load_question_bank()[:count]


__all__ = ["generate_questions", "load_question_bank"]
