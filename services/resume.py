"""Candidate info extraction from resume text."""
from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import ValidationError

from candidates.models import CandidateFields
from config.registry import RESUME_KEY, get_collaborator

logger = logging.getLogger(__name__)

_NAME = re.compile(r"Name[:\s]+([A-Za-z][A-Za-z ]*)", re.IGNORECASE)
_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE = re.compile(r"\b\d{10}\b")


def parse_resume_text(text: str) -> CandidateFields:
    """Pattern-based extraction of name, email and a 10-digit phone number."""

    name = _NAME.search(text)
    email = _EMAIL.search(text)
    phone = _PHONE.search(text)
    return CandidateFields(
        name=name.group(1).strip() if name else "",
        email=email.group(0) if email else "",
        phone=phone.group(0) if phone else "",
    )


def extract_fields(resume_text: str, file_name: str = "") -> CandidateFields:
    """Fields for a new candidate; the bound extractor wins, patterns fill its gaps."""

    parsed = parse_resume_text(resume_text)
    extracted: Optional[CandidateFields] = None
    try:
        extractor = get_collaborator(RESUME_KEY)
    except KeyError:
        extractor = None
    if extractor is not None:
        try:
            produced = extractor(resume_text=resume_text)
            extracted = produced if isinstance(produced, CandidateFields) else CandidateFields.model_validate(produced)
        except ValidationError as exc:
            logger.warning("Resume extractor returned unusable fields: %s", exc)
        except Exception as exc:  # collaborator boundary
            logger.warning("Resume extractor failed: %s", exc)

    base = extracted or parsed
    return CandidateFields(
        name=base.name or parsed.name,
        email=base.email or parsed.email,
        phone=base.phone or parsed.phone,
        skills=list(base.skills),
        resume_text=resume_text,
        file_name=file_name,
    )


__all__ = ["extract_fields", "parse_resume_text"]
