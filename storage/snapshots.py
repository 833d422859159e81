"""Versioned snapshot codec for candidate backups and the primary store blob.

Every durable shape is normalised through an explicit migration chain before
validation, so readers only ever see the current schema:

* candidate snapshots: v1 bare candidate object -> v2 envelope -> v3 backfilled
* primary blob: v1 nested slice -> v2 redux-persist envelope -> v3 canonical
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from candidates.models import Candidate, as_utc, utcnow
from candidates.store import CandidateStore, ViewState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3

Migration = Callable[[Dict[str, Any]], Dict[str, Any]]

_STRING_DEFAULTS = ("name", "email", "phone", "resumeText", "fileName")
_INT_DEFAULTS = ("currentQuestionIndex", "totalScore", "maxScore")
_NULLABLE = ("interviewStartedAt", "interviewCompletedAt", "summary")
_LIST_FIELDS = ("questions", "chatHistory", "skills")


class DecodeError(ValueError):
    """A durable snapshot could not be parsed, migrated or validated."""


class CandidateSnapshot(BaseModel):
    candidate: Candidate
    saved_at: Optional[datetime] = None
    source_version: int = SCHEMA_VERSION

    @field_validator("saved_at", mode="after")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value else value


class PrimarySnapshot(BaseModel):
    store: CandidateStore
    source_version: int = SCHEMA_VERSION
    skipped: List[str] = Field(default_factory=list)


def _load_json(raw: Union[bytes, str]) -> Any:
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"not valid JSON: {exc}") from exc


def _run_chain(doc: Dict[str, Any], version: int, chain: Mapping[int, Migration]) -> Dict[str, Any]:
    if version > SCHEMA_VERSION or version < 1:
        raise DecodeError(f"unsupported snapshot version {version}")
    while version < SCHEMA_VERSION:
        doc = chain[version](doc)
        version = doc["version"]
    return doc


def _version_of(doc: Mapping[str, Any]) -> int:
    value = doc.get("version")
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"invalid version field {value!r}")
    return value


def backfill_candidate(body: Any, saved_at: Optional[str] = None) -> Dict[str, Any]:
    """Fill every missing candidate field with its documented default."""

    if not isinstance(body, dict):
        raise DecodeError("candidate payload is not an object")
    if not body.get("id"):
        raise DecodeError("candidate payload has no id")

    out = dict(body)
    for key in _STRING_DEFAULTS:
        if not isinstance(out.get(key), str):
            out[key] = ""
    for key in _INT_DEFAULTS:
        value = out.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            out[key] = 0
    for key in _NULLABLE:
        out[key] = out.get(key) or None
    for key in _LIST_FIELDS:
        if not isinstance(out.get(key), list):
            out[key] = []
    if not out.get("status"):
        out["status"] = "info_collection"
    fallback_stamp = saved_at or utcnow().isoformat()
    out["createdAt"] = out.get("createdAt") or fallback_stamp
    out["updatedAt"] = out.get("updatedAt") or fallback_stamp
    return out


# ---------------------------------------------------------------------------
# Candidate snapshots
# ---------------------------------------------------------------------------


def candidate_v1_to_v2(doc: Dict[str, Any]) -> Dict[str, Any]:
    body = dict(doc)
    saved_at = body.pop("timestamp", None)
    return {"version": 2, "savedAt": saved_at, "candidate": body}


def candidate_v2_to_v3(doc: Dict[str, Any]) -> Dict[str, Any]:
    saved_at = doc.get("savedAt")
    return {
        "version": 3,
        "savedAt": saved_at,
        "candidate": backfill_candidate(doc.get("candidate"), saved_at),
    }


CANDIDATE_MIGRATIONS: Dict[int, Migration] = {1: candidate_v1_to_v2, 2: candidate_v2_to_v3}


def _candidate_version(doc: Dict[str, Any]) -> int:
    if "candidate" in doc and "version" in doc:
        return _version_of(doc)
    if "id" in doc:
        return 1
    raise DecodeError("unrecognised candidate snapshot shape")


def encode_candidate(candidate: Candidate, now: Optional[datetime] = None) -> bytes:
    envelope = {
        "version": SCHEMA_VERSION,
        "savedAt": (now or utcnow()).isoformat(),
        "candidate": candidate.to_wire(),
    }
    return json.dumps(envelope, ensure_ascii=False).encode("utf-8")


def decode_candidate(raw: Union[bytes, str]) -> CandidateSnapshot:
    doc = _load_json(raw)
    if not isinstance(doc, dict):
        raise DecodeError("candidate snapshot is not an object")
    version = _candidate_version(doc)
    current = _run_chain(doc, version, CANDIDATE_MIGRATIONS)
    try:
        return CandidateSnapshot(
            candidate=Candidate.model_validate(current["candidate"]),
            saved_at=current.get("savedAt") or None,
            source_version=version,
        )
    except ValidationError as exc:
        raise DecodeError(f"invalid candidate snapshot: {exc}") from exc


# ---------------------------------------------------------------------------
# Primary store blob
# ---------------------------------------------------------------------------


def primary_v1_to_v2(doc: Dict[str, Any]) -> Dict[str, Any]:
    nested = doc.get("candidates")
    if isinstance(nested, str):
        nested = _load_json(nested)
    if isinstance(nested, list):
        nested = {"candidates": nested}
    if not isinstance(nested, dict):
        raise DecodeError("primary blob has no candidates slice")
    return {
        "version": 2,
        "candidates": json.dumps(nested),
        "_persist": {"version": 2, "rehydrated": True},
    }


def primary_v2_to_v3(doc: Dict[str, Any]) -> Dict[str, Any]:
    raw_slice = doc.get("candidates")
    state = _load_json(raw_slice) if isinstance(raw_slice, str) else raw_slice
    if isinstance(state, list):
        state = {"candidates": state}
    if not isinstance(state, dict):
        raise DecodeError("primary slice is not an object")

    records = state.get("candidates")
    entries: List[Any] = records if isinstance(records, list) else []
    active = state.get("activeCandidate")
    active_id = active.get("id") if isinstance(active, dict) else state.get("activeCandidateId")
    deleted = state.get("deletedCandidateIds")
    return {
        "version": 3,
        "candidates": entries,
        "view": {
            "activeCandidateId": active_id,
            "selectedCandidateId": state.get("selectedCandidateId"),
            "searchTerm": state.get("searchTerm") or "",
            "sortBy": state.get("sortBy") or "score",
            "sortOrder": state.get("sortOrder") or "desc",
        },
        "deletedCandidateIds": [str(i) for i in deleted] if isinstance(deleted, list) else [],
    }


PRIMARY_MIGRATIONS: Dict[int, Migration] = {1: primary_v1_to_v2, 2: primary_v2_to_v3}


def _primary_version(doc: Dict[str, Any]) -> int:
    if "version" in doc:
        return _version_of(doc)
    if isinstance(doc.get("_persist"), dict):
        return 2
    if "candidates" in doc:
        return 1
    raise DecodeError("unrecognised primary blob shape")


def encode_primary(store: CandidateStore) -> bytes:
    body = {"version": SCHEMA_VERSION, **store.to_wire()}
    return json.dumps(body, ensure_ascii=False).encode("utf-8")


def decode_primary(raw: Union[bytes, str]) -> PrimarySnapshot:
    """Decode the primary blob; individual corrupt candidates are skipped, not fatal."""

    doc = _load_json(raw)
    if not isinstance(doc, dict):
        raise DecodeError("primary blob is not an object")
    version = _primary_version(doc)
    current = _run_chain(doc, version, PRIMARY_MIGRATIONS)

    candidates: List[Candidate] = []
    skipped: List[str] = []
    entries = current.get("candidates")
    for entry in entries if isinstance(entries, list) else []:
        try:
            candidates.append(Candidate.model_validate(backfill_candidate(entry)))
        except (DecodeError, ValidationError) as exc:
            ref = entry.get("id", "?") if isinstance(entry, dict) else "?"
            logger.warning("Skipping corrupt candidate %s in primary blob: %s", ref, exc)
            skipped.append(str(ref))

    try:
        view = ViewState.model_validate(current.get("view") or {})
    except ValidationError as exc:
        logger.warning("Resetting corrupt view state in primary blob: %s", exc)
        view = ViewState()

    deleted = current.get("deletedCandidateIds")
    store = CandidateStore(
        candidates=candidates,
        view=view,
        deleted_candidate_ids=[str(i) for i in deleted] if isinstance(deleted, list) else [],
    )
    return PrimarySnapshot(store=store, source_version=version, skipped=skipped)


__all__ = [
    "CANDIDATE_MIGRATIONS",
    "CandidateSnapshot",
    "DecodeError",
    "PRIMARY_MIGRATIONS",
    "PrimarySnapshot",
    "SCHEMA_VERSION",
    "backfill_candidate",
    "candidate_v1_to_v2",
    "candidate_v2_to_v3",
    "decode_candidate",
    "decode_primary",
    "encode_candidate",
    "encode_primary",
    "primary_v1_to_v2",
    "primary_v2_to_v3",
]
