"""In-memory candidate store: authoritative records, view state and tombstones."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Tuple

from pydantic import Field

from .models import Candidate, CamelModel

SortBy = Literal["score", "name", "date", "status"]
SortOrder = Literal["asc", "desc"]

STATUS_RANK = {"completed": 3, "interview": 2, "paused": 1, "info_collection": 0}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ViewState(CamelModel):  # Dashboard and chat selection state stored beside the records
    active_candidate_id: Optional[str] = None
    selected_candidate_id: Optional[str] = None
    search_term: str = ""
    sort_by: SortBy = "score"
    sort_order: SortOrder = "desc"


class CandidateStore(CamelModel):
    """Authoritative collection of candidates.

    ``deleted_candidate_ids`` is the tombstone set. It is kept as an ordered,
    duplicate-free list and only ever grows.
    """

    candidates: List[Candidate] = Field(default_factory=list)
    view: ViewState = Field(default_factory=ViewState)
    deleted_candidate_ids: List[str] = Field(default_factory=list)

    def find(self, candidate_id: Optional[str]) -> Optional[Candidate]:
        if candidate_id is None:
            return None
        return next((c for c in self.candidates if c.id == candidate_id), None)

    def index_of(self, candidate_id: str) -> int:
        for index, candidate in enumerate(self.candidates):
            if candidate.id == candidate_id:
                return index
        return -1

    def is_tombstoned(self, candidate_id: str) -> bool:
        return candidate_id in self.deleted_candidate_ids

    def tombstone(self, candidate_id: str) -> None:
        if candidate_id not in self.deleted_candidate_ids:
            self.deleted_candidate_ids.append(candidate_id)

    @property
    def active_candidate(self) -> Optional[Candidate]:
        return self.find(self.view.active_candidate_id)

    def has_active_session(self) -> bool:
        """True while any candidate is mid-interview (running or paused)."""
        return any(c.is_active for c in self.candidates)

    def unfinished(self) -> List[Candidate]:
        """Candidates worth offering a "welcome back" resume prompt for."""
        return [
            c
            for c in self.candidates
            if c.status == "paused" or (c.status == "interview" and c.questions)
        ]

    def listing(self, view: Optional[ViewState] = None) -> List[Candidate]:
        """Return candidates filtered by the search term and sorted per ``view`` (default: the stored view)."""

        view = view or self.view
        filtered = [c for c in self.candidates if _matches(c, view.search_term)]
        reverse = view.sort_order == "desc"
        return sorted(filtered, key=lambda c: _sort_key(c, view.sort_by), reverse=reverse)


def _matches(candidate: Candidate, term: str) -> bool:
    if not term:
        return True
    lowered = term.lower()
    rating = candidate.summary.overall_rating.lower() if candidate.summary else ""
    return (
        lowered in candidate.name.lower()
        or lowered in candidate.email.lower()
        or term in candidate.phone
        or (bool(rating) and lowered in rating)
    )


def _sort_key(candidate: Candidate, sort_by: str) -> Tuple[Any, ...]:
    if sort_by == "score":
        return (candidate.total_score,)
    if sort_by == "name":
        return (candidate.name.lower(),)
    if sort_by == "date":
        return (candidate.created_at or _EPOCH,)
    return (STATUS_RANK.get(candidate.status, 0),)


__all__ = ["CandidateStore", "SortBy", "SortOrder", "STATUS_RANK", "ViewState"]
