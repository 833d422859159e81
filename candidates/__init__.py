"""Candidate records, the in-memory store and its lifecycle transitions."""
from .models import (
    DIFFICULTY_CAPS,
    DIFFICULTY_SECONDS,
    Candidate,
    CandidateFields,
    ChatMessage,
    InterviewSummary,
    Question,
)
from .store import CandidateStore, ViewState

__all__ = [
    "DIFFICULTY_CAPS",
    "DIFFICULTY_SECONDS",
    "Candidate",
    "CandidateFields",
    "CandidateStore",
    "ChatMessage",
    "InterviewSummary",
    "Question",
    "ViewState",
]
