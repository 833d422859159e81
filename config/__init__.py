"""Configuration package for the interview persistence services."""
from .registry import (
    QUESTIONS_KEY,
    RESUME_KEY,
    SCORER_KEY,
    SUMMARY_KEY,
    bind_collaborator,
    get_collaborator,
    unbind_collaborator,
)
from .settings import Settings, settings

__all__ = [
    "QUESTIONS_KEY",
    "RESUME_KEY",
    "SCORER_KEY",
    "SUMMARY_KEY",
    "bind_collaborator",
    "get_collaborator",
    "unbind_collaborator",
    "Settings",
    "settings",
]
