"""Persistence services and the interview runtime built on the candidate store."""
from .backup import BackupWriter
from .countdown import QuestionTimer, TimerExpired
from .flush import FlushScheduler
from .reconcile import ReconcileReport, hydrate_from_primary, reconcile
from .scoring import ScoringUnavailableError
from .sessions import InterviewRuntime, ReentrantTransitionError

__all__ = [
    "BackupWriter",
    "FlushScheduler",
    "InterviewRuntime",
    "QuestionTimer",
    "ReconcileReport",
    "ReentrantTransitionError",
    "ScoringUnavailableError",
    "TimerExpired",
    "hydrate_from_primary",
    "reconcile",
]
