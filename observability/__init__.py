"""Observability utilities for the candidate persistence stack."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
