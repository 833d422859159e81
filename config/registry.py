"""In-memory registry for external collaborators (scoring, questions, summaries)."""
from typing import Any, Callable, Dict

_REGISTRY: Dict[str, Callable[..., Any]] = {}


def bind_collaborator(key: str, fn: Callable[..., Any]) -> None:
    """Bind a callable implementation to a registry key."""
    _REGISTRY[key] = fn


def unbind_collaborator(key: str) -> None:
    _REGISTRY.pop(key, None)


def get_collaborator(key: str) -> Callable[..., Any]:
    """Retrieve a callable from the registry.

    Raises:
        KeyError: If no callable has been bound for ``key``.
    """

    if key not in _REGISTRY:
        raise KeyError(f"Collaborator not bound in registry: {key}")
    return _REGISTRY[key]


SCORER_KEY = "collaborators.answer_scorer"
QUESTIONS_KEY = "collaborators.question_generator"
SUMMARY_KEY = "collaborators.summary_writer"
RESUME_KEY = "collaborators.resume_extractor"
