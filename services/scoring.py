"""Answer scoring and summary helpers with difficulty-derived fallbacks."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel

from candidates.models import DIFFICULTY_CAPS, Candidate, InterviewSummary, Question
from config.registry import SCORER_KEY, SUMMARY_KEY, get_collaborator
from observability.logger import log_event

logger = logging.getLogger(__name__)

FALLBACK_FEEDBACK = "Answer received and evaluated."
NO_SELECTION_FEEDBACK = "No answer selected."
NO_TEXT_FEEDBACK = "No answer provided."
FALLBACK_NOTICE = "Could not score this answer, default applied."

Scorer = Callable[..., Mapping[str, Any]]
Summarizer = Callable[..., Any]


class ScoringUnavailableError(RuntimeError):
    """The external scoring collaborator could not produce a score."""


class ScoreOutcome(BaseModel):
    score: int
    feedback: str
    fallback_applied: bool = False
    notice: Optional[str] = None


def fallback_score(difficulty: str) -> int:
    """Half the difficulty cap: Easy 5, Medium 10, Hard 15."""
    return DIFFICULTY_CAPS[difficulty] // 2


def clamp_score(score: Any, difficulty: str) -> int:
    cap = DIFFICULTY_CAPS[difficulty]
    return max(0, min(cap, int(score)))


def mcq_scorer(question: Question, answer: str = "", selected_answer: Optional[int] = None) -> Dict[str, Any]:
    """Default scorer: full cap for the correct option, zero otherwise.

    Free-text answers cannot be graded locally and raise
    :class:`ScoringUnavailableError` unless they are empty.
    """

    if not question.is_multiple_choice:
        if not (answer or "").strip():
            return {"score": 0, "feedback": NO_TEXT_FEEDBACK}
        raise ScoringUnavailableError("free-text answers need an external scorer")
    if selected_answer is None:
        return {"score": 0, "feedback": NO_SELECTION_FEEDBACK}
    if question.correct_answer is None:
        raise ScoringUnavailableError("question has no answer key")

    if selected_answer == question.correct_answer:
        return {"score": question.cap, "feedback": f"Correct! {question.explanation or 'Well done.'}"}
    chosen = question.options[selected_answer] if 0 <= selected_answer < len(question.options) else "Unknown"
    correct = question.options[question.correct_answer]
    return {
        "score": 0,
        "feedback": f'Incorrect. You selected "{chosen}" but the correct answer is "{correct}". '
        f"{question.explanation or ''}".rstrip(),
    }


def resolve_scorer() -> Scorer:
    try:
        return get_collaborator(SCORER_KEY)
    except KeyError:
        return mcq_scorer


def score_answer(
    candidate_id: str,
    question: Question,
    answer: str,
    selected_answer: Optional[int],
    scorer: Optional[Scorer] = None,
) -> ScoreOutcome:
    """Score an answer through the collaborator, clamping to the difficulty cap.

    Any failure of the collaborator yields the difficulty fallback so the
    interview can always proceed.
    """

    fn = scorer or resolve_scorer()
    try:
        result = fn(question=question, answer=answer, selected_answer=selected_answer)
        if not isinstance(result, Mapping) or "score" not in result:
            raise ScoringUnavailableError(f"scorer returned {result!r}")
        return ScoreOutcome(
            score=clamp_score(result["score"], question.difficulty),
            feedback=str(result.get("feedback") or ""),
        )
    except Exception as exc:  # collaborator boundary: any failure maps to the fallback
        logger.warning("Scoring failed for %s/%s: %s", candidate_id, question.id, exc)
        log_event("scoring_fallback", candidate_id, question=question.id, reason=str(exc))
        return ScoreOutcome(
            score=fallback_score(question.difficulty),
            feedback=FALLBACK_FEEDBACK,
            fallback_applied=True,
            notice=FALLBACK_NOTICE,
        )


def fallback_summary(candidate: Candidate) -> InterviewSummary:
    """Threshold-based summary used when no summary writer is available."""

    total = candidate.total_score
    maximum = candidate.max_score or candidate.cap_sum()
    percentage = (total / maximum * 100) if maximum else 0.0
    if percentage >= 80:
        rating, recommendation = "Excellent", "Strong Hire"
    elif percentage >= 65:
        rating, recommendation = "Good", "Hire"
    elif percentage >= 50:
        rating, recommendation = "Average", "Maybe"
    else:
        rating, recommendation = "Below Average", "No Hire"

    name = candidate.name or "The candidate"
    return InterviewSummary(
        overall_rating=rating,
        recommendation=recommendation,
        summary=f"{name} completed the interview with a score of {total}/{maximum} ({percentage:.1f}%).",
        technical_strengths=["Completed all questions", "Participated in full interview"],
        areas_for_improvement=["Could improve technical depth", "Practice more coding scenarios"],
        key_highlights=[f"Score: {total}/{maximum}", "Interview completion rate: 100%"],
        final_score=total,
        max_score=maximum,
    )


def build_summary(candidate: Candidate, summarizer: Optional[Summarizer] = None) -> InterviewSummary:
    fn = summarizer
    if fn is None:
        try:
            fn = get_collaborator(SUMMARY_KEY)
        except KeyError:
            return fallback_summary(candidate)
    try:
        produced = fn(candidate=candidate)
        summary = produced if isinstance(produced, InterviewSummary) else InterviewSummary.model_validate(produced)
    except Exception as exc:  # collaborator boundary
        logger.warning("Summary generation failed for %s: %s", candidate.id, exc)
        return fallback_summary(candidate)
    if summary.final_score is None:
        summary.final_score = candidate.total_score
    if summary.max_score is None:
        summary.max_score = candidate.max_score
    return summary


__all__ = [
    "FALLBACK_FEEDBACK",
    "FALLBACK_NOTICE",
    "ScoreOutcome",
    "ScoringUnavailableError",
    "build_summary",
    "clamp_score",
    "fallback_score",
    "fallback_summary",
    "mcq_scorer",
    "resolve_scorer",
    "score_answer",
]
