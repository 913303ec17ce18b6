"""Answer evaluation for closed-form question types, plus the neutral fallback verdict."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from adaptive_tutor.domain.concept.models import ErrorType, GapSeverity, Question, QuestionType

FLASHCARD_SELF_REPORT = {"correct", "got_it"}
FALLBACK_SCORE = 0.5
FALLBACK_FEEDBACK = "Answer recorded. Evaluation temporarily unavailable."


@dataclass(frozen=True)
class GapFinding:
    missing_concept: str
    severity: GapSeverity
    explanation: str = ""


@dataclass(frozen=True)
class Verdict:
    is_correct: bool
    score: float
    feedback: str
    explanation: Optional[str] = None
    error_type: Optional[ErrorType] = None
    gap: Optional[GapFinding] = None


def _normalise(text: str) -> str:
    return (text or "").strip().lower()


def evaluate_closed_form(question: Question, user_answer: str) -> Verdict:
    """mcq: exact match. fill_blank: exact or expected answer contained. flashcard: self-report or fill_blank rule."""
    given = _normalise(user_answer)
    expected = _normalise(question.correct_answer)

    if question.question_type == QuestionType.FREE_RESPONSE:
        raise ValueError("free_response answers are graded by the external grader")

    if question.question_type == QuestionType.MCQ:
        is_correct = given == expected
    else:
        is_correct = given == expected or (bool(expected) and expected in given)
        if question.question_type == QuestionType.FLASHCARD and given in FLASHCARD_SELF_REPORT:
            is_correct = True

    if question.question_type == QuestionType.FLASHCARD:
        feedback = "Great! You remembered." if is_correct else "Keep practicing — it'll come."
    else:
        feedback = "Correct!" if is_correct else f"Not quite. The correct answer is: {question.correct_answer}"

    return Verdict(
        is_correct=is_correct,
        score=1.0 if is_correct else 0.0,
        feedback=feedback,
        explanation=question.explanation or None,
    )


def fallback_verdict() -> Verdict:
    """Used when the grader is unavailable; the attempt still counts."""
    return Verdict(is_correct=False, score=FALLBACK_SCORE, feedback=FALLBACK_FEEDBACK)
