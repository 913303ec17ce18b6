"""Elo-style proficiency estimator and prior-knowledge seeding."""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from adaptive_tutor.domain.concept.rules import clamp, clamp_tier

_EXPERT_MARKERS = ("expert", "phd", "years of experience", "professional")
_INTERMEDIATE_MARKERS = ("some", "familiar", "worked with", "took a course", "basic understanding")


@dataclass(frozen=True)
class ProficiencySettings:
    k_factor: float = 0.3
    slope: float = 4.0
    confidence_step: float = 0.15
    tier_penalty: float = 0.15


def expected_success(proficiency: float, difficulty: float, slope: float = 4.0) -> float:
    """Logistic expectation that a learner at `proficiency` answers an item of `difficulty`."""
    return 1.0 / (1.0 + math.exp(-slope * (proficiency - difficulty)))


def update_proficiency(
    proficiency: float,
    confidence: float,
    question_difficulty: float,
    is_correct: bool,
    score: Optional[float] = None,
    settings: ProficiencySettings = ProficiencySettings(),
) -> Tuple[float, float]:
    """
    Returns (new_proficiency, new_confidence).

    `score` defaults to 1/0 from `is_correct`; free-response passes its continuous grade.
    Confidence grows on every attempt, whatever the outcome.
    """
    if score is None:
        score = 1.0 if is_correct else 0.0
    expected = expected_success(proficiency, question_difficulty, settings.slope)
    new_proficiency = clamp(proficiency + settings.k_factor * (score - expected))
    new_confidence = clamp(confidence + settings.confidence_step * (1.0 - confidence))
    return new_proficiency, new_confidence


def infer_initial_proficiency(
    prior_knowledge: str,
    difficulty_tier: int,
    settings: ProficiencySettings = ProficiencySettings(),
) -> Tuple[float, float]:
    """Low-confidence prior from a free-text "what I already know" statement."""
    if not prior_knowledge or not prior_knowledge.strip():
        return 0.0, 0.0

    lower = prior_knowledge.lower()
    if any(marker in lower for marker in _EXPERT_MARKERS):
        base_proficiency, base_confidence = 0.7, 0.3
    elif any(marker in lower for marker in _INTERMEDIATE_MARKERS):
        base_proficiency, base_confidence = 0.4, 0.25
    else:
        base_proficiency, base_confidence = 0.15, 0.2

    penalty = (clamp_tier(difficulty_tier) - 1) * settings.tier_penalty
    return clamp(base_proficiency - penalty), base_confidence
