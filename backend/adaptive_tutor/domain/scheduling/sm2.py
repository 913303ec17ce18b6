"""SM-2 spaced repetition: pure functions, no side effects.

Quality scale (0-5):
    5  perfect answer, immediate recall
    4  correct with hesitation
    3  correct with serious difficulty
    2  incorrect, but the answer was remembered
    1  incorrect, answer forgotten
    0  complete blackout

The schedule belongs to the concept, not to individual questions.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from adaptive_tutor.domain.concept.models import DEFAULT_EASE_FACTOR, DEFAULT_INTERVAL, MIN_EASE_FACTOR


@dataclass(frozen=True)
class SM2State:
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    repetition_count: int = 0


@dataclass(frozen=True)
class QualitySettings:
    fast_ms: int = 10_000
    medium_ms: int = 30_000


def quality_from_outcome(is_correct: bool, time_taken_ms: int, settings: QualitySettings = QualitySettings()) -> int:
    """Map an answer outcome to an SM-2 quality score."""
    if not is_correct:
        return 1
    if time_taken_ms < settings.fast_ms:
        return 5
    if time_taken_ms < settings.medium_ms:
        return 4
    return 3


def advance(state: SM2State, quality: int) -> SM2State:
    """Return the state after one review. `state` is not mutated."""
    if not 0 <= quality <= 5:
        raise ValueError(f"quality must be an integer in 0..5, got {quality}")

    if quality < 3:
        repetition_count = 0
        interval = 1
    else:
        repetition_count = state.repetition_count + 1
        if repetition_count == 1:
            interval = 1
        elif repetition_count == 2:
            interval = 3
        else:
            # pre-update ease factor, half-up rounding
            interval = max(1, math.floor(state.interval * state.ease_factor + 0.5))

    miss = 5 - quality
    ease_factor = max(MIN_EASE_FACTOR, state.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))

    return replace(state, ease_factor=ease_factor, interval=interval, repetition_count=repetition_count)


def next_due_date(interval: int, now: Optional[datetime] = None) -> datetime:
    """Today + `interval` days."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=interval)
