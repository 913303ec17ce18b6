"""Session composition: turns a pool of concepts and their question banks into one practice session.

Three pressures are balanced in a single pass:
  * priority: prerequisites and overdue concepts first,
  * cognitive load: easier question types and lower difficulty first while proficiency is low,
  * variety: a per-concept cap plus per-concept and session-wide same-type limits.

Previously attempted questions are never filtered out; the concept-level `next_due` gate is the
only eligibility control, so due questions keep being re-served at growing intervals.
"""
from __future__ import annotations
import math
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from adaptive_tutor.domain.concept.models import Concept, Question, QuestionSource

SECONDS_PER_DAY = 86_400.0

DEFAULT_TYPE_ORDER: Dict[str, int] = {
    "mcq": 0,
    "flashcard": 1,
    "fill_blank": 2,
    "free_response": 3,
}


@dataclass(frozen=True)
class SelectorSettings:
    per_concept_cap: int = 3
    session_type_cap_fraction: float = 0.4
    low_proficiency_threshold: float = 0.3
    per_concept_type_limit: int = 2
    low_proficiency_type_limit: int = 3
    prerequisite_boost: float = 2.0
    type_weight_base: float = 0.2
    type_weight_slope: float = 0.15
    type_weight_floor: float = 0.05
    difficulty_weight_base: float = 1.0
    difficulty_weight_slope: float = 0.5
    difficulty_weight_floor: float = 0.2
    type_order: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_TYPE_ORDER))

    def session_type_cap(self, limit: int) -> int:
        return math.ceil(limit * self.session_type_cap_fraction)

    def concept_type_limit(self, proficiency: float) -> int:
        if proficiency < self.low_proficiency_threshold:
            return self.low_proficiency_type_limit
        return self.per_concept_type_limit


@dataclass
class ConceptCandidate:
    concept: Concept
    questions: List[Question] = field(default_factory=list)
    is_prerequisite: bool = False


@dataclass(frozen=True)
class SessionItem:
    question: Question
    concept_id: str
    concept_name: str

    @property
    def sources(self) -> List[QuestionSource]:
        return self.question.cited_sources


@dataclass
class SessionPlan:
    items: List[SessionItem]
    due_concept_count: int
    concept_order: List[str] = field(default_factory=list)

    @property
    def type_counts(self) -> Counter:
        return Counter(_type_key(item.question) for item in self.items)


def _type_key(question: Question) -> str:
    return getattr(question.question_type, "value", question.question_type)


def _as_aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Concept level
# ------------------------------------------------------------------
def is_due(concept: Concept, now: datetime) -> bool:
    """Never-practiced concepts are always due."""
    if concept.next_due is None:
        return True
    return _as_aware(concept.next_due) <= _as_aware(now)


def overdue_days(concept: Concept, now: datetime) -> float:
    if concept.next_due is None:
        return 0.0
    delta = (_as_aware(now) - _as_aware(concept.next_due)).total_seconds() / SECONDS_PER_DAY
    return max(0.0, delta)


def concept_priority(concept: Concept, is_prerequisite: bool, now: datetime, settings: SelectorSettings) -> float:
    boost = settings.prerequisite_boost if is_prerequisite else 1.0
    return boost * (1.0 + overdue_days(concept, now))


# ------------------------------------------------------------------
# Question level
# ------------------------------------------------------------------
def question_rank_score(question: Question, proficiency: float, settings: SelectorSettings) -> float:
    """Lower is served first. Both weights shrink as proficiency rises."""
    type_rank = settings.type_order.get(_type_key(question), 99)
    type_weight = max(settings.type_weight_floor, settings.type_weight_base - proficiency * settings.type_weight_slope)
    difficulty_weight = max(
        settings.difficulty_weight_floor,
        settings.difficulty_weight_base - proficiency * settings.difficulty_weight_slope,
    )
    return type_rank * type_weight + question.difficulty * difficulty_weight


def rank_questions(questions: Iterable[Question], proficiency: float, settings: SelectorSettings) -> List[Question]:
    return sorted(questions, key=lambda q: question_rank_score(q, proficiency, settings))


def pick_for_concept(
    ranked: Sequence[Question],
    proficiency: float,
    session_type_counts: Counter,
    session_type_cap: int,
    settings: SelectorSettings,
) -> List[Question]:
    """
    Take up to `per_concept_cap` questions honouring both type limits.
    `session_type_counts` is updated in place with whatever is picked.
    If the limits reject everything, fall back to the unconstrained top of the ranking.
    """
    concept_type_limit = settings.concept_type_limit(proficiency)
    concept_counts: Counter = Counter()
    picked: List[Question] = []

    for question in ranked:
        if len(picked) >= settings.per_concept_cap:
            break
        kind = _type_key(question)
        if concept_counts[kind] + 1 > concept_type_limit:
            continue
        if session_type_counts[kind] + 1 > session_type_cap:
            continue
        concept_counts[kind] += 1
        session_type_counts[kind] += 1
        picked.append(question)

    if not picked:
        picked = list(ranked[: settings.per_concept_cap])
        for question in picked:
            session_type_counts[_type_key(question)] += 1

    return picked


# ------------------------------------------------------------------
# Session
# ------------------------------------------------------------------
def compose_session(
    candidates: Sequence[ConceptCandidate],
    limit: int,
    *,
    now: Optional[datetime] = None,
    due_only: bool = False,
    focus_concept_id: Optional[str] = None,
    locked_ids: Iterable[str] = (),
    settings: SelectorSettings = SelectorSettings(),
    rng: Optional[random.Random] = None,
) -> SessionPlan:
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    locked = set(locked_ids)

    eligible = [
        c for c in candidates
        if not c.concept.is_deprecated and (not due_only or is_due(c.concept, now))
    ]
    due_concept_count = len(eligible)
    if limit <= 0 or not eligible:
        return SessionPlan(items=[], due_concept_count=due_concept_count)

    scored = sorted(
        eligible,
        key=lambda c: concept_priority(c.concept, c.is_prerequisite, now, settings),
        reverse=True,
    )
    if focus_concept_id:
        scored = [c for c in scored if c.concept.id == focus_concept_id]
    if locked:
        scored = [c for c in scored if c.concept.id not in locked]

    session_type_cap = settings.session_type_cap(limit)
    session_type_counts: Counter = Counter()
    selected: List[SessionItem] = []
    concept_order: List[str] = []

    for candidate in scored:
        if len(selected) >= limit:
            break
        if not candidate.questions:
            continue
        proficiency = candidate.concept.proficiency
        ranked = rank_questions(candidate.questions, proficiency, settings)
        picked = pick_for_concept(ranked, proficiency, session_type_counts, session_type_cap, settings)
        concept_order.append(candidate.concept.id)
        selected.extend(
            SessionItem(question=q, concept_id=candidate.concept.id, concept_name=candidate.concept.name)
            for q in picked
        )

    seen = set()
    unique: List[SessionItem] = []
    for item in selected:
        if item.question.id in seen:
            continue
        seen.add(item.question.id)
        unique.append(item)

    cited = [item for item in unique if item.sources]
    uncited = [item for item in unique if not item.sources]
    rng.shuffle(cited)
    rng.shuffle(uncited)
    items = (cited + uncited)[:limit]

    return SessionPlan(items=items, due_concept_count=due_concept_count, concept_order=concept_order)
