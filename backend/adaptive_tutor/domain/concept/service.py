"""Domain service: pure business logic for concept creation, merging and mastery updates."""
from __future__ import annotations
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import Concept
from adaptive_tutor.domain.concept.rules import (
    normalize_name,
    validate_concept_content,
    validate_manual_adjustment,
)
from adaptive_tutor.domain.scheduling.sm2 import SM2State


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def merge_proficiency(p_old: float, c_old: float, p_new: float, c_new: float) -> Tuple[float, float]:
    """Confidence-weighted average of two estimates; (0, 0) when neither carries any confidence."""
    total = c_old + c_new
    merged = (p_old * c_old + p_new * c_new) / total if total > 0 else 0.0
    return merged, max(c_old, c_new)


class ConceptDomainService:
    """
    Pure domain operations: no I/O. Methods return Result[T] where the input can be rejected.
    The application layer calls these and then persists via the repositories.
    """

    def create_concept(self, user_id: str, data: dict) -> Result[Concept]:
        validation = validate_concept_content(data)
        if not validation.is_success:
            return validation.propagate()

        now = _now_iso()
        name = data["name"].strip()
        return Result.ok(
            Concept(
                id=_new_id(),
                user_id=user_id,
                name=name,
                name_normalized=normalize_name(name),
                description=data.get("description") or "",
                key_terms=list(data.get("key_terms") or []),
                proficiency=float(data.get("proficiency") or 0.0),
                confidence=float(data.get("confidence") or 0.0),
                attempt_count=int(data.get("attempt_count") or 0),
                created_at=now,
                updated_at=now,
            )
        )

    def merge_observation(
        self,
        existing: Concept,
        description: str,
        key_terms: List[str],
        proficiency: float,
        confidence: float,
        attempt_count: int = 0,
    ) -> Concept:
        """
        Fold a second sighting of the same concept into the stored record.
        A learner's manual override is kept as-is; only empty text fields are filled.
        """
        if existing.is_manually_adjusted:
            merged_p, merged_c = existing.proficiency, existing.confidence
        else:
            merged_p, merged_c = merge_proficiency(existing.proficiency, existing.confidence, proficiency, confidence)

        return replace(
            existing,
            proficiency=merged_p,
            confidence=merged_c,
            attempt_count=existing.attempt_count + attempt_count,
            description=existing.description or description or "",
            key_terms=list(existing.key_terms) or list(key_terms or []),
            updated_at=_now_iso(),
        )

    def apply_practice(
        self,
        concept: Concept,
        state: SM2State,
        proficiency: float,
        confidence: float,
        next_due: datetime,
        practiced_at: Optional[datetime] = None,
    ) -> Concept:
        return replace(
            concept,
            proficiency=proficiency,
            confidence=confidence,
            ease_factor=state.ease_factor,
            interval=state.interval,
            repetition_count=state.repetition_count,
            next_due=next_due,
            last_practiced=practiced_at or datetime.now(timezone.utc),
            attempt_count=concept.attempt_count + 1,
            updated_at=_now_iso(),
        )

    def adjust(self, concept: Concept, changes: dict) -> Result[Concept]:
        """Learner edit. Touching proficiency or confidence flags the concept as manually adjusted."""
        if concept.is_deprecated:
            return Result.fail("Deprecated concepts cannot be edited.")
        validation = validate_manual_adjustment(changes)
        if not validation.is_success:
            return validation.propagate()

        updated = replace(concept, updated_at=_now_iso())
        if "name" in changes:
            updated.name = changes["name"].strip()
            updated.name_normalized = normalize_name(updated.name)
        if "description" in changes:
            updated.description = changes["description"] or ""
        if "key_terms" in changes:
            updated.key_terms = list(changes["key_terms"] or [])
        if "proficiency" in changes:
            updated.proficiency = float(changes["proficiency"])
            updated.is_manually_adjusted = True
        if "confidence" in changes:
            updated.confidence = float(changes["confidence"])
            updated.is_manually_adjusted = True
        return Result.ok(updated)

    def deprecate(self, concept: Concept) -> Result[Concept]:
        if concept.is_deprecated:
            return Result.fail(f"Concept '{concept.id}' is already deprecated.")
        return Result.ok(replace(concept, is_deprecated=True, updated_at=_now_iso()))
