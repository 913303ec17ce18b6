"""Business rules for the Concept domain: name normalisation and value ranges."""
from __future__ import annotations
from typing import Optional

from adaptive_tutor.domain.common.result import Result

# Fields a learner may override by hand; anything else in a PATCH body is rejected.
EDITABLE_FIELDS = {"name", "description", "key_terms", "proficiency", "confidence"}


def normalize_name(name: str) -> str:
    """Dedup key: trim + lowercase."""
    return (name or "").strip().lower()


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def clamp_tier(tier: Optional[int], low: int = 1, high: int = 3) -> int:
    return max(low, min(high, tier or low))


def validate_concept_content(data: dict) -> Result[dict]:
    """Validates that a concept has a usable name and in-range seed values."""
    name = (data.get("name") or "").strip()
    if not name:
        return Result.fail("Concept 'name' is required and cannot be empty.")
    for key in ("proficiency", "confidence"):
        value = data.get(key)
        if value is not None and not 0.0 <= float(value) <= 1.0:
            return Result.fail(f"'{key}' must be within [0, 1], got {value}.")
    return Result.ok(data)


def validate_manual_adjustment(changes: dict) -> Result[dict]:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        return Result.fail(f"Fields {sorted(unknown)} cannot be edited. Editable: {sorted(EDITABLE_FIELDS)}.")
    if "name" in changes and not (changes["name"] or "").strip():
        return Result.fail("Concept 'name' cannot be empty.")
    for key in ("proficiency", "confidence"):
        if key in changes and not 0.0 <= float(changes[key]) <= 1.0:
            return Result.fail(f"'{key}' must be within [0, 1], got {changes[key]}.")
    return Result.ok(changes)
