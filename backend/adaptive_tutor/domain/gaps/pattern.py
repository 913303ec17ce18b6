"""Gap pattern matching: a missing prerequisite is only proposed once it has been seen repeatedly."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from adaptive_tutor.domain.concept.models import GapDetection, GapSeverity, GapStatus
from adaptive_tutor.domain.concept.rules import normalize_name


@dataclass(frozen=True)
class GapSettings:
    pattern_threshold: int = 2


@dataclass(frozen=True)
class GapPattern:
    missing_concept: str
    severity: GapSeverity
    explanation: str
    occurrences: int
    detection_ids: List[str]


def find_pattern(detections: Sequence[GapDetection], settings: GapSettings = GapSettings()) -> Optional[GapPattern]:
    """
    Group `detected` rows by normalised missing concept name; the first group (by most recent sighting)
    reaching the threshold wins. Severity and explanation come from its most recent row.
    """
    groups: Dict[str, List[GapDetection]] = {}
    ordered = sorted(
        (d for d in detections if d.status == GapStatus.DETECTED),
        key=lambda d: d.created_at,
        reverse=True,
    )
    for detection in ordered:
        groups.setdefault(normalize_name(detection.missing_concept), []).append(detection)

    for rows in groups.values():
        if len(rows) >= settings.pattern_threshold:
            latest = rows[0]
            return GapPattern(
                missing_concept=latest.missing_concept,
                severity=latest.severity,
                explanation=latest.explanation,
                occurrences=len(rows),
                detection_ids=[row.id for row in rows],
            )
    return None
