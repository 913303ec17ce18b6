"""Gap proposals and extension suggestions: turning grader signals into graph changes."""
from __future__ import annotations
from typing import List, Optional

from loguru import logger

from adaptive_tutor.application.graph_app_service import GraphAppService, InsertionOutcome
from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import AddedBy, GapDetection, GapStatus, InsertPosition
from adaptive_tutor.domain.concept.rules import normalize_name
from adaptive_tutor.domain.gaps.pattern import GapPattern, GapSettings, find_pattern
from adaptive_tutor.integrations.collaborators import SuggestionAdvisor
from adaptive_tutor.integrations.schemas import ConceptSuggestion
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository
from adaptive_tutor.persistence.interfaces.gap_repository import GapRepository

_OPEN_STATUSES = (GapStatus.DETECTED, GapStatus.PROPOSED)


class GapAppService:
    def __init__(
        self,
        gaps: GapRepository,
        concepts: ConceptRepository,
        graph_service: GraphAppService,
        advisor: Optional[SuggestionAdvisor] = None,
        settings: GapSettings = GapSettings(),
    ):
        self._gaps = gaps
        self._concepts = concepts
        self._graph_service = graph_service
        self._advisor = advisor
        self._settings = settings

    def _check_owner(self, user_id: str, concept_id: str) -> Result[bool]:
        concept = self._concepts.get_by_id(concept_id)
        if not concept:
            return Result.not_found(f"Concept '{concept_id}' not found.")
        if concept.user_id != user_id:
            return Result.forbidden(f"Concept '{concept_id}' belongs to another learner.")
        return Result.ok(True)

    def _open_rows(self, user_id: str, concept_id: str, missing_concept: str) -> List[GapDetection]:
        key = normalize_name(missing_concept)
        rows: List[GapDetection] = []
        for status in _OPEN_STATUSES:
            rows.extend(d for d in self._gaps.list_for(user_id, concept_id, status) if normalize_name(d.missing_concept) == key)
        return rows

    # ------------------------------------------------------------------
    # Pattern
    # ------------------------------------------------------------------
    def check_pattern(self, user_id: str, concept_id: str) -> Result[Optional[GapPattern]]:
        owned = self._check_owner(user_id, concept_id)
        if not owned.is_success:
            return owned.propagate()
        detections = self._gaps.list_for(user_id, concept_id, GapStatus.DETECTED)
        return Result.ok(find_pattern(detections, self._settings))

    def mark_proposed(self, user_id: str, concept_id: str) -> Result[Optional[GapPattern]]:
        """check_pattern, and move the pattern's rows to `proposed` once it has been shown to the learner."""
        result = self.check_pattern(user_id, concept_id)
        if result.is_success and result.value is not None:
            self._gaps.update_status(result.value.detection_ids, GapStatus.PROPOSED)
        return result

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    def accept(self, user_id: str, graph_id: str, concept_id: str, missing_concept: str) -> Result[InsertionOutcome]:
        """Insert the missing concept as a prerequisite of `concept_id` and close the matching rows."""
        owned = self._check_owner(user_id, concept_id)
        if not owned.is_success:
            return owned.propagate()

        inserted = self._graph_service.insert_concept(
            user_id,
            graph_id,
            concept_id,
            missing_concept,
            position=InsertPosition.PREREQUISITE,
            added_by=AddedBy.EXTERNAL_SUGGESTION,
        )
        if not inserted.is_success:
            return inserted

        rows = self._open_rows(user_id, concept_id, missing_concept)
        self._gaps.update_status([row.id for row in rows], GapStatus.ACCEPTED)
        logger.info(f"Accepted gap '{missing_concept}' for concept {concept_id} ({len(rows)} detections)")
        return inserted

    def decline(self, user_id: str, concept_id: str, missing_concept: str) -> Result[int]:
        owned = self._check_owner(user_id, concept_id)
        if not owned.is_success:
            return owned.propagate()
        rows = self._open_rows(user_id, concept_id, missing_concept)
        return Result.ok(self._gaps.update_status([row.id for row in rows], GapStatus.DECLINED))

    # ------------------------------------------------------------------
    # Extension suggestion
    # ------------------------------------------------------------------
    def suggest_extension(self, user_id: str, graph_id: str, concept_id: str) -> Result[Optional[ConceptSuggestion]]:
        """Best effort: any advisor failure means "no suggestion"."""
        view = self._graph_service.get_graph(user_id, graph_id)
        if not view.is_success:
            return view.propagate()
        concept = view.value.concepts.get(concept_id)
        if concept is None:
            return Result.not_found(f"Concept '{concept_id}' is not part of graph '{graph_id}'.")
        if self._advisor is None:
            return Result.ok(None)

        existing = [c.name for c in view.value.concepts.values()]
        try:
            return Result.ok(self._advisor.suggest_extension(concept.name, existing))
        except Exception as e:
            logger.debug(f"Extension suggestion for '{concept.name}' failed: {e}")
            return Result.ok(None)
