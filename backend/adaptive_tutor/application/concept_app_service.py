"""Application service: orchestrates validate → domain op → persist for concepts."""
from __future__ import annotations
from dataclasses import replace
from typing import List, Sequence, Tuple

from loguru import logger

from adaptive_tutor.domain.common.result import CONFLICT, Result
from adaptive_tutor.domain.concept.models import Concept, Question
from adaptive_tutor.domain.concept.rules import normalize_name
from adaptive_tutor.domain.concept.service import ConceptDomainService
from adaptive_tutor.domain.proficiency.model import ProficiencySettings, infer_initial_proficiency
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository
from adaptive_tutor.persistence.interfaces.question_repository import QuestionRepository


class ConceptAppService:
    def __init__(
        self,
        db: Database,
        repo: ConceptRepository,
        questions: QuestionRepository,
        proficiency_settings: ProficiencySettings = ProficiencySettings(),
    ):
        self._db = db
        self._repo = repo
        self._questions = questions
        self._proficiency_settings = proficiency_settings
        self._domain = ConceptDomainService()

    # ------------------------------------------------------------------
    # FIND OR CREATE
    # ------------------------------------------------------------------
    def find_or_create(
        self,
        user_id: str,
        name: str,
        description: str = "",
        key_terms: Sequence[str] = (),
        proficiency: float = 0.0,
        confidence: float = 0.0,
        attempt_count: int = 0,
    ) -> Result[Tuple[str, bool]]:
        """Resolve (user, name) to one concept. Returns (concept_id, was_reused)."""
        with self._db.transaction():
            existing = self._repo.find_by_normalized_name(user_id, normalize_name(name))
            if existing:
                merged = self._domain.merge_observation(
                    existing, description, list(key_terms), proficiency, confidence, attempt_count
                )
                if merged.is_deprecated:
                    merged = replace(merged, is_deprecated=False)
                self._repo.save(merged)
                return Result.ok((existing.id, True))

            result = self._domain.create_concept(
                user_id,
                {
                    "name": name,
                    "description": description,
                    "key_terms": list(key_terms),
                    "proficiency": proficiency,
                    "confidence": confidence,
                    "attempt_count": attempt_count,
                },
            )
            if not result.is_success:
                return result.propagate()
            self._repo.save(result.value)
            logger.debug(f"Created concept '{result.value.name}' ({result.value.id}) for {user_id}")
            return Result.ok((result.value.id, False))

    def find_or_create_seeded(
        self,
        user_id: str,
        name: str,
        description: str = "",
        key_terms: Sequence[str] = (),
        prior_knowledge: str = "",
        depth_tier: int = 1,
    ) -> Result[Tuple[str, bool]]:
        """find_or_create with the starting estimate inferred from a prior-knowledge statement."""
        proficiency, confidence = infer_initial_proficiency(prior_knowledge, depth_tier, self._proficiency_settings)
        return self.find_or_create(user_id, name, description, key_terms, proficiency, confidence)

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def get_concept(self, user_id: str, concept_id: str) -> Result[Concept]:
        concept = self._repo.get_by_id(concept_id)
        if not concept:
            return Result.not_found(f"Concept '{concept_id}' not found.")
        if concept.user_id != user_id:
            return Result.forbidden(f"Concept '{concept_id}' belongs to another learner.")
        return Result.ok(concept)

    def list_concepts(self, user_id: str, include_deprecated: bool = False) -> List[Concept]:
        return self._repo.list_by_user(user_id, include_deprecated=include_deprecated)

    def list_questions(self, user_id: str, concept_id: str) -> Result[List[Question]]:
        found = self.get_concept(user_id, concept_id)
        if not found.is_success:
            return found.propagate()
        return Result.ok(self._questions.list_by_concept(concept_id))

    # ------------------------------------------------------------------
    # UPDATE
    # ------------------------------------------------------------------
    def adjust_concept(self, user_id: str, concept_id: str, changes: dict) -> Result[Concept]:
        with self._db.transaction():
            found = self.get_concept(user_id, concept_id)
            if not found.is_success:
                return found
            concept = found.value

            result = self._domain.adjust(concept, changes)
            if not result.is_success:
                return result
            updated = result.value

            if updated.name_normalized != concept.name_normalized:
                clash = self._repo.find_by_normalized_name(user_id, updated.name_normalized)
                if clash and clash.id != concept.id:
                    return Result.fail(f"A concept named '{clash.name}' already exists.", CONFLICT)

            self._repo.save(updated)
            return Result.ok(updated)

    # ------------------------------------------------------------------
    # DEPRECATE
    # ------------------------------------------------------------------
    def deprecate_concept(self, user_id: str, concept_id: str) -> Result[Concept]:
        with self._db.transaction():
            found = self.get_concept(user_id, concept_id)
            if not found.is_success:
                return found
            result = self._domain.deprecate(found.value)
            if not result.is_success:
                return result
            self._repo.save(result.value)
            return Result.ok(result.value)
