"""Abstract repository interface for the per-concept question bank."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from adaptive_tutor.domain.concept.models import Question


class QuestionRepository(ABC):

    @abstractmethod
    def save_many(self, questions: List[Question]) -> None:
        ...

    @abstractmethod
    def get_by_id(self, question_id: str) -> Optional[Question]:
        ...

    @abstractmethod
    def list_by_concept(self, concept_id: str) -> List[Question]:
        ...

    @abstractmethod
    def list_by_concepts(self, concept_ids: List[str]) -> Dict[str, List[Question]]:
        """One query for many concepts, grouped by concept id."""
        ...

    @abstractmethod
    def count_by_concept(self, concept_id: str) -> int:
        ...
