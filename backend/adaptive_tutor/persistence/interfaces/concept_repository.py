"""Abstract repository interface for the Concept aggregate."""
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from adaptive_tutor.domain.concept.models import Concept


class ConceptRepository(ABC):

    @abstractmethod
    def save(self, concept: Concept) -> None:
        """Insert or update the concept row."""
        ...

    @abstractmethod
    def get_by_id(self, concept_id: str) -> Optional[Concept]:
        ...

    @abstractmethod
    def find_by_normalized_name(self, user_id: str, name_normalized: str) -> Optional[Concept]:
        """Dedup lookup: at most one concept per (user, normalised name)."""
        ...

    @abstractmethod
    def list_by_user(self, user_id: str, include_deprecated: bool = False) -> List[Concept]:
        ...

    @abstractmethod
    def list_by_ids(self, concept_ids: List[str]) -> List[Concept]:
        ...

    @abstractmethod
    def list_due(self, user_id: str, now: datetime, graph_id: Optional[str] = None) -> List[Concept]:
        """Active concepts never practiced or with next_due <= now, optionally limited to one graph."""
        ...
