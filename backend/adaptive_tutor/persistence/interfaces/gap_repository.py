"""Abstract repository interface for gap detections."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from adaptive_tutor.domain.concept.models import GapDetection, GapStatus


class GapRepository(ABC):

    @abstractmethod
    def save(self, detection: GapDetection) -> None:
        ...

    @abstractmethod
    def list_for(self, user_id: str, concept_id: str, status: Optional[GapStatus] = None) -> List[GapDetection]:
        """Newest first."""
        ...

    @abstractmethod
    def update_status(self, detection_ids: List[str], status: GapStatus) -> int:
        """Returns the number of rows changed."""
        ...
