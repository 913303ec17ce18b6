"""Abstract repository interface for practice sessions and the immutable attempt log."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from adaptive_tutor.domain.concept.models import AttemptRecord, SessionRecord


class PracticeRepository(ABC):

    @abstractmethod
    def save_session(self, session: SessionRecord) -> None:
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def find_active_session(self, user_id: str, graph_id: Optional[str] = None) -> Optional[SessionRecord]:
        """Most recent un-ended session for the user (and graph, when given)."""
        ...

    @abstractmethod
    def record_attempt(self, attempt: AttemptRecord) -> None:
        """Append-only: an attempt row is never updated."""
        ...

    @abstractmethod
    def find_attempt_by_key(self, user_id: str, idempotency_key: str) -> Optional[AttemptRecord]:
        """Keys are scoped per learner."""
        ...

    @abstractmethod
    def list_attempts(self, session_id: str) -> List[AttemptRecord]:
        ...
