"""Contracts for the external collaborators the core delegates to."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from adaptive_tutor.integrations.schemas import ConceptSuggestion, GraderVerdict


class CollaboratorError(Exception):
    """Transport failure, timeout, or an undecodable response from a collaborator."""


class QuestionGenerator(ABC):

    @abstractmethod
    def generate_questions(
        self,
        concept_name: str,
        description: str,
        key_terms: Sequence[str],
        difficulty_tier: int,
        source_excerpts: Sequence[str] = (),
        temperature: float = 0.7,
    ) -> List[dict]:
        """Raw question items; the caller validates each one before storing it."""


class FreeResponseGrader(ABC):

    @abstractmethod
    def grade(self, question: str, rubric: str, user_answer: str, concept_name: str) -> GraderVerdict: ...


class SuggestionAdvisor(ABC):

    @abstractmethod
    def suggest_extension(self, concept_name: str, existing_names: Sequence[str]) -> Optional[ConceptSuggestion]: ...
