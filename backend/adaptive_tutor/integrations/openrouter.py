"""OpenRouter (OpenAI-compatible chat completions) implementation of the collaborator contracts."""
from __future__ import annotations
import json
from typing import List, Optional, Sequence

import requests
from loguru import logger

from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.integrations.collaborators import (
    CollaboratorError,
    FreeResponseGrader,
    QuestionGenerator,
    SuggestionAdvisor,
)
from adaptive_tutor.integrations.schemas import ConceptSuggestion, GraderVerdict, decode, strip_code_fence

_TIER_LABELS = {1: "introductory", 2: "intermediate", 3: "advanced"}


class OpenRouterClient(QuestionGenerator, FreeResponseGrader, SuggestionAdvisor):

    def __init__(self, api_key: str, url: str, model: str, timeout: float = 30.0, questions_per_concept: int = 5):
        self._api_key = api_key
        self._url = url
        self._model = model
        self._timeout = timeout
        self._questions_per_concept = questions_per_concept

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _complete(self, system: str, prompt: str, temperature: float = 0.7) -> str:
        if not self._api_key:
            raise CollaboratorError("OPENROUTER_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "X-Title": "Adaptive Tutor",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            response = requests.post(self._url, headers=headers, json=payload, timeout=self._timeout)
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            raise CollaboratorError(f"OpenRouter request failed: {e}") from e

    @staticmethod
    def _unwrap(result: Result):
        if not result.is_success:
            raise CollaboratorError(result.error)
        return result.value

    # ------------------------------------------------------------------
    # QuestionGenerator
    # ------------------------------------------------------------------
    def generate_questions(
        self,
        concept_name: str,
        description: str,
        key_terms: Sequence[str],
        difficulty_tier: int,
        source_excerpts: Sequence[str] = (),
        temperature: float = 0.7,
    ) -> List[dict]:
        level = _TIER_LABELS.get(difficulty_tier, "intermediate")
        terms = ", ".join(key_terms) or "(none)"
        about = description or "(none)"
        sources = "\n".join(f"[{i}] {excerpt}" for i, excerpt in enumerate(source_excerpts, start=1))
        reference = f"Reference material (cite as [N] when used):\n{sources}" if sources else ""
        prompt = f"""
        Write {self._questions_per_concept} practice questions for the concept "{concept_name}" at an {level} level.
        Description: {about}
        Key terms: {terms}
        {reference}

        Mix the types mcq, flashcard, fill_blank and free_response.
        Return ONLY JSON:
        {{"questions": [{{"question_type": "mcq", "question_text": "...", "correct_answer": "...",
          "distractors": ["..."], "explanation": "...", "difficulty": 0.4,
          "sources": [{{"index": 1, "page_title": "...", "page_url": "..."}}]}}]}}
        """
        raw = self._complete("You write assessment items and output only JSON.", prompt, temperature)
        try:
            payload = json.loads(strip_code_fence(raw))
        except ValueError as e:
            raise CollaboratorError(f"Generator returned invalid JSON: {e}") from e
        items = payload.get("questions") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise CollaboratorError("Generator response has no question list")
        return [item for item in items if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # FreeResponseGrader
    # ------------------------------------------------------------------
    def grade(self, question: str, rubric: str, user_answer: str, concept_name: str) -> GraderVerdict:
        prompt = f"""
        Concept: {concept_name}
        Question: {question}
        Reference answer / rubric: {rubric}
        Learner answer: {user_answer}

        Grade the learner answer. If the mistake shows a missing foundational concept that is different
        from "{concept_name}", set error_type to PREREQUISITE_GAP and name it in gap_analysis.
        Return ONLY JSON:
        {{"correct": true, "score": 0.0, "feedback": "...", "explanation": "...",
          "error_type": "CORRECT|MINOR|MISCONCEPTION|PREREQUISITE_GAP",
          "gap_analysis": {{"missing_concept": "...", "severity": "NARROW|MODERATE|BROAD", "explanation": "..."}}}}
        """
        raw = self._complete("You are a strict but fair grader. You output only JSON.", prompt, temperature=0.2)
        return self._unwrap(decode(raw, GraderVerdict))

    # ------------------------------------------------------------------
    # SuggestionAdvisor
    # ------------------------------------------------------------------
    def suggest_extension(self, concept_name: str, existing_names: Sequence[str]) -> Optional[ConceptSuggestion]:
        existing = ", ".join(existing_names) or "(none)"
        prompt = f"""
        A learner has mastered "{concept_name}". Existing concepts: {existing}.
        Propose ONE concept that naturally comes next and is not already in the list.
        Return ONLY JSON: {{"name": "...", "rationale": "..."}}
        """
        raw = self._complete("You design curricula. You output only JSON.", prompt, temperature=0.5)
        suggestion = self._unwrap(decode(raw, ConceptSuggestion))
        if suggestion.name.strip().lower() in {n.strip().lower() for n in existing_names}:
            logger.debug(f"Advisor suggested existing concept '{suggestion.name}', ignoring")
            return None
        return suggestion
