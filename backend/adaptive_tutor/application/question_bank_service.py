"""Question bank upkeep: idempotent generation per concept, run in the background."""
from __future__ import annotations
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from loguru import logger
from pydantic import ValidationError

from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import Question, QuestionSource
from adaptive_tutor.domain.concept.rules import clamp_tier
from adaptive_tutor.integrations.collaborators import CollaboratorError, QuestionGenerator
from adaptive_tutor.integrations.schemas import GeneratedQuestion
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository
from adaptive_tutor.persistence.interfaces.graph_repository import GraphRepository
from adaptive_tutor.persistence.interfaces.question_repository import QuestionRepository


class QuestionBankService:
    def __init__(
        self,
        db: Database,
        concepts: ConceptRepository,
        graphs: GraphRepository,
        questions: QuestionRepository,
        generator: Optional[QuestionGenerator] = None,
        workers: int = 2,
        temperature: float = 0.7,
        retry_temperature: float = 0.3,
    ):
        self._db = db
        self._concepts = concepts
        self._graphs = graphs
        self._questions = questions
        self._generator = generator
        self._temperature = temperature
        self._retry_temperature = retry_temperature
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="question-bank")
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Synchronous generation
    # ------------------------------------------------------------------
    def ensure_questions(self, concept_id: str) -> Result[int]:
        """Generate a bank for a concept that has none. Returns how many questions were stored."""
        concept = self._concepts.get_by_id(concept_id)
        if not concept:
            return Result.not_found(f"Concept '{concept_id}' not found.")
        if self._questions.count_by_concept(concept_id) > 0:
            return Result.ok(0)
        if self._generator is None:
            return Result.fail("No question generator is configured.")

        memberships = self._graphs.list_memberships_for_concept(concept_id)
        tier = clamp_tier(memberships[0].depth_tier if memberships else 1)

        valid: List[Question] = []
        for temperature in (self._temperature, self._retry_temperature):
            try:
                items = self._generator.generate_questions(
                    concept.name, concept.description, concept.key_terms, tier, (), temperature
                )
            except CollaboratorError as e:
                logger.warning(f"Question generation for '{concept.name}' failed: {e}")
                items = []
            valid = self.validate_items(concept_id, items)
            if valid:
                break
            logger.warning(f"No valid questions for '{concept.name}' at temperature {temperature}")

        if not valid:
            return Result.fail(f"Question generation for '{concept.name}' produced nothing usable.")

        with self._db.transaction():
            # another worker may have filled the bank meanwhile
            if self._questions.count_by_concept(concept_id) > 0:
                return Result.ok(0)
            self._questions.save_many(valid)
        logger.info(f"Stored {len(valid)} questions for '{concept.name}'")
        return Result.ok(len(valid))

    @staticmethod
    def validate_items(concept_id: str, items: Iterable[dict]) -> List[Question]:
        now = datetime.now(timezone.utc).isoformat()
        questions: List[Question] = []
        for item in items:
            try:
                parsed = GeneratedQuestion.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Discarding malformed generated question ({e.error_count()} error(s))")
                continue
            questions.append(
                Question(
                    id=str(uuid.uuid4()),
                    concept_id=concept_id,
                    question_type=parsed.question_type,
                    question_text=parsed.question_text.strip(),
                    correct_answer=parsed.correct_answer.strip(),
                    distractors=[d.strip() for d in parsed.distractors if d.strip()],
                    explanation=parsed.explanation,
                    difficulty=parsed.difficulty,
                    sources=[QuestionSource(s.index, s.page_title, s.page_url) for s in parsed.sources],
                    created_at=now,
                )
            )
        return questions

    # ------------------------------------------------------------------
    # Fire-and-forget
    # ------------------------------------------------------------------
    def is_generating(self, concept_id: str) -> bool:
        with self._lock:
            return concept_id in self._in_flight

    def schedule(self, concept_id: str) -> bool:
        """Queue generation unless it is already queued. Returns whether a job was submitted."""
        with self._lock:
            if concept_id in self._in_flight:
                return False
            self._in_flight.add(concept_id)
        self._executor.submit(self._run, concept_id)
        return True

    def _run(self, concept_id: str) -> None:
        try:
            result = self.ensure_questions(concept_id)
            if not result.is_success:
                logger.warning(f"Background generation for {concept_id}: {result.error}")
        except Exception:
            logger.exception(f"Background generation for {concept_id} crashed")
        finally:
            with self._lock:
                self._in_flight.discard(concept_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
