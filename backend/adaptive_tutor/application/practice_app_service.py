"""Practice turns: composing sessions, session lifecycle, and atomic attempt submission."""
from __future__ import annotations
import random
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from loguru import logger

from adaptive_tutor.application.gap_app_service import GapAppService
from adaptive_tutor.application.question_bank_service import QuestionBankService
from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import (
    AttemptRecord,
    Concept,
    ErrorType,
    GapDetection,
    Question,
    QuestionType,
    SessionRecord,
)
from adaptive_tutor.domain.concept.service import ConceptDomainService
from adaptive_tutor.domain.gaps.pattern import GapPattern
from adaptive_tutor.domain.graph.analysis import PROFICIENCY_MASTERED, locked_concepts, prerequisite_ids
from adaptive_tutor.domain.practice.evaluator import GapFinding, Verdict, evaluate_closed_form, fallback_verdict
from adaptive_tutor.domain.practice.selector import (
    ConceptCandidate,
    SelectorSettings,
    SessionPlan,
    compose_session,
)
from adaptive_tutor.domain.proficiency.model import ProficiencySettings, update_proficiency
from adaptive_tutor.domain.scheduling.sm2 import QualitySettings, SM2State, advance, next_due_date, quality_from_outcome
from adaptive_tutor.integrations.collaborators import FreeResponseGrader
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository
from adaptive_tutor.persistence.interfaces.gap_repository import GapRepository
from adaptive_tutor.persistence.interfaces.graph_repository import GraphRepository
from adaptive_tutor.persistence.interfaces.practice_repository import PracticeRepository
from adaptive_tutor.persistence.interfaces.question_repository import QuestionRepository


@dataclass
class AttemptOutcome:
    attempt: AttemptRecord
    concept: Concept
    session: SessionRecord
    explanation: Optional[str] = None
    error_type: Optional[ErrorType] = None
    gap_pattern: Optional[GapPattern] = None
    replayed: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PracticeAppService:
    def __init__(
        self,
        db: Database,
        concepts: ConceptRepository,
        graphs: GraphRepository,
        questions: QuestionRepository,
        practice: PracticeRepository,
        gaps: GapRepository,
        question_bank: Optional[QuestionBankService] = None,
        gap_service: Optional[GapAppService] = None,
        grader: Optional[FreeResponseGrader] = None,
        selector_settings: SelectorSettings = SelectorSettings(),
        quality_settings: QualitySettings = QualitySettings(),
        proficiency_settings: ProficiencySettings = ProficiencySettings(),
        mastered: float = PROFICIENCY_MASTERED,
        default_limit: int = 20,
        max_limit: int = 100,
        poll_attempts: int = 3,
        poll_interval: float = 1.0,
        rng: Optional[random.Random] = None,
    ):
        self._db = db
        self._concepts = concepts
        self._graphs = graphs
        self._questions = questions
        self._practice = practice
        self._gaps = gaps
        self._question_bank = question_bank
        self._gap_service = gap_service
        self._grader = grader
        self._selector_settings = selector_settings
        self._quality_settings = quality_settings
        self._proficiency_settings = proficiency_settings
        self._mastered = mastered
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._rng = rng or random.Random()
        self._domain = ConceptDomainService()

    # ------------------------------------------------------------------
    # Session composition
    # ------------------------------------------------------------------
    def compose(
        self,
        user_id: str,
        graph_id: Optional[str] = None,
        limit: Optional[int] = None,
        due_only: bool = False,
        concept_id: Optional[str] = None,
        locked_ids: Iterable[str] = (),
        respect_locks: bool = False,
    ) -> Result[SessionPlan]:
        limit = self._default_limit if limit is None else limit
        if not 1 <= limit <= self._max_limit:
            return Result.fail(f"'limit' must be between 1 and {self._max_limit}, got {limit}.")

        now = _now()
        if graph_id:
            graph = self._graphs.get_graph(graph_id)
            if not graph:
                return Result.not_found(f"Graph '{graph_id}' not found.")
            if graph.user_id != user_id:
                return Result.forbidden(f"Graph '{graph_id}' belongs to another learner.")
            scope = self._concepts.list_by_ids([m.concept_id for m in self._graphs.list_memberships(graph_id)])
            edges = self._graphs.list_edges(graph_id)
        else:
            scope = self._concepts.list_by_user(user_id)
            edges = self._graphs.list_edges_for_user(user_id)

        if concept_id and all(c.id != concept_id for c in scope):
            return Result.not_found(f"Concept '{concept_id}' not found.")

        # only due concepts get their banks loaded; locks still look at the whole scope
        concepts = self._concepts.list_due(user_id, now, graph_id) if due_only else scope

        locked = set(locked_ids)
        if respect_locks:
            locked |= locked_concepts(scope, edges, self._mastered)

        banks = self._load_banks(
            [c.id for c in concepts if not c.is_deprecated and c.id not in locked]
        )
        prerequisites = prerequisite_ids(edges)
        candidates = [
            ConceptCandidate(concept=c, questions=banks.get(c.id, []), is_prerequisite=c.id in prerequisites)
            for c in concepts
        ]
        plan = compose_session(
            candidates,
            limit,
            now=now,
            due_only=due_only,
            focus_concept_id=concept_id,
            locked_ids=locked,
            settings=self._selector_settings,
            rng=self._rng,
        )
        return Result.ok(plan)

    def _load_banks(self, concept_ids: List[str]) -> dict:
        """Question banks by concept. Empty banks trigger generation and a bounded wait for it."""
        banks = self._questions.list_by_concepts(concept_ids)
        if self._question_bank is None:
            return banks

        missing = [cid for cid in concept_ids if not banks.get(cid)]
        for cid in missing:
            self._question_bank.schedule(cid)

        for _ in range(self._poll_attempts):
            pending = [cid for cid in missing if self._question_bank.is_generating(cid)]
            if not pending:
                break
            time.sleep(self._poll_interval)

        if missing:
            banks.update({cid: qs for cid, qs in self._questions.list_by_concepts(missing).items() if qs})
        return banks

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start_session(self, user_id: str, graph_id: Optional[str] = None) -> Result[SessionRecord]:
        """Resume the open session for this learner (and graph) or open a new one."""
        if graph_id:
            graph = self._graphs.get_graph(graph_id)
            if not graph:
                return Result.not_found(f"Graph '{graph_id}' not found.")
            if graph.user_id != user_id:
                return Result.forbidden(f"Graph '{graph_id}' belongs to another learner.")
        with self._db.transaction():
            return Result.ok(self._active_session(user_id, graph_id))

    def _active_session(self, user_id: str, graph_id: Optional[str]) -> SessionRecord:
        session = self._practice.find_active_session(user_id, graph_id)
        if session is None:
            session = SessionRecord(
                id=str(uuid.uuid4()),
                user_id=user_id,
                unit_graph_id=graph_id,
                start_time=_now().isoformat(),
            )
            self._practice.save_session(session)
        return session

    def get_session(self, user_id: str, session_id: str) -> Result[SessionRecord]:
        session = self._practice.get_session(session_id)
        if not session:
            return Result.not_found(f"Session '{session_id}' not found.")
        if session.user_id != user_id:
            return Result.forbidden(f"Session '{session_id}' belongs to another learner.")
        return Result.ok(session)

    def end_session(self, user_id: str, session_id: str) -> Result[SessionRecord]:
        with self._db.transaction():
            found = self.get_session(user_id, session_id)
            if not found.is_success:
                return found
            session = found.value
            if session.end_time is None:
                session.end_time = _now().isoformat()
                self._practice.save_session(session)
            return Result.ok(session)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------
    def _evaluate(self, question: Question, concept: Concept, user_answer: str) -> Verdict:
        if question.question_type != QuestionType.FREE_RESPONSE:
            return evaluate_closed_form(question, user_answer)
        if self._grader is None:
            logger.error("No free-response grader configured; recording a neutral score")
            return fallback_verdict()
        try:
            graded = self._grader.grade(question.question_text, question.correct_answer, user_answer, concept.name)
        except Exception as e:
            logger.error(f"Grader failed for question {question.id}: {e}")
            return fallback_verdict()

        gap = None
        if graded.error_type == ErrorType.PREREQUISITE_GAP and graded.gap_analysis is not None:
            gap = GapFinding(
                missing_concept=graded.gap_analysis.missing_concept.strip(),
                severity=graded.gap_analysis.severity,
                explanation=graded.gap_analysis.explanation,
            )
        return Verdict(
            is_correct=graded.correct,
            score=graded.score,
            feedback=graded.feedback,
            explanation=graded.explanation or question.explanation or None,
            error_type=graded.error_type,
            gap=gap,
        )

    def _replay(self, user_id: str, idempotency_key: Optional[str]) -> Optional[AttemptOutcome]:
        if not idempotency_key:
            return None
        attempt = self._practice.find_attempt_by_key(user_id, idempotency_key)
        if attempt is None:
            return None
        logger.info(f"Replaying attempt {attempt.id} for idempotency key {idempotency_key}")
        return AttemptOutcome(
            attempt=attempt,
            concept=self._concepts.get_by_id(attempt.concept_id),
            session=self._practice.get_session(attempt.session_id),
            replayed=True,
        )

    def submit_attempt(
        self,
        user_id: str,
        question_id: str,
        user_answer: str,
        time_taken_ms: int = 0,
        session_id: Optional[str] = None,
        graph_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Result[AttemptOutcome]:
        """
        Record one answer. The attempt row, the concept's proficiency and schedule, the session
        counters and any gap detection are written in one transaction. A repeated
        `idempotency_key` returns the first outcome without applying anything again.
        """
        replay = self._replay(user_id, idempotency_key)
        if replay:
            return Result.ok(replay)

        question = self._questions.get_by_id(question_id)
        if not question:
            return Result.not_found(f"Question '{question_id}' not found.")
        concept = self._concepts.get_by_id(question.concept_id)
        if not concept:
            return Result.not_found(f"Concept '{question.concept_id}' not found.")
        if concept.user_id != user_id:
            return Result.forbidden(f"Question '{question_id}' belongs to another learner.")
        if time_taken_ms < 0:
            return Result.fail("'time_taken_ms' cannot be negative.")

        # grading may block on a collaborator, so it happens before the write lock is taken
        verdict = self._evaluate(question, concept, user_answer)

        with self._db.transaction():
            replay = self._replay(user_id, idempotency_key)
            if replay:
                return Result.ok(replay)

            if session_id:
                session = self._practice.get_session(session_id)
                if not session:
                    return Result.not_found(f"Session '{session_id}' not found.")
                if session.user_id != user_id:
                    return Result.forbidden(f"Session '{session_id}' belongs to another learner.")
                if session.end_time is not None:
                    return Result.fail(f"Session '{session_id}' has already ended.")
            else:
                session = self._active_session(user_id, graph_id)

            concept = self._concepts.get_by_id(question.concept_id)
            now = _now()
            quality = quality_from_outcome(verdict.is_correct, time_taken_ms, self._quality_settings)
            state = advance(SM2State(concept.ease_factor, concept.interval, concept.repetition_count), quality)
            proficiency, confidence = update_proficiency(
                concept.proficiency,
                concept.confidence,
                question.difficulty,
                verdict.is_correct,
                verdict.score,
                self._proficiency_settings,
            )
            concept = self._domain.apply_practice(
                concept, state, proficiency, confidence, next_due_date(state.interval, now), now
            )
            self._concepts.save(concept)

            attempt = AttemptRecord(
                id=str(uuid.uuid4()),
                question_id=question.id,
                concept_id=concept.id,
                user_id=user_id,
                user_answer=user_answer,
                is_correct=verdict.is_correct,
                score=verdict.score,
                quality=quality,
                feedback=verdict.feedback,
                time_taken_ms=time_taken_ms,
                session_id=session.id,
                created_at=now.isoformat(),
                idempotency_key=idempotency_key or None,
            )
            self._practice.record_attempt(attempt)

            session.questions_attempted += 1
            if verdict.is_correct:
                session.questions_correct += 1
            if concept.id not in session.concepts_covered:
                session.concepts_covered.append(concept.id)
            self._practice.save_session(session)

            if verdict.gap is not None:
                self._gaps.save(
                    GapDetection(
                        id=str(uuid.uuid4()),
                        user_id=user_id,
                        concept_id=concept.id,
                        missing_concept=verdict.gap.missing_concept,
                        severity=verdict.gap.severity,
                        explanation=verdict.gap.explanation,
                        created_at=now.isoformat(),
                    )
                )

        outcome = AttemptOutcome(
            attempt=attempt,
            concept=concept,
            session=session,
            explanation=verdict.explanation,
            error_type=verdict.error_type,
        )
        if verdict.gap is not None and self._gap_service is not None:
            try:
                pattern = self._gap_service.check_pattern(user_id, concept.id)
                outcome.gap_pattern = pattern.value if pattern.is_success else None
            except Exception as e:
                logger.debug(f"Gap pattern check for concept {concept.id} failed: {e}")
        return Result.ok(outcome)
