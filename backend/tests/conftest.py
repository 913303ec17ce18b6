"""Shared fixtures: a throwaway SQLite database, real repositories, fake collaborators."""
import random
import uuid
from types import SimpleNamespace

import pytest

from adaptive_tutor.application.concept_app_service import ConceptAppService
from adaptive_tutor.application.gap_app_service import GapAppService
from adaptive_tutor.application.graph_app_service import GraphAppService
from adaptive_tutor.application.practice_app_service import PracticeAppService
from adaptive_tutor.application.question_bank_service import QuestionBankService
from adaptive_tutor.domain.concept.models import Question, QuestionSource, QuestionType
from adaptive_tutor.integrations.collaborators import (
    FreeResponseGrader,
    QuestionGenerator,
    SuggestionAdvisor,
)
from adaptive_tutor.integrations.schemas import ConceptSuggestion, GraderVerdict
from adaptive_tutor.persistence.db import Database, init_db
from adaptive_tutor.persistence.repositories.sqlite.sqlite_concept_repository import SqliteConceptRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_gap_repository import SqliteGapRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_graph_repository import SqliteGraphRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_practice_repository import SqlitePracticeRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_question_repository import SqliteQuestionRepository

USER = "learner-1"
OTHER_USER = "learner-2"


# ------------------------------------------------------------------
# Fake collaborators
# ------------------------------------------------------------------
class FakeGenerator(QuestionGenerator):
    """Hands out queued responses in order; an Exception in the queue is raised instead."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.gate = None

    def generate_questions(self, concept_name, description, key_terms, difficulty_tier, source_excerpts=(), temperature=0.7):
        self.calls.append({"concept_name": concept_name, "difficulty_tier": difficulty_tier, "temperature": temperature})
        if self.gate is not None:
            self.gate.wait(timeout=5)
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response


class FakeGrader(FreeResponseGrader):
    def __init__(self):
        self.verdict = GraderVerdict(correct=True, score=1.0, feedback="Well argued.", error_type="CORRECT")
        self.error = None

    def grade(self, question, rubric, user_answer, concept_name):
        if self.error is not None:
            raise self.error
        return self.verdict


class FakeAdvisor(SuggestionAdvisor):
    def __init__(self):
        self.suggestion = ConceptSuggestion(name="Integrals", rationale="Builds on derivatives.")
        self.error = None

    def suggest_extension(self, concept_name, existing_names):
        if self.error is not None:
            raise self.error
        return self.suggestion


def mcq_item(**overrides):
    item = {
        "question_type": "mcq",
        "question_text": "What is 2 + 2?",
        "correct_answer": "4",
        "distractors": ["3", "5", "22"],
        "explanation": "Basic addition.",
        "difficulty": 0.2,
    }
    item.update(overrides)
    return item


# ------------------------------------------------------------------
# Infrastructure
# ------------------------------------------------------------------
@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "tutor.db"))
    init_db(database)
    return database


@pytest.fixture
def repos(db):
    return SimpleNamespace(
        concepts=SqliteConceptRepository(db),
        graphs=SqliteGraphRepository(db),
        questions=SqliteQuestionRepository(db),
        practice=SqlitePracticeRepository(db),
        gaps=SqliteGapRepository(db),
    )


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
def advisor():
    return FakeAdvisor()


@pytest.fixture
def services(db, repos, generator, grader, advisor):
    concept = ConceptAppService(db, repos.concepts, repos.questions)
    bank = QuestionBankService(db, repos.concepts, repos.graphs, repos.questions, generator, workers=1)
    # graph and practice services run without background generation so tests stay deterministic
    graph = GraphAppService(db, repos.graphs, repos.concepts, concept)
    gap = GapAppService(repos.gaps, repos.concepts, graph, advisor=advisor)
    practice = PracticeAppService(
        db,
        repos.concepts,
        repos.graphs,
        repos.questions,
        repos.practice,
        repos.gaps,
        gap_service=gap,
        grader=grader,
        poll_interval=0,
        rng=random.Random(7),
    )
    yield SimpleNamespace(concept=concept, bank=bank, graph=graph, gap=gap, practice=practice)
    bank.shutdown(wait=True)


# ------------------------------------------------------------------
# Builders
# ------------------------------------------------------------------
@pytest.fixture
def add_question(repos):
    def _add(concept_id, question_type=QuestionType.MCQ, difficulty=0.5, text=None, answer="4", explanation="", sources=None):
        question = Question(
            id=str(uuid.uuid4()),
            concept_id=concept_id,
            question_type=question_type,
            question_text=text or f"{question_type.value} question",
            correct_answer=answer,
            distractors=["3", "5"] if question_type == QuestionType.MCQ else [],
            explanation=explanation,
            difficulty=difficulty,
            sources=sources or [],
            created_at="2024-01-01T00:00:00+00:00",
        )
        repos.questions.save_many([question])
        return question

    return _add


@pytest.fixture
def simple_graph(services):
    """Fractions (tier 1) -> Ratios (tier 2) for USER."""
    result = services.graph.build_graph(
        USER,
        "Number sense",
        [{"name": "Fractions", "depth_tier": 1}, {"name": "Ratios", "depth_tier": 2}],
        [{"from": "Fractions", "to": "Ratios"}],
    )
    assert result.is_success, result.error
    view = result.value
    by_name = {c.name: c.id for c in view.concepts.values()}
    return SimpleNamespace(id=view.graph.id, fractions=by_name["Fractions"], ratios=by_name["Ratios"])


def cited_source():
    return [QuestionSource(index=1, page_title="Fractions", page_url="https://example.org/fractions")]
