"""Dependency injection container: wires implementations to interfaces."""
from __future__ import annotations
from functools import lru_cache
from typing import Optional

from adaptive_tutor.application.concept_app_service import ConceptAppService
from adaptive_tutor.application.gap_app_service import GapAppService
from adaptive_tutor.application.graph_app_service import GraphAppService
from adaptive_tutor.application.practice_app_service import PracticeAppService
from adaptive_tutor.application.question_bank_service import QuestionBankService
from adaptive_tutor.core import config
from adaptive_tutor.domain.gaps.pattern import GapSettings
from adaptive_tutor.domain.graph.validator import LayoutSettings, LayoutStyle
from adaptive_tutor.domain.practice.selector import SelectorSettings
from adaptive_tutor.domain.proficiency.model import ProficiencySettings
from adaptive_tutor.domain.scheduling.sm2 import QualitySettings
from adaptive_tutor.integrations.openrouter import OpenRouterClient
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.repositories.sqlite.sqlite_concept_repository import SqliteConceptRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_gap_repository import SqliteGapRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_graph_repository import SqliteGraphRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_practice_repository import SqlitePracticeRepository
from adaptive_tutor.persistence.repositories.sqlite.sqlite_question_repository import SqliteQuestionRepository


# ------------------------------------------------------------------
# Infrastructure
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_database() -> Database:
    return Database(config.DATABASE_PATH)


@lru_cache(maxsize=1)
def get_llm_client() -> Optional[OpenRouterClient]:
    if not config.OPENROUTER_API_KEY:
        return None
    return OpenRouterClient(
        api_key=config.OPENROUTER_API_KEY,
        url=config.OPENROUTER_URL,
        model=config.OPENROUTER_MODEL,
        timeout=config.LLM_TIMEOUT_SECONDS,
        questions_per_concept=config.QUESTIONS_PER_CONCEPT,
    )


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_selector_settings() -> SelectorSettings:
    return SelectorSettings(
        per_concept_cap=config.PER_CONCEPT_CAP,
        session_type_cap_fraction=config.SESSION_TYPE_CAP_FRACTION,
        low_proficiency_threshold=config.LOW_PROFICIENCY_THRESHOLD,
        prerequisite_boost=config.PREREQUISITE_BOOST,
    )


@lru_cache(maxsize=1)
def get_quality_settings() -> QualitySettings:
    return QualitySettings(fast_ms=config.QUALITY_FAST_MS, medium_ms=config.QUALITY_MEDIUM_MS)


@lru_cache(maxsize=1)
def get_proficiency_settings() -> ProficiencySettings:
    return ProficiencySettings(k_factor=config.ELO_K_FACTOR)


# ------------------------------------------------------------------
# Repositories
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_concept_repo() -> SqliteConceptRepository:
    return SqliteConceptRepository(get_database())


@lru_cache(maxsize=1)
def get_graph_repo() -> SqliteGraphRepository:
    return SqliteGraphRepository(get_database())


@lru_cache(maxsize=1)
def get_question_repo() -> SqliteQuestionRepository:
    return SqliteQuestionRepository(get_database())


@lru_cache(maxsize=1)
def get_practice_repo() -> SqlitePracticeRepository:
    return SqlitePracticeRepository(get_database())


@lru_cache(maxsize=1)
def get_gap_repo() -> SqliteGapRepository:
    return SqliteGapRepository(get_database())


# ------------------------------------------------------------------
# Application services
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_concept_app_service() -> ConceptAppService:
    return ConceptAppService(
        db=get_database(),
        repo=get_concept_repo(),
        questions=get_question_repo(),
        proficiency_settings=get_proficiency_settings(),
    )


@lru_cache(maxsize=1)
def get_question_bank_service() -> QuestionBankService:
    return QuestionBankService(
        db=get_database(),
        concepts=get_concept_repo(),
        graphs=get_graph_repo(),
        questions=get_question_repo(),
        generator=get_llm_client(),
        workers=config.GENERATION_WORKERS,
    )


@lru_cache(maxsize=1)
def get_graph_app_service() -> GraphAppService:
    return GraphAppService(
        db=get_database(),
        graphs=get_graph_repo(),
        concepts=get_concept_repo(),
        concept_service=get_concept_app_service(),
        question_bank=get_question_bank_service(),
        layout_settings=LayoutSettings(),
        layout_style=LayoutStyle(config.LAYOUT_STYLE),
        mastered=config.PROFICIENCY_MASTERED,
    )


@lru_cache(maxsize=1)
def get_gap_app_service() -> GapAppService:
    return GapAppService(
        gaps=get_gap_repo(),
        concepts=get_concept_repo(),
        graph_service=get_graph_app_service(),
        advisor=get_llm_client(),
        settings=GapSettings(pattern_threshold=config.GAP_PATTERN_THRESHOLD),
    )


@lru_cache(maxsize=1)
def get_practice_app_service() -> PracticeAppService:
    return PracticeAppService(
        db=get_database(),
        concepts=get_concept_repo(),
        graphs=get_graph_repo(),
        questions=get_question_repo(),
        practice=get_practice_repo(),
        gaps=get_gap_repo(),
        question_bank=get_question_bank_service(),
        gap_service=get_gap_app_service(),
        grader=get_llm_client(),
        selector_settings=get_selector_settings(),
        quality_settings=get_quality_settings(),
        proficiency_settings=get_proficiency_settings(),
        mastered=config.PROFICIENCY_MASTERED,
        default_limit=config.DEFAULT_SESSION_LENGTH,
        max_limit=config.MAX_SESSION_LENGTH,
        poll_attempts=config.GENERATION_POLL_ATTEMPTS,
        poll_interval=config.GENERATION_POLL_INTERVAL_SECONDS,
    )
