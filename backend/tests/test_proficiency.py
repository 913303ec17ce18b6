"""Proficiency estimator tests."""
import pytest

from adaptive_tutor.domain.proficiency.model import (
    expected_success,
    infer_initial_proficiency,
    update_proficiency,
)


def test_expected_success_is_even_when_matched():
    assert expected_success(0.5, 0.5) == pytest.approx(0.5)


def test_correct_answer_at_matched_difficulty():
    proficiency, confidence = update_proficiency(0.5, 0.0, 0.5, True)
    assert proficiency == pytest.approx(0.65)
    assert confidence == pytest.approx(0.15)


def test_incorrect_answer_at_matched_difficulty():
    proficiency, confidence = update_proficiency(0.5, 0.0, 0.5, False)
    assert proficiency == pytest.approx(0.35)
    assert confidence == pytest.approx(0.15)


def test_continuous_score_overrides_correctness():
    proficiency, _ = update_proficiency(0.5, 0.0, 0.5, False, score=0.8)
    assert proficiency == pytest.approx(0.59)


def test_proficiency_is_clamped():
    high, _ = update_proficiency(1.0, 0.5, 0.0, True)
    low, _ = update_proficiency(0.0, 0.5, 1.0, False)
    assert high == 1.0
    assert low == 0.0


def test_confidence_grows_on_wrong_answers_too():
    _, confidence = update_proficiency(0.5, 0.5, 0.5, False)
    assert confidence == pytest.approx(0.575)


# ------------------------------------------------------------------
# prior knowledge seeding
# ------------------------------------------------------------------
def test_empty_prior_knowledge_gives_nothing():
    assert infer_initial_proficiency("", 1) == (0.0, 0.0)
    assert infer_initial_proficiency("   ", 2) == (0.0, 0.0)


def test_expert_statement_on_foundational_tier():
    assert infer_initial_proficiency("I did a PhD on this", 1) == pytest.approx((0.7, 0.3))


def test_intermediate_statement_is_penalised_by_tier():
    proficiency, confidence = infer_initial_proficiency("I'm familiar with it", 3)
    assert proficiency == pytest.approx(0.1)
    assert confidence == pytest.approx(0.25)


def test_vague_statement_gets_a_small_prior():
    assert infer_initial_proficiency("read a blog post once", 1) == pytest.approx((0.15, 0.2))
