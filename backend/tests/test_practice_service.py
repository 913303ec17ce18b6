"""Attempt submission, sessions and composition through PracticeAppService."""
from datetime import datetime, timedelta, timezone

import pytest

from adaptive_tutor.domain.common.result import FORBIDDEN, INVALID, NOT_FOUND
from adaptive_tutor.domain.concept.models import ErrorType, GapStatus, QuestionType
from adaptive_tutor.domain.practice.evaluator import FALLBACK_FEEDBACK
from adaptive_tutor.domain.proficiency.model import expected_success
from adaptive_tutor.integrations.schemas import GapAnalysis, GraderVerdict

from conftest import OTHER_USER, USER


# ------------------------------------------------------------------
# submit_attempt
# ------------------------------------------------------------------
def test_correct_fast_answer_updates_everything(services, repos, simple_graph, add_question):
    question = add_question(simple_graph.fractions, difficulty=0.5)
    before = datetime.now(timezone.utc)

    outcome = services.practice.submit_attempt(USER, question.id, "4", time_taken_ms=3_000,
                                               graph_id=simple_graph.id).value

    assert outcome.attempt.is_correct
    assert outcome.attempt.quality == 5
    concept = repos.concepts.get_by_id(simple_graph.fractions)
    assert concept.proficiency == pytest.approx(0.3 * (1 - expected_success(0.0, 0.5)))
    assert concept.confidence == pytest.approx(0.15)
    assert concept.ease_factor == pytest.approx(2.6)
    assert concept.interval == 1
    assert concept.repetition_count == 1
    assert concept.attempt_count == 1
    assert before + timedelta(days=1) <= concept.next_due <= datetime.now(timezone.utc) + timedelta(days=1)

    session = repos.practice.get_session(outcome.session.id)
    assert session.unit_graph_id == simple_graph.id
    assert (session.questions_attempted, session.questions_correct) == (1, 1)
    assert session.concepts_covered == [simple_graph.fractions]
    assert [a.id for a in repos.practice.list_attempts(session.id)] == [outcome.attempt.id]


def test_wrong_answer_lowers_proficiency_and_resets_schedule(services, repos, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    services.concept.adjust_concept(USER, simple_graph.fractions, {"proficiency": 0.6, "confidence": 0.5})
    outcome = services.practice.submit_attempt(USER, question.id, "5").value
    assert not outcome.attempt.is_correct
    assert outcome.attempt.quality == 1
    assert outcome.concept.proficiency < 0.6
    assert outcome.concept.interval == 1
    assert outcome.concept.repetition_count == 0


def test_consecutive_attempts_reuse_the_open_session(services, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    first = services.practice.submit_attempt(USER, question.id, "4").value
    second = services.practice.submit_attempt(USER, question.id, "4").value
    assert first.session.id == second.session.id
    assert second.session.questions_attempted == 2
    assert second.concept.interval == 3


def test_unknown_question_changes_nothing(services, repos):
    assert services.practice.submit_attempt(USER, "ghost", "4").code == NOT_FOUND
    assert repos.practice.find_active_session(USER) is None


def test_other_learners_question_is_forbidden(services, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    assert services.practice.submit_attempt(OTHER_USER, question.id, "4").code == FORBIDDEN


def test_negative_time_is_invalid(services, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    assert services.practice.submit_attempt(USER, question.id, "4", time_taken_ms=-1).code == INVALID


def test_idempotency_key_replays_without_reapplying(services, repos, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    first = services.practice.submit_attempt(USER, question.id, "4", idempotency_key="k-1").value
    second = services.practice.submit_attempt(USER, question.id, "4", idempotency_key="k-1").value

    assert not first.replayed
    assert second.replayed
    assert second.attempt.id == first.attempt.id
    assert repos.concepts.get_by_id(simple_graph.fractions).attempt_count == 1
    assert repos.practice.get_session(first.session.id).questions_attempted == 1


def test_idempotency_keys_are_scoped_per_learner(services, repos, simple_graph, add_question):
    mine = add_question(simple_graph.fractions)
    decimals, _ = services.concept.find_or_create(OTHER_USER, "Decimals").value
    theirs = add_question(decimals)

    first = services.practice.submit_attempt(USER, mine.id, "4", idempotency_key="retry-1")
    second = services.practice.submit_attempt(OTHER_USER, theirs.id, "4", idempotency_key="retry-1")

    assert second.is_success, second.error
    assert not second.value.replayed
    assert second.value.attempt.id != first.value.attempt.id
    assert repos.concepts.get_by_id(decimals).attempt_count == 1
    assert repos.practice.find_attempt_by_key(OTHER_USER, "retry-1").question_id == theirs.id


def test_failure_mid_write_rolls_back_the_whole_attempt(services, repos, grader, simple_graph, add_question,
                                                        monkeypatch):
    question = add_question(simple_graph.fractions, QuestionType.FREE_RESPONSE)
    grader.verdict = GraderVerdict(correct=False, score=0.1, error_type=ErrorType.PREREQUISITE_GAP,
                                   gap_analysis=GapAnalysis(missing_concept="Division"))

    def broken_save(detection):
        raise RuntimeError("disk full")

    monkeypatch.setattr(repos.gaps, "save", broken_save)
    with pytest.raises(RuntimeError):
        services.practice.submit_attempt(USER, question.id, "ratio of parts")

    concept = repos.concepts.get_by_id(simple_graph.fractions)
    assert concept.attempt_count == 0
    assert concept.next_due is None
    assert repos.practice.find_active_session(USER) is None


def test_explicit_session_must_be_open_and_owned(services, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    session = services.practice.start_session(USER).value
    services.practice.end_session(USER, session.id)
    assert services.practice.submit_attempt(USER, question.id, "4", session_id=session.id).code == INVALID
    assert services.practice.submit_attempt(USER, question.id, "4", session_id="ghost").code == NOT_FOUND
    theirs = services.practice.start_session(OTHER_USER).value
    assert services.practice.submit_attempt(USER, question.id, "4", session_id=theirs.id).code == FORBIDDEN


# ------------------------------------------------------------------
# free response
# ------------------------------------------------------------------
def test_free_response_uses_grader_score(services, grader, simple_graph, add_question):
    question = add_question(simple_graph.fractions, QuestionType.FREE_RESPONSE, difficulty=0.0)
    grader.verdict = GraderVerdict(correct=True, score=0.8, feedback="Mostly right", error_type=ErrorType.MINOR,
                                   explanation="Mention equivalence")
    outcome = services.practice.submit_attempt(USER, question.id, "parts of a whole").value
    assert outcome.attempt.score == 0.8
    assert outcome.attempt.feedback == "Mostly right"
    assert outcome.error_type == ErrorType.MINOR
    assert outcome.explanation == "Mention equivalence"


def test_grader_failure_records_neutral_attempt(services, grader, simple_graph, add_question):
    question = add_question(simple_graph.fractions, QuestionType.FREE_RESPONSE)
    grader.error = TimeoutError("grader timed out")
    outcome = services.practice.submit_attempt(USER, question.id, "parts of a whole").value
    assert outcome.attempt.score == 0.5
    assert not outcome.attempt.is_correct
    assert outcome.attempt.feedback == FALLBACK_FEEDBACK
    assert outcome.concept.attempt_count == 1


def test_repeated_prerequisite_gap_surfaces_a_pattern(services, repos, grader, simple_graph, add_question):
    question = add_question(simple_graph.ratios, QuestionType.FREE_RESPONSE)
    grader.verdict = GraderVerdict(correct=False, score=0.2, error_type=ErrorType.PREREQUISITE_GAP,
                                   gap_analysis=GapAnalysis(missing_concept="Division ", explanation="Cannot divide"))

    first = services.practice.submit_attempt(USER, question.id, "no idea").value
    assert first.gap_pattern is None
    rows = repos.gaps.list_for(USER, simple_graph.ratios, GapStatus.DETECTED)
    assert [r.missing_concept for r in rows] == ["Division"]

    second = services.practice.submit_attempt(USER, question.id, "still no idea").value
    assert second.gap_pattern.missing_concept == "Division"
    assert second.gap_pattern.occurrences == 2


# ------------------------------------------------------------------
# sessions
# ------------------------------------------------------------------
def test_start_session_resumes_until_ended(services):
    first = services.practice.start_session(USER).value
    assert services.practice.start_session(USER).value.id == first.id
    ended = services.practice.end_session(USER, first.id).value
    assert ended.end_time is not None
    assert services.practice.end_session(USER, first.id).value.end_time == ended.end_time
    assert services.practice.start_session(USER).value.id != first.id


def test_session_ownership(services, simple_graph):
    session = services.practice.start_session(USER, simple_graph.id).value
    assert services.practice.get_session(OTHER_USER, session.id).code == FORBIDDEN
    assert services.practice.start_session(OTHER_USER, simple_graph.id).code == FORBIDDEN


# ------------------------------------------------------------------
# compose
# ------------------------------------------------------------------
def test_compose_over_a_graph(services, simple_graph, add_question):
    for _ in range(4):
        add_question(simple_graph.fractions)
        add_question(simple_graph.ratios, QuestionType.FLASHCARD)
    plan = services.practice.compose(USER, simple_graph.id, limit=4).value
    assert len(plan.items) == 4
    assert plan.due_concept_count == 2


def test_compose_can_respect_locks(services, simple_graph, add_question):
    add_question(simple_graph.fractions)
    add_question(simple_graph.ratios)
    plan = services.practice.compose(USER, simple_graph.id, respect_locks=True).value
    assert {item.concept_id for item in plan.items} == {simple_graph.fractions}


def test_attempted_questions_are_served_again(services, simple_graph, add_question):
    question = add_question(simple_graph.fractions)
    services.practice.submit_attempt(USER, question.id, "4")
    plan = services.practice.compose(USER, simple_graph.id, concept_id=simple_graph.fractions).value
    assert [item.question.id for item in plan.items] == [question.id]


def test_compose_validates_arguments(services, simple_graph):
    assert services.practice.compose(USER, simple_graph.id, limit=0).code == INVALID
    assert services.practice.compose(USER, simple_graph.id, limit=101).code == INVALID
    assert services.practice.compose(USER, "ghost").code == NOT_FOUND
    assert services.practice.compose(OTHER_USER, simple_graph.id).code == FORBIDDEN
    assert services.practice.compose(USER, simple_graph.id, concept_id="ghost").code == NOT_FOUND


def test_due_only_skips_concepts_practiced_today(services, repos, simple_graph, add_question):
    practiced = add_question(simple_graph.fractions)
    add_question(simple_graph.ratios, QuestionType.FLASHCARD)
    services.practice.submit_attempt(USER, practiced.id, "4")

    now = datetime.now(timezone.utc)
    assert [c.id for c in repos.concepts.list_due(USER, now, simple_graph.id)] == [simple_graph.ratios]

    plan = services.practice.compose(USER, simple_graph.id, due_only=True).value
    assert {item.concept_id for item in plan.items} == {simple_graph.ratios}
    assert plan.due_concept_count == 1
