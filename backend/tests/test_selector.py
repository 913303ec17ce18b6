"""Session composition on in-memory concepts and questions."""
import random
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone

from adaptive_tutor.domain.concept.models import Concept, Question, QuestionSource, QuestionType
from adaptive_tutor.domain.practice.selector import (
    ConceptCandidate,
    SelectorSettings,
    compose_session,
    concept_priority,
    is_due,
    rank_questions,
)

NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def concept(cid, proficiency=0.5, next_due=None, deprecated=False):
    return Concept(
        id=cid,
        user_id="u",
        name=cid.title(),
        name_normalized=cid,
        proficiency=proficiency,
        next_due=next_due,
        is_deprecated=deprecated,
    )


def question(concept_id, kind=QuestionType.MCQ, difficulty=0.5, text="Q", sources=None):
    return Question(
        id=str(uuid.uuid4()),
        concept_id=concept_id,
        question_type=kind,
        question_text=text,
        correct_answer="a",
        difficulty=difficulty,
        sources=sources or [],
    )


def candidate(c, kinds, is_prerequisite=False):
    return ConceptCandidate(concept=c, questions=[question(c.id, k) for k in kinds], is_prerequisite=is_prerequisite)


def compose(candidates, limit, **kwargs):
    return compose_session(candidates, limit, now=NOW, rng=random.Random(3), **kwargs)


# ------------------------------------------------------------------
# Limits and caps
# ------------------------------------------------------------------
def test_never_returns_more_than_limit():
    kinds = [QuestionType.MCQ, QuestionType.FLASHCARD, QuestionType.FILL_BLANK] * 2
    pool = [candidate(concept(f"c{i}"), kinds) for i in range(5)]
    plan = compose(pool, 4)
    assert len(plan.items) == 4


def test_per_concept_cap_of_three():
    kinds = [QuestionType.MCQ, QuestionType.MCQ, QuestionType.FLASHCARD,
             QuestionType.FLASHCARD, QuestionType.FILL_BLANK, QuestionType.FILL_BLANK]
    plan = compose([candidate(concept("algebra"), kinds)], 20)
    assert len(plan.items) == 3


def test_session_type_cap_is_respected():
    kinds = [QuestionType.MCQ] * 3 + [QuestionType.FLASHCARD] * 3
    pool = [candidate(concept(f"c{i}"), kinds) for i in range(3)]
    plan = compose(pool, 10)
    cap = SelectorSettings().session_type_cap(10)
    assert len(plan.items) == 8
    assert all(count <= cap for count in plan.type_counts.values())


def test_low_proficiency_allows_more_of_one_type():
    mcqs = [QuestionType.MCQ] * 5
    assert len(compose([candidate(concept("a", proficiency=0.5), mcqs)], 20).items) == 2
    assert len(compose([candidate(concept("a", proficiency=0.0), mcqs)], 20).items) == 3


def test_fallback_when_every_question_is_rejected():
    mcqs = [QuestionType.MCQ] * 3
    first = candidate(concept("first"), mcqs, is_prerequisite=True)
    second = candidate(concept("second"), mcqs)
    plan = compose([second, first], 5)
    per_concept = Counter(item.concept_id for item in plan.items)
    assert per_concept == {"first": 2, "second": 3}


def test_same_question_is_served_once():
    c = concept("a")
    shared = question("a")
    plan = compose([ConceptCandidate(c, [shared]), ConceptCandidate(c, [shared])], 10)
    assert [item.question.id for item in plan.items] == [shared.id]


# ------------------------------------------------------------------
# Prioritisation
# ------------------------------------------------------------------
def test_prerequisite_concepts_come_first():
    plain = candidate(concept("plain"), [QuestionType.MCQ] * 3)
    prereq = candidate(concept("prereq"), [QuestionType.MCQ] * 3, is_prerequisite=True)
    plan = compose([plain, prereq], 1)
    assert plan.items[0].concept_id == "prereq"
    assert plan.concept_order == ["prereq"]


def test_overdue_concepts_come_first():
    fresh = candidate(concept("fresh", next_due=NOW), [QuestionType.MCQ])
    stale = candidate(concept("stale", next_due=NOW - timedelta(days=10)), [QuestionType.MCQ])
    plan = compose([fresh, stale], 1)
    assert plan.items[0].concept_id == "stale"


def test_priority_formula():
    settings = SelectorSettings()
    c = concept("a", next_due=NOW - timedelta(days=2))
    assert concept_priority(c, True, NOW, settings) == 6.0
    assert concept_priority(concept("b"), False, NOW, settings) == 1.0


def test_easy_types_first_at_low_proficiency_and_hard_first_when_mastered():
    settings = SelectorSettings()
    easy = question("a", QuestionType.MCQ, difficulty=0.5)
    hard = question("a", QuestionType.FREE_RESPONSE, difficulty=0.1)
    assert rank_questions([hard, easy], 0.0, settings)[0] is easy
    assert rank_questions([easy, hard], 1.0, settings)[0] is hard


def test_cited_questions_lead_the_session():
    c = concept("a", proficiency=0.0)
    cited = question("a", QuestionType.FLASHCARD, text="What does [1] define?",
                     sources=[QuestionSource(1, "Page", "https://example.org")])
    plain = [question("a"), question("a")]
    plan = compose([ConceptCandidate(c, plain + [cited])], 10)
    assert plan.items[0].question.id == cited.id
    assert plan.items[0].sources


def test_uncited_sources_are_not_exposed():
    q = question("a", sources=[QuestionSource(1, "Page", "https://example.org")])
    assert q.cited_sources == []


# ------------------------------------------------------------------
# Eligibility
# ------------------------------------------------------------------
def test_due_only_skips_concepts_scheduled_later():
    later = candidate(concept("later", next_due=NOW + timedelta(days=3)), [QuestionType.MCQ])
    never = candidate(concept("never"), [QuestionType.MCQ])
    plan = compose([later, never], 10, due_only=True)
    assert {item.concept_id for item in plan.items} == {"never"}
    assert plan.due_concept_count == 1


def test_not_due_concepts_are_served_without_due_only():
    later = candidate(concept("later", next_due=NOW + timedelta(days=3)), [QuestionType.MCQ])
    assert len(compose([later], 10).items) == 1


def test_deprecated_locked_and_unfocused_concepts_are_excluded():
    pool = [
        candidate(concept("gone", deprecated=True), [QuestionType.MCQ]),
        candidate(concept("locked"), [QuestionType.MCQ]),
        candidate(concept("open"), [QuestionType.MCQ]),
        candidate(concept("other"), [QuestionType.MCQ]),
    ]
    plan = compose(pool, 10, locked_ids={"locked"}, focus_concept_id="open")
    assert [item.concept_id for item in plan.items] == ["open"]


def test_empty_pool_or_zero_limit_gives_empty_plan():
    assert compose([], 5).items == []
    assert compose([candidate(concept("a"), [QuestionType.MCQ])], 0).items == []


def test_is_due_accepts_naive_datetimes():
    c = concept("a", next_due=datetime(2024, 5, 1))
    assert is_due(c, NOW)
