"""Question bank generation: validation, retry, idempotency, background scheduling."""
import threading

from adaptive_tutor.domain.common.result import INVALID, NOT_FOUND
from adaptive_tutor.integrations.collaborators import CollaboratorError

from conftest import USER, mcq_item


def test_malformed_items_are_discarded(services, repos, generator, simple_graph):
    generator.responses = [[
        mcq_item(),
        mcq_item(distractors=[]),
        mcq_item(difficulty=2.0),
        {"question_type": "essay", "question_text": "?", "correct_answer": "!", "difficulty": 0.5},
        "not even a dict",
    ]]
    assert services.bank.ensure_questions(simple_graph.fractions).value == 1
    stored = repos.questions.list_by_concept(simple_graph.fractions)
    assert [q.question_text for q in stored] == ["What is 2 + 2?"]
    assert stored[0].distractors == ["3", "5", "22"]


def test_existing_bank_is_left_alone(services, generator, simple_graph):
    generator.responses = [[mcq_item()], [mcq_item()]]
    services.bank.ensure_questions(simple_graph.fractions)
    assert services.bank.ensure_questions(simple_graph.fractions).value == 0
    assert len(generator.calls) == 1


def test_retries_once_at_lower_temperature(services, repos, generator, simple_graph):
    generator.responses = [CollaboratorError("timeout"), [mcq_item()]]
    assert services.bank.ensure_questions(simple_graph.fractions).value == 1
    assert [call["temperature"] for call in generator.calls] == [0.7, 0.3]


def test_two_failures_store_nothing(services, repos, generator, simple_graph):
    generator.responses = [[mcq_item(distractors=[])], CollaboratorError("rate limited")]
    assert services.bank.ensure_questions(simple_graph.fractions).code == INVALID
    assert repos.questions.count_by_concept(simple_graph.fractions) == 0


def test_generation_uses_the_membership_tier(services, generator, simple_graph):
    generator.responses = [[mcq_item()]]
    services.bank.ensure_questions(simple_graph.ratios)
    assert generator.calls[0]["difficulty_tier"] == 2
    assert generator.calls[0]["concept_name"] == "Ratios"


def test_unknown_concept(services):
    assert services.bank.ensure_questions("ghost").code == NOT_FOUND


def test_schedule_runs_once_per_concept(services, repos, generator, simple_graph):
    generator.gate = threading.Event()
    generator.responses = [[mcq_item(), mcq_item(question_text="What is 3 + 3?", correct_answer="6")]]

    assert services.bank.schedule(simple_graph.fractions)
    assert not services.bank.schedule(simple_graph.fractions)
    assert services.bank.is_generating(simple_graph.fractions)

    generator.gate.set()
    services.bank.shutdown(wait=True)
    assert not services.bank.is_generating(simple_graph.fractions)
    assert repos.questions.count_by_concept(simple_graph.fractions) == 2
    assert len(generator.calls) == 1


def test_concepts_created_through_graphs_are_queued(db, repos, generator):
    from adaptive_tutor.application.concept_app_service import ConceptAppService
    from adaptive_tutor.application.graph_app_service import GraphAppService
    from adaptive_tutor.application.question_bank_service import QuestionBankService

    generator.responses = [[mcq_item()]]
    bank = QuestionBankService(db, repos.concepts, repos.graphs, repos.questions, generator, workers=1)
    graphs = GraphAppService(db, repos.graphs, repos.concepts, ConceptAppService(db, repos.concepts, repos.questions),
                             question_bank=bank)
    view = graphs.build_graph(USER, "Solo", [{"name": "Vectors"}], []).value
    bank.shutdown(wait=True)

    (concept_id,) = view.concepts
    assert repos.questions.count_by_concept(concept_id) == 1
