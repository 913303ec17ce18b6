"""Graph building, edge edits and concept insertion with repair + layout."""
from adaptive_tutor.domain.common.result import FORBIDDEN, INVALID, NOT_FOUND
from adaptive_tutor.domain.concept.models import AddedBy, InsertPosition
from adaptive_tutor.domain.graph.validator import LayoutStyle

from conftest import OTHER_USER, USER


def names(view, edges=None):
    by_id = {cid: c.name for cid, c in view.concepts.items()}
    return [(by_id[e.from_id], by_id[e.to_id]) for e in (edges if edges is not None else view.edges)]


def positions(view):
    by_id = {cid: c.name for cid, c in view.concepts.items()}
    return {by_id[m.concept_id]: (m.position_x, m.position_y) for m in view.memberships}


# ------------------------------------------------------------------
# build_graph
# ------------------------------------------------------------------
def test_build_repairs_cycle_and_lays_out_layers(services):
    view = services.graph.build_graph(
        USER,
        "Calculus",
        [
            {"name": "Functions", "depth_tier": 1},
            {"name": "Limits", "depth_tier": 2},
            {"name": "Derivatives", "depth_tier": 3},
        ],
        [
            {"from": "Functions", "to": "Limits"},
            {"from": "Limits", "to": "Derivatives"},
            {"from": "Derivatives", "to": "Functions"},
        ],
    ).value
    assert names(view) == [("Functions", "Limits"), ("Limits", "Derivatives")]
    assert positions(view) == {"Functions": (0, 0), "Limits": (0, 180), "Derivatives": (0, 360)}
    assert view.locked == sorted(c.id for c in view.concepts.values() if c.name != "Functions")


def test_build_drops_unknown_and_self_referencing_edges(services):
    view = services.graph.build_graph(
        USER,
        "Chemistry",
        [{"name": "Atoms"}, {"name": "Bonds"}],
        [{"from": "Atoms", "to": "Bonds"}, {"from": "Atoms", "to": "Quarks"}, {"from": "bonds", "to": "Bonds"}],
    ).value
    assert names(view) == [("Atoms", "Bonds")]


def test_build_reuses_concepts_across_graphs(services):
    first = services.graph.build_graph(USER, "Algebra I", [{"name": "Variables"}], []).value
    second = services.graph.build_graph(USER, "Algebra II", [{"name": "variables"}], []).value
    assert set(first.concepts) == set(second.concepts)
    assert len(services.graph.list_graphs(USER)) == 2


def test_build_rejects_bad_input(services):
    assert services.graph.build_graph(USER, " ", [{"name": "A"}], []).code == INVALID
    assert services.graph.build_graph(USER, "Empty", [], []).code == INVALID
    assert services.graph.build_graph(USER, "Blank", [{"name": ""}], []).code == INVALID
    assert services.graph.list_graphs(USER) == []


def test_get_graph_checks_ownership(services, simple_graph):
    assert services.graph.get_graph(OTHER_USER, simple_graph.id).code == FORBIDDEN
    assert services.graph.get_graph(USER, "nope").code == NOT_FOUND


# ------------------------------------------------------------------
# add_edge
# ------------------------------------------------------------------
def test_add_edge_closing_a_cycle_is_repaired(services, simple_graph):
    edge, kept, change = services.graph.add_edge(USER, simple_graph.id, simple_graph.ratios, simple_graph.fractions).value
    assert not kept
    assert [e.id for e in change.removed_edges] == [edge.id]
    view = services.graph.get_graph(USER, simple_graph.id).value
    assert names(view) == [("Fractions", "Ratios")]


def test_add_edge_validates_endpoints(services, simple_graph):
    assert services.graph.add_edge(USER, simple_graph.id, simple_graph.ratios, simple_graph.ratios).code == INVALID
    assert services.graph.add_edge(USER, simple_graph.id, simple_graph.ratios, "ghost").code == NOT_FOUND
    assert services.graph.add_edge(OTHER_USER, simple_graph.id, simple_graph.fractions,
                                   simple_graph.ratios).code == FORBIDDEN


def test_add_existing_edge_is_a_no_op(services, simple_graph):
    edge, kept, _ = services.graph.add_edge(USER, simple_graph.id, simple_graph.fractions, simple_graph.ratios).value
    assert kept
    assert [e.id for e in services.graph.get_graph(USER, simple_graph.id).value.edges] == [edge.id]


# ------------------------------------------------------------------
# insert_concept
# ------------------------------------------------------------------
def test_insert_prerequisite_goes_one_tier_down(services, simple_graph):
    outcome = services.graph.insert_concept(USER, simple_graph.id, simple_graph.fractions, "Division").value
    assert not outcome.was_reused
    assert outcome.membership.depth_tier == 1
    assert (outcome.edge.from_id, outcome.edge.to_id) == (outcome.concept_id, simple_graph.fractions)
    assert outcome.edge_kept
    assert outcome.membership.added_by == AddedBy.USER
    assert outcome.change.positions[outcome.concept_id] == (0, 0)


def test_insert_extension_goes_one_tier_up(services, simple_graph):
    outcome = services.graph.insert_concept(
        USER, simple_graph.id, simple_graph.ratios, "Proportions", InsertPosition.EXTENSION
    ).value
    assert outcome.membership.depth_tier == 3
    assert (outcome.edge.from_id, outcome.edge.to_id) == (simple_graph.ratios, outcome.concept_id)
    assert outcome.membership.position_y == 360


def test_insert_closing_a_cycle_drops_the_new_edge(services, simple_graph):
    outcome = services.graph.insert_concept(
        USER, simple_graph.id, simple_graph.ratios, "fractions", InsertPosition.EXTENSION
    ).value
    assert outcome.was_reused
    assert outcome.concept_id == simple_graph.fractions
    assert not outcome.edge_kept
    view = services.graph.get_graph(USER, simple_graph.id).value
    assert names(view) == [("Fractions", "Ratios")]


def test_repeated_insert_reuses_concept_and_edge(services, simple_graph):
    first = services.graph.insert_concept(USER, simple_graph.id, simple_graph.fractions, "Division").value
    second = services.graph.insert_concept(USER, simple_graph.id, simple_graph.fractions, "division").value
    assert second.was_reused
    assert second.edge.id == first.edge.id
    assert len(services.graph.get_graph(USER, simple_graph.id).value.edges) == 2


def test_insert_next_to_itself_or_unknown_anchor_fails(services, simple_graph):
    assert services.graph.insert_concept(USER, simple_graph.id, simple_graph.ratios, "RATIOS").code == INVALID
    assert services.graph.insert_concept(USER, simple_graph.id, "ghost", "Division").code == NOT_FOUND
    assert services.graph.insert_concept(USER, simple_graph.id, simple_graph.ratios, "").code == INVALID


def test_relayout_returns_positions(services, simple_graph):
    change = services.graph.relayout(USER, simple_graph.id).value
    assert change.removed_edges == []
    assert change.positions == {simple_graph.fractions: (0, 0), simple_graph.ratios: (0, 180)}


def test_relayout_with_force_style_persists_positions(services, repos, simple_graph):
    change = services.graph.relayout(USER, simple_graph.id, LayoutStyle.FORCE).value
    assert set(change.positions) == {simple_graph.fractions, simple_graph.ratios}
    stored = {m.concept_id: (m.position_x, m.position_y) for m in repos.graphs.list_memberships(simple_graph.id)}
    assert stored == change.positions


def test_insert_can_request_force_layout(services, simple_graph):
    outcome = services.graph.insert_concept(
        USER, simple_graph.id, simple_graph.ratios, "Proportions", InsertPosition.EXTENSION,
        layout=LayoutStyle.FORCE,
    ).value
    assert len(outcome.change.positions) == 3
    assert (outcome.membership.position_x, outcome.membership.position_y) == \
        outcome.change.positions[outcome.concept_id]


def test_graph_view_lists_neighbours(services, simple_graph):
    view = services.graph.get_graph(USER, simple_graph.id).value
    assert view.neighbours[simple_graph.ratios] == {"prerequisites": [simple_graph.fractions], "dependents": []}
    assert view.neighbours[simple_graph.fractions]["dependents"] == [simple_graph.ratios]
