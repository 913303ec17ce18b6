"""Application service for unit graphs: building, edge edits, concept insertion, layout.

Every structural change runs repair + layout inside the same transaction, so the stored edge set
of a graph is acyclic and its positions are consistent whenever a reader can see them.
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from adaptive_tutor.application.concept_app_service import ConceptAppService
from adaptive_tutor.application.question_bank_service import QuestionBankService
from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import (
    AddedBy,
    Concept,
    ConceptEdge,
    EdgeType,
    GraphMembership,
    InsertPosition,
    UnitGraph,
)
from adaptive_tutor.domain.concept.rules import normalize_name
from adaptive_tutor.domain.graph.analysis import (
    PROFICIENCY_MASTERED,
    connected_components,
    locked_concepts,
    neighbours,
)
from adaptive_tutor.domain.graph.validator import (
    CycleBreakStrategy,
    LayoutSettings,
    LayoutStyle,
    arrange,
    break_cycles,
    reversed_difficulty_strategy,
)
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository
from adaptive_tutor.persistence.interfaces.graph_repository import GraphRepository

Positions = Dict[str, Tuple[float, float]]


@dataclass
class GraphView:
    graph: UnitGraph
    memberships: List[GraphMembership]
    concepts: Dict[str, Concept]
    edges: List[ConceptEdge]
    components: List[List[str]] = field(default_factory=list)
    locked: List[str] = field(default_factory=list)
    neighbours: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)


@dataclass
class StructureChange:
    """Result of any mutation: edges dropped by cycle repair and the fresh layout."""
    removed_edges: List[ConceptEdge]
    positions: Positions


@dataclass
class InsertionOutcome:
    concept_id: str
    was_reused: bool
    position: InsertPosition
    membership: GraphMembership
    edge: ConceptEdge
    edge_kept: bool
    change: StructureChange


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _Aborted(Exception):
    """Carries a failed Result out of a transaction so the transaction rolls back."""

    def __init__(self, result: Result):
        super().__init__(result.error)
        self.result = result


class GraphAppService:
    def __init__(
        self,
        db: Database,
        graphs: GraphRepository,
        concepts: ConceptRepository,
        concept_service: ConceptAppService,
        question_bank: Optional[QuestionBankService] = None,
        layout_settings: LayoutSettings = LayoutSettings(),
        layout_style: LayoutStyle = LayoutStyle.LAYERED,
        strategy: CycleBreakStrategy = reversed_difficulty_strategy,
        mastered: float = PROFICIENCY_MASTERED,
    ):
        self._db = db
        self._graphs = graphs
        self._concepts = concepts
        self._concept_service = concept_service
        self._question_bank = question_bank
        self._layout_settings = layout_settings
        self._layout_style = layout_style
        self._strategy = strategy
        self._mastered = mastered

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _owned_graph(self, user_id: str, graph_id: str) -> Result[UnitGraph]:
        graph = self._graphs.get_graph(graph_id)
        if not graph:
            return Result.not_found(f"Graph '{graph_id}' not found.")
        if graph.user_id != user_id:
            return Result.forbidden(f"Graph '{graph_id}' belongs to another learner.")
        return Result.ok(graph)

    def _repair_and_layout(self, graph_id: str, style: Optional[LayoutStyle] = None) -> StructureChange:
        """Must run inside a transaction. `style` defaults to the service-wide layout style."""
        memberships = self._graphs.list_memberships(graph_id)
        tiers = {m.concept_id: m.depth_tier for m in memberships}
        nodes = [m.concept_id for m in memberships]

        repair = break_cycles(nodes, self._graphs.list_edges(graph_id), lambda cid: tiers.get(cid, 1), self._strategy)
        if repair.was_repaired:
            self._graphs.delete_edges([edge.id for edge in repair.removed])

        positions = arrange(
            nodes, repair.edges, lambda cid: tiers.get(cid, 1), style or self._layout_style, self._layout_settings
        )
        self._graphs.save_positions(graph_id, positions)
        logger.debug(f"Persisted layout for {len(positions)} concepts in graph {graph_id}")
        return StructureChange(removed_edges=list(repair.removed), positions=positions)

    def _schedule_generation(self, concept_ids: Sequence[str]) -> None:
        if self._question_bank is None:
            return
        for concept_id in concept_ids:
            self._question_bank.schedule(concept_id)

    # ------------------------------------------------------------------
    # BUILD
    # ------------------------------------------------------------------
    def build_graph(self, user_id: str, title: str, concepts: List[dict], edges: List[dict]) -> Result[GraphView]:
        """
        `concepts`: dicts with name, description, key_terms, depth_tier, prior_knowledge.
        `edges`: dicts with from/to concept names and an optional edge_type.
        Edges naming unknown concepts, and self-loops, are dropped.
        """
        if not (title or "").strip():
            return Result.fail("Graph 'title' is required.")
        if not concepts:
            return Result.fail("A graph needs at least one concept.")

        graph = UnitGraph(id=str(uuid.uuid4()), user_id=user_id, title=title.strip(), created_at=_now_iso())
        try:
            with self._db.transaction():
                new_ids = self._populate(graph, concepts, edges)
        except _Aborted as e:
            return e.result.propagate()

        self._schedule_generation(new_ids)
        return self.get_graph(user_id, graph.id)

    def _populate(self, graph: UnitGraph, concepts: List[dict], edges: List[dict]) -> List[str]:
        """Writes graph, memberships and edges. Returns the ids of concepts created (not reused)."""
        self._graphs.save_graph(graph)

        new_ids: List[str] = []
        ids_by_name: Dict[str, str] = {}
        for spec in concepts:
            tier = max(1, int(spec.get("depth_tier") or 1))
            resolved = self._concept_service.find_or_create_seeded(
                graph.user_id,
                spec.get("name") or "",
                spec.get("description") or "",
                spec.get("key_terms") or [],
                spec.get("prior_knowledge") or "",
                tier,
            )
            if not resolved.is_success:
                raise _Aborted(resolved)
            concept_id, was_reused = resolved.value
            ids_by_name[normalize_name(spec["name"])] = concept_id
            if not was_reused:
                new_ids.append(concept_id)
            self._graphs.save_membership(
                GraphMembership(concept_id=concept_id, unit_graph_id=graph.id, depth_tier=tier)
            )

        for spec in edges:
            from_id = ids_by_name.get(normalize_name(spec.get("from") or ""))
            to_id = ids_by_name.get(normalize_name(spec.get("to") or ""))
            if not from_id or not to_id or from_id == to_id:
                logger.debug(f"Dropping edge {spec.get('from')!r} -> {spec.get('to')!r} in graph {graph.id}")
                continue
            self._graphs.save_edge(
                ConceptEdge(
                    id=str(uuid.uuid4()),
                    from_id=from_id,
                    to_id=to_id,
                    unit_graph_id=graph.id,
                    edge_type=EdgeType(spec.get("edge_type") or EdgeType.PREREQUISITE.value),
                )
            )

        self._repair_and_layout(graph.id)
        return new_ids

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def list_graphs(self, user_id: str) -> List[UnitGraph]:
        return self._graphs.list_graphs(user_id)

    def get_graph(self, user_id: str, graph_id: str) -> Result[GraphView]:
        found = self._owned_graph(user_id, graph_id)
        if not found.is_success:
            return found.propagate()

        memberships = self._graphs.list_memberships(graph_id)
        concepts = {c.id: c for c in self._concepts.list_by_ids([m.concept_id for m in memberships])}
        edges = self._graphs.list_edges(graph_id)
        nodes = [m.concept_id for m in memberships]
        return Result.ok(
            GraphView(
                graph=found.value,
                memberships=memberships,
                concepts=concepts,
                edges=edges,
                components=connected_components(nodes, edges),
                locked=sorted(locked_concepts(list(concepts.values()), edges, self._mastered)),
                neighbours=neighbours(nodes, edges),
            )
        )

    # ------------------------------------------------------------------
    # EDGES
    # ------------------------------------------------------------------
    def add_edge(
        self,
        user_id: str,
        graph_id: str,
        from_id: str,
        to_id: str,
        edge_type: EdgeType = EdgeType.PREREQUISITE,
        added_by: AddedBy = AddedBy.USER,
    ) -> Result[Tuple[ConceptEdge, bool, StructureChange]]:
        """Returns (edge, kept, change). `kept` is False when cycle repair dropped the new edge."""
        if from_id == to_id:
            return Result.fail("An edge cannot connect a concept to itself.")

        with self._db.transaction():
            found = self._owned_graph(user_id, graph_id)
            if not found.is_success:
                return found.propagate()
            for concept_id in (from_id, to_id):
                if not self._graphs.get_membership(graph_id, concept_id):
                    return Result.not_found(f"Concept '{concept_id}' is not part of graph '{graph_id}'.")

            edge = self._graphs.find_edge(graph_id, from_id, to_id)
            if edge is None:
                edge = ConceptEdge(
                    id=str(uuid.uuid4()),
                    from_id=from_id,
                    to_id=to_id,
                    unit_graph_id=graph_id,
                    edge_type=edge_type,
                    added_by=added_by,
                )
                self._graphs.save_edge(edge)

            change = self._repair_and_layout(graph_id)

        kept = all(removed.id != edge.id for removed in change.removed_edges)
        return Result.ok((edge, kept, change))

    # ------------------------------------------------------------------
    # INSERT
    # ------------------------------------------------------------------
    def insert_concept(
        self,
        user_id: str,
        graph_id: str,
        anchor_id: str,
        name: str,
        position: InsertPosition = InsertPosition.PREREQUISITE,
        added_by: AddedBy = AddedBy.USER,
        description: str = "",
        key_terms: Sequence[str] = (),
        layout: Optional[LayoutStyle] = None,
    ) -> Result[InsertionOutcome]:
        """
        Attach a concept before (prerequisite) or after (extension) an anchor already in the graph.
        A cycle closed by the new edge is repaired, never rejected.
        """
        if not (name or "").strip():
            return Result.fail("Concept 'name' is required and cannot be empty.")

        with self._db.transaction():
            found = self._owned_graph(user_id, graph_id)
            if not found.is_success:
                return found.propagate()
            anchor = self._graphs.get_membership(graph_id, anchor_id)
            anchor_concept = self._concepts.get_by_id(anchor_id)
            if not anchor or not anchor_concept:
                return Result.not_found(f"Concept '{anchor_id}' is not part of graph '{graph_id}'.")
            if normalize_name(name) == anchor_concept.name_normalized:
                return Result.fail("A concept cannot be inserted next to itself.")

            resolved = self._concept_service.find_or_create(user_id, name, description, key_terms)
            if not resolved.is_success:
                return resolved.propagate()
            concept_id, was_reused = resolved.value

            if position == InsertPosition.EXTENSION:
                tier = anchor.depth_tier + 1
                from_id, to_id = anchor_id, concept_id
            else:
                tier = max(1, anchor.depth_tier - 1)
                from_id, to_id = concept_id, anchor_id

            membership = self._graphs.get_membership(graph_id, concept_id)
            if membership is None:
                membership = GraphMembership(
                    concept_id=concept_id, unit_graph_id=graph_id, depth_tier=tier, added_by=added_by
                )
                self._graphs.save_membership(membership)

            edge = self._graphs.find_edge(graph_id, from_id, to_id)
            if edge is None:
                edge = ConceptEdge(
                    id=str(uuid.uuid4()),
                    from_id=from_id,
                    to_id=to_id,
                    unit_graph_id=graph_id,
                    added_by=added_by,
                )
                self._graphs.save_edge(edge)

            change = self._repair_and_layout(graph_id, layout)

        if not was_reused:
            self._schedule_generation([concept_id])
        x, y = change.positions.get(concept_id, (membership.position_x, membership.position_y))
        membership.position_x, membership.position_y = x, y
        return Result.ok(
            InsertionOutcome(
                concept_id=concept_id,
                was_reused=was_reused,
                position=position,
                membership=membership,
                edge=edge,
                edge_kept=all(removed.id != edge.id for removed in change.removed_edges),
                change=change,
            )
        )

    # ------------------------------------------------------------------
    # LAYOUT
    # ------------------------------------------------------------------
    def relayout(self, user_id: str, graph_id: str, style: Optional[LayoutStyle] = None) -> Result[StructureChange]:
        with self._db.transaction():
            found = self._owned_graph(user_id, graph_id)
            if not found.is_success:
                return found.propagate()
            return Result.ok(self._repair_and_layout(graph_id, style))
