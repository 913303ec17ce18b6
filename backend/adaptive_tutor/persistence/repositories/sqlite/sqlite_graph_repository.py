"""SQLite implementation of GraphRepository."""
from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from adaptive_tutor.domain.concept.models import AddedBy, ConceptEdge, EdgeType, GraphMembership, UnitGraph
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.graph_repository import GraphRepository


def _row_to_graph(row) -> UnitGraph:
    return UnitGraph(id=row["id"], user_id=row["user_id"], title=row["title"], created_at=row["created_at"])


def _row_to_membership(row) -> GraphMembership:
    return GraphMembership(
        concept_id=row["concept_id"],
        unit_graph_id=row["unit_graph_id"],
        depth_tier=row["depth_tier"],
        position_x=row["position_x"],
        position_y=row["position_y"],
        added_by=AddedBy(row["added_by"]),
    )


def _row_to_edge(row) -> ConceptEdge:
    return ConceptEdge(
        id=row["id"],
        from_id=row["from_id"],
        to_id=row["to_id"],
        unit_graph_id=row["unit_graph_id"],
        edge_type=EdgeType(row["edge_type"]),
        added_by=AddedBy(row["added_by"]),
    )


class SqliteGraphRepository(GraphRepository):

    def __init__(self, db: Database):
        self._db = db

    # ------------------------------------------------------------------
    # Graphs
    # ------------------------------------------------------------------
    def save_graph(self, graph: UnitGraph) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO unit_graphs (id, user_id, title, created_at)
                VALUES (:id, :user_id, :title, :created_at)
                ON CONFLICT(id) DO UPDATE SET title = excluded.title
                """,
                {"id": graph.id, "user_id": graph.user_id, "title": graph.title, "created_at": graph.created_at},
            )

    def get_graph(self, graph_id: str) -> Optional[UnitGraph]:
        with self._db.session() as conn:
            row = conn.execute("SELECT * FROM unit_graphs WHERE id = ?", (graph_id,)).fetchone()
        return _row_to_graph(row) if row else None

    def list_graphs(self, user_id: str) -> List[UnitGraph]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM unit_graphs WHERE user_id = ? ORDER BY created_at ASC", (user_id,)
            ).fetchall()
        return [_row_to_graph(r) for r in rows]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------
    def get_membership(self, graph_id: str, concept_id: str) -> Optional[GraphMembership]:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT * FROM graph_memberships WHERE unit_graph_id = ? AND concept_id = ?",
                (graph_id, concept_id),
            ).fetchone()
        return _row_to_membership(row) if row else None

    def list_memberships(self, graph_id: str) -> List[GraphMembership]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM graph_memberships WHERE unit_graph_id = ? ORDER BY rowid ASC", (graph_id,)
            ).fetchall()
        return [_row_to_membership(r) for r in rows]

    def list_memberships_for_concept(self, concept_id: str) -> List[GraphMembership]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM graph_memberships WHERE concept_id = ? ORDER BY rowid ASC", (concept_id,)
            ).fetchall()
        return [_row_to_membership(r) for r in rows]

    def save_membership(self, membership: GraphMembership) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO graph_memberships (concept_id, unit_graph_id, depth_tier, position_x, position_y, added_by)
                VALUES (:concept_id, :unit_graph_id, :depth_tier, :position_x, :position_y, :added_by)
                ON CONFLICT(concept_id, unit_graph_id) DO NOTHING
                """,
                {
                    "concept_id": membership.concept_id,
                    "unit_graph_id": membership.unit_graph_id,
                    "depth_tier": membership.depth_tier,
                    "position_x": membership.position_x,
                    "position_y": membership.position_y,
                    "added_by": membership.added_by.value,
                },
            )

    def save_positions(self, graph_id: str, positions: Dict[str, Tuple[float, float]]) -> None:
        with self._db.transaction() as conn:
            conn.executemany(
                """
                UPDATE graph_memberships SET position_x = ?, position_y = ?
                WHERE unit_graph_id = ? AND concept_id = ?
                """,
                [(x, y, graph_id, concept_id) for concept_id, (x, y) in positions.items()],
            )

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------
    def find_edge(self, graph_id: str, from_id: str, to_id: str) -> Optional[ConceptEdge]:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT * FROM concept_edges WHERE unit_graph_id = ? AND from_id = ? AND to_id = ?",
                (graph_id, from_id, to_id),
            ).fetchone()
        return _row_to_edge(row) if row else None

    def list_edges(self, graph_id: str) -> List[ConceptEdge]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM concept_edges WHERE unit_graph_id = ? ORDER BY rowid ASC", (graph_id,)
            ).fetchall()
        return [_row_to_edge(r) for r in rows]

    def list_edges_for_user(self, user_id: str) -> List[ConceptEdge]:
        with self._db.session() as conn:
            rows = conn.execute(
                """
                SELECT e.* FROM concept_edges e
                JOIN unit_graphs g ON g.id = e.unit_graph_id
                WHERE g.user_id = ?
                ORDER BY e.rowid ASC
                """,
                (user_id,),
            ).fetchall()
        return [_row_to_edge(r) for r in rows]

    def save_edge(self, edge: ConceptEdge) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO concept_edges (id, from_id, to_id, unit_graph_id, edge_type, added_by)
                VALUES (:id, :from_id, :to_id, :unit_graph_id, :edge_type, :added_by)
                ON CONFLICT(from_id, to_id, unit_graph_id) DO NOTHING
                """,
                {
                    "id": edge.id,
                    "from_id": edge.from_id,
                    "to_id": edge.to_id,
                    "unit_graph_id": edge.unit_graph_id,
                    "edge_type": edge.edge_type.value,
                    "added_by": edge.added_by.value,
                },
            )

    def delete_edges(self, edge_ids: List[str]) -> None:
        if not edge_ids:
            return
        with self._db.session() as conn:
            conn.executemany("DELETE FROM concept_edges WHERE id = ?", [(edge_id,) for edge_id in edge_ids])
