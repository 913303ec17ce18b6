"""Abstract repository interface for unit graphs, their memberships and their edges."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from adaptive_tutor.domain.concept.models import ConceptEdge, GraphMembership, UnitGraph


class GraphRepository(ABC):

    @abstractmethod
    def save_graph(self, graph: UnitGraph) -> None:
        ...

    @abstractmethod
    def get_graph(self, graph_id: str) -> Optional[UnitGraph]:
        ...

    @abstractmethod
    def list_graphs(self, user_id: str) -> List[UnitGraph]:
        ...

    @abstractmethod
    def get_membership(self, graph_id: str, concept_id: str) -> Optional[GraphMembership]:
        ...

    @abstractmethod
    def list_memberships(self, graph_id: str) -> List[GraphMembership]:
        ...

    @abstractmethod
    def list_memberships_for_concept(self, concept_id: str) -> List[GraphMembership]:
        ...

    @abstractmethod
    def save_membership(self, membership: GraphMembership) -> None:
        """Insert a membership; an existing (concept, graph) pair is left untouched."""
        ...

    @abstractmethod
    def save_positions(self, graph_id: str, positions: Dict[str, Tuple[float, float]]) -> None:
        """Persist every position in one batch."""
        ...

    @abstractmethod
    def find_edge(self, graph_id: str, from_id: str, to_id: str) -> Optional[ConceptEdge]:
        ...

    @abstractmethod
    def list_edges(self, graph_id: str) -> List[ConceptEdge]:
        ...

    @abstractmethod
    def list_edges_for_user(self, user_id: str) -> List[ConceptEdge]:
        """Edges across every graph the user owns."""
        ...

    @abstractmethod
    def save_edge(self, edge: ConceptEdge) -> None:
        ...

    @abstractmethod
    def delete_edges(self, edge_ids: List[str]) -> None:
        ...
