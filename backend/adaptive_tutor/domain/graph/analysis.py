"""Read-only graph queries: connectivity, prerequisite locks, neighbours."""
from __future__ import annotations
from typing import Dict, Iterable, List, Sequence, Set

import networkx as nx

from adaptive_tutor.domain.concept.models import Concept

PROFICIENCY_MASTERED = 0.7


def connected_components(nodes: Sequence[str], edges: Sequence) -> List[List[str]]:
    """Components of the undirected view of the graph, each listed in node order."""
    order = {node: i for i, node in enumerate(dict.fromkeys(nodes))}
    g = nx.Graph()
    g.add_nodes_from(order)
    g.add_edges_from((e.from_id, e.to_id) for e in edges if e.from_id in order and e.to_id in order)

    components = [sorted(component, key=order.__getitem__) for component in nx.connected_components(g)]
    return sorted(components, key=lambda component: order[component[0]])


def prerequisite_ids(edges: Iterable) -> Set[str]:
    """Concepts that at least one other concept depends on."""
    return {edge.from_id for edge in edges}


def locked_concepts(concepts: Sequence[Concept], edges: Sequence, mastered: float = PROFICIENCY_MASTERED) -> Set[str]:
    """A concept is locked while any of its prerequisites is below the mastery threshold."""
    by_id = {concept.id: concept for concept in concepts}
    locked: Set[str] = set()
    for edge in edges:
        prerequisite = by_id.get(edge.from_id)
        if prerequisite is None or edge.to_id not in by_id:
            continue
        if prerequisite.proficiency < mastered:
            locked.add(edge.to_id)
    return locked


def prerequisites_of(concept_id: str, edges: Sequence) -> List[str]:
    return [edge.from_id for edge in edges if edge.to_id == concept_id]


def dependents_of(concept_id: str, edges: Sequence) -> List[str]:
    return [edge.to_id for edge in edges if edge.from_id == concept_id]


def neighbours(nodes: Sequence[str], edges: Sequence) -> Dict[str, Dict[str, List[str]]]:
    return {
        node: {"prerequisites": prerequisites_of(node, edges), "dependents": dependents_of(node, edges)}
        for node in nodes
    }
