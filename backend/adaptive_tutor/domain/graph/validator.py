"""Prerequisite-graph integrity: cycle detection (Kahn), tier-based cycle repair, layered and force layouts.

Edges are any objects exposing `from_id` and `to_id`; nodes are concept ids.
"""
from __future__ import annotations
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Sequence, Tuple, TypeVar

import networkx as nx
from loguru import logger

E = TypeVar("E")

TierLookup = Callable[[str], int]
# Picks which edge to drop from the edges whose endpoints are both cyclic.
# Returns (index into the candidate list, reason).
CycleBreakStrategy = Callable[[Sequence, TierLookup], Tuple[int, str]]


@dataclass(frozen=True)
class DagResult:
    is_dag: bool
    topological_order: List[str] = field(default_factory=list)
    cyclic_nodes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RepairResult:
    edges: list
    removed: list

    @property
    def was_repaired(self) -> bool:
        return bool(self.removed)


class LayoutStyle(str, Enum):
    LAYERED = "layered"
    FORCE = "force"


@dataclass(frozen=True)
class LayoutSettings:
    layer_gap: float = 180.0
    node_gap: float = 280.0
    grid_columns: int = 5
    cell_width: float = 250.0
    cell_height: float = 150.0
    # force layout: tier rings at 0.3 / 0.7 / 1.0 of the base radius
    force_radius: float = 200.0
    force_radial_strength: float = 0.6
    force_iterations: int = 100
    force_seed: int = 7


def _adjacency(nodes: Sequence[str], edges: Sequence) -> Tuple[Dict[str, List[str]], Dict[str, int]]:
    adjacency: Dict[str, List[str]] = {node: [] for node in nodes}
    in_degree: Dict[str, int] = {node: 0 for node in nodes}
    for edge in edges:
        # edges to nodes outside this graph are ignored
        if edge.from_id not in adjacency or edge.to_id not in adjacency:
            continue
        adjacency[edge.from_id].append(edge.to_id)
        in_degree[edge.to_id] += 1
    return adjacency, in_degree


def validate_dag(nodes: Sequence[str], edges: Sequence) -> DagResult:
    """Kahn's algorithm. Nodes never emitted into the order are the cyclic set."""
    unique_nodes = list(dict.fromkeys(nodes))
    adjacency, in_degree = _adjacency(unique_nodes, edges)

    queue = deque(node for node in unique_nodes if in_degree[node] == 0)
    order: List[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for neighbor in adjacency[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(order) == len(unique_nodes):
        return DagResult(is_dag=True, topological_order=order)

    emitted = set(order)
    return DagResult(is_dag=False, cyclic_nodes=[node for node in unique_nodes if node not in emitted])


# ------------------------------------------------------------------
# Cycle-break strategies
# ------------------------------------------------------------------
def reversed_difficulty_strategy(candidates: Sequence, tier_of: TierLookup) -> Tuple[int, str]:
    """Prefer an edge whose source sits on a higher tier than its target."""
    for index, edge in enumerate(candidates):
        if tier_of(edge.from_id) > tier_of(edge.to_id):
            return index, "reversed-difficulty"
    return 0, "first-cyclic-fallback"


def first_cyclic_edge_strategy(candidates: Sequence, tier_of: TierLookup) -> Tuple[int, str]:
    return 0, "first-cyclic"


def break_cycles(
    nodes: Sequence[str],
    edges: Sequence[E],
    tier_of: TierLookup,
    strategy: CycleBreakStrategy = reversed_difficulty_strategy,
) -> RepairResult:
    """Drop edges until the graph is acyclic. At most len(edges) removals."""
    current = list(edges)
    removed: list = []
    result = validate_dag(nodes, current)
    budget = len(current)

    while not result.is_dag and budget > 0:
        cyclic = set(result.cyclic_nodes)
        candidates = [edge for edge in current if edge.from_id in cyclic and edge.to_id in cyclic]
        if not candidates:
            break

        index, reason = strategy(candidates, tier_of)
        victim = candidates[index]
        logger.info(
            f"Removing cyclic edge {victim.from_id} -> {victim.to_id} "
            f"(tier {tier_of(victim.from_id)} -> tier {tier_of(victim.to_id)}, reason: {reason})"
        )
        current.remove(victim)
        removed.append(victim)
        result = validate_dag(nodes, current)
        budget -= 1

    return RepairResult(edges=current, removed=removed)


# ------------------------------------------------------------------
# Layout
# ------------------------------------------------------------------
def compute_layout(
    nodes: Sequence[str],
    edges: Sequence,
    settings: LayoutSettings = LayoutSettings(),
) -> Dict[str, Tuple[float, float]]:
    """Layered layout (layer = longest path from a root); grid layout when the graph is cyclic."""
    unique_nodes = list(dict.fromkeys(nodes))
    result = validate_dag(unique_nodes, edges)

    if not result.is_dag:
        return {
            node: (
                (i % settings.grid_columns) * settings.cell_width,
                (i // settings.grid_columns) * settings.cell_height,
            )
            for i, node in enumerate(unique_nodes)
        }

    adjacency, _ = _adjacency(unique_nodes, edges)
    layers = compute_layers(result.topological_order, adjacency)

    groups: Dict[int, List[str]] = {}
    for node in unique_nodes:
        groups.setdefault(layers[node], []).append(node)

    positions: Dict[str, Tuple[float, float]] = {}
    for layer, members in groups.items():
        start_x = -((len(members) - 1) * settings.node_gap) / 2
        for i, node in enumerate(members):
            positions[node] = (start_x + i * settings.node_gap, layer * settings.layer_gap)
    return positions


def compute_layers(topological_order: Sequence[str], adjacency: Dict[str, List[str]]) -> Dict[str, int]:
    layers = {node: 0 for node in topological_order}
    for node in topological_order:
        for neighbor in adjacency.get(node, []):
            layers[neighbor] = max(layers[neighbor], layers[node] + 1)
    return layers



_TIER_RINGS = {1: 0.3, 2: 0.7}


def _ring_radius(tier: int, base_radius: float) -> float:
    return base_radius * _TIER_RINGS.get(tier, 1.0)


def force_layout(
    nodes: Sequence[str],
    edges: Sequence,
    tier_of: TierLookup,
    settings: LayoutSettings = LayoutSettings(),
) -> Dict[str, Tuple[float, float]]:
    """
    Spring layout pulled toward tier rings around the origin: foundation concepts gravitate to
    the centre, advanced ones radiate outward. Spacing grows with sqrt(n / 10) so larger graphs
    stay readable. Deterministic for a given `force_seed`.
    """
    unique_nodes = list(dict.fromkeys(nodes))
    if not unique_nodes:
        return {}
    base_radius = settings.force_radius * max(1.0, math.sqrt(len(unique_nodes) / 10))

    g = nx.Graph()
    g.add_nodes_from(unique_nodes)
    g.add_edges_from((e.from_id, e.to_id) for e in edges if e.from_id in g and e.to_id in g)

    # seed positions: evenly spaced angles, each node on its tier ring
    initial: Dict[str, Tuple[float, float]] = {}
    for i, node in enumerate(unique_nodes):
        angle = 2 * math.pi * i / len(unique_nodes)
        radius = _ring_radius(tier_of(node), base_radius)
        initial[node] = (radius * math.cos(angle), radius * math.sin(angle))

    spread = nx.spring_layout(
        g,
        pos=initial,
        iterations=settings.force_iterations,
        seed=settings.force_seed,
        scale=base_radius,
    )

    positions: Dict[str, Tuple[float, float]] = {}
    for node in unique_nodes:
        x, y = float(spread[node][0]), float(spread[node][1])
        distance = math.hypot(x, y)
        if distance == 0:
            x, y = initial[node]
            distance = math.hypot(x, y)
        target = _ring_radius(tier_of(node), base_radius)
        radius = distance + settings.force_radial_strength * (target - distance)
        positions[node] = (round(x / distance * radius, 2), round(y / distance * radius, 2))
    return positions


def arrange(
    nodes: Sequence[str],
    edges: Sequence,
    tier_of: TierLookup,
    style: LayoutStyle = LayoutStyle.LAYERED,
    settings: LayoutSettings = LayoutSettings(),
) -> Dict[str, Tuple[float, float]]:
    if style == LayoutStyle.FORCE:
        return force_layout(nodes, edges, tier_of, settings)
    return compute_layout(nodes, edges, settings)
