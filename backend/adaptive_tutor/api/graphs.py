"""Unit graph endpoints: build, inspect, edges, concept insertion, layout, extension suggestions."""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from adaptive_tutor.api.deps import current_user_id, unwrap
from adaptive_tutor.api.serializers import serialize_change, serialize_edge, serialize_graph, serialize_insertion
from adaptive_tutor.application.gap_app_service import GapAppService
from adaptive_tutor.application.graph_app_service import GraphAppService
from adaptive_tutor.container import get_gap_app_service, get_graph_app_service
from adaptive_tutor.domain.concept.models import EdgeType, InsertPosition
from adaptive_tutor.domain.graph.validator import LayoutStyle

router = APIRouter(prefix="/graphs", tags=["graphs"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class GraphConceptBody(BaseModel):
    name: str
    description: str = ""
    key_terms: List[str] = []
    depth_tier: int = Field(default=1, ge=1)
    prior_knowledge: str = ""


class NamedEdgeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_name: str = Field(alias="from")
    to_name: str = Field(alias="to")
    edge_type: EdgeType = EdgeType.PREREQUISITE


class GraphBody(BaseModel):
    title: str
    concepts: List[GraphConceptBody]
    edges: List[NamedEdgeBody] = []


class EdgeBody(BaseModel):
    from_id: str
    to_id: str
    edge_type: EdgeType = EdgeType.PREREQUISITE


class InsertBody(BaseModel):
    anchor_id: str
    name: str
    position: InsertPosition = InsertPosition.PREREQUISITE
    description: str = ""
    key_terms: List[str] = []
    layout: Optional[LayoutStyle] = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------
@router.get("/")
def list_graphs(
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    return [{"id": g.id, "title": g.title, "created_at": g.created_at} for g in svc.list_graphs(user_id)]


@router.post("/", status_code=status.HTTP_201_CREATED)
def build_graph(
    body: GraphBody,
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    view = unwrap(
        svc.build_graph(
            user_id,
            body.title,
            [c.model_dump() for c in body.concepts],
            [{"from": e.from_name, "to": e.to_name, "edge_type": e.edge_type.value} for e in body.edges],
        )
    )
    return serialize_graph(view)


@router.get("/{graph_id}")
def get_graph(
    graph_id: str,
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    return serialize_graph(unwrap(svc.get_graph(user_id, graph_id)))


@router.post("/{graph_id}/edges")
def add_edge(
    graph_id: str,
    body: EdgeBody,
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    edge, kept, change = unwrap(svc.add_edge(user_id, graph_id, body.from_id, body.to_id, body.edge_type))
    return {"edge": serialize_edge(edge), "edge_kept": kept, **serialize_change(change)}


@router.post("/{graph_id}/concepts/insert")
def insert_concept(
    graph_id: str,
    body: InsertBody,
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    outcome = unwrap(
        svc.insert_concept(
            user_id,
            graph_id,
            body.anchor_id,
            body.name,
            position=body.position,
            description=body.description,
            key_terms=body.key_terms,
            layout=body.layout,
        )
    )
    return serialize_insertion(outcome)


@router.post("/{graph_id}/layout")
def relayout(
    graph_id: str,
    style: Optional[LayoutStyle] = None,
    svc: GraphAppService = Depends(get_graph_app_service),
    user_id: str = Depends(current_user_id),
):
    return serialize_change(unwrap(svc.relayout(user_id, graph_id, style)))


@router.post("/{graph_id}/concepts/{concept_id}/suggest-extension")
def suggest_extension(
    graph_id: str,
    concept_id: str,
    svc: GapAppService = Depends(get_gap_app_service),
    user_id: str = Depends(current_user_id),
):
    suggestion = unwrap(svc.suggest_extension(user_id, graph_id, concept_id))
    if suggestion is None:
        return {"has_suggestion": False}
    return {"has_suggestion": True, "name": suggestion.name, "rationale": suggestion.rationale}
