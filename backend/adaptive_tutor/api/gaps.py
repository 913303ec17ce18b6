"""Gap detection endpoints: pattern check and the learner's accept/decline decision."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adaptive_tutor.api.deps import current_user_id, unwrap
from adaptive_tutor.api.serializers import serialize_insertion, serialize_pattern
from adaptive_tutor.application.gap_app_service import GapAppService
from adaptive_tutor.container import get_gap_app_service

router = APIRouter(prefix="/gaps", tags=["gaps"])


class AcceptBody(BaseModel):
    graph_id: str
    concept_id: str
    missing_concept: str


class DeclineBody(BaseModel):
    concept_id: str
    missing_concept: str


@router.get("/pattern")
def check_pattern(
    concept_id: str,
    propose: bool = False,
    svc: GapAppService = Depends(get_gap_app_service),
    user_id: str = Depends(current_user_id),
):
    """`propose=true` marks the matching detections as shown to the learner."""
    if propose:
        return serialize_pattern(unwrap(svc.mark_proposed(user_id, concept_id)))
    return serialize_pattern(unwrap(svc.check_pattern(user_id, concept_id)))


@router.post("/accept")
def accept_gap(
    body: AcceptBody,
    svc: GapAppService = Depends(get_gap_app_service),
    user_id: str = Depends(current_user_id),
):
    return serialize_insertion(unwrap(svc.accept(user_id, body.graph_id, body.concept_id, body.missing_concept)))


@router.post("/decline")
def decline_gap(
    body: DeclineBody,
    svc: GapAppService = Depends(get_gap_app_service),
    user_id: str = Depends(current_user_id),
):
    declined = unwrap(svc.decline(user_id, body.concept_id, body.missing_concept))
    return {"declined": declined}
