"""Practice endpoints: session composition, session lifecycle, attempt submission."""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from adaptive_tutor.api.deps import current_user_id, unwrap
from adaptive_tutor.api.serializers import serialize_attempt_outcome, serialize_plan, serialize_session
from adaptive_tutor.application.practice_app_service import PracticeAppService
from adaptive_tutor.container import get_practice_app_service

router = APIRouter(prefix="/practice", tags=["practice"])


class SessionBody(BaseModel):
    graph_id: Optional[str] = None


class SessionPatchBody(BaseModel):
    ended: bool = True


class AttemptBody(BaseModel):
    question_id: str
    user_answer: str
    time_taken_ms: int = Field(default=0, ge=0)
    session_id: Optional[str] = None
    graph_id: Optional[str] = None
    idempotency_key: Optional[str] = None


@router.get("/questions")
def compose_session(
    graph_id: Optional[str] = None,
    limit: Optional[int] = None,
    due: bool = False,
    concept_id: Optional[str] = None,
    locked: List[str] = Query(default=[]),
    respect_locks: bool = False,
    svc: PracticeAppService = Depends(get_practice_app_service),
    user_id: str = Depends(current_user_id),
):
    plan = unwrap(
        svc.compose(
            user_id,
            graph_id=graph_id,
            limit=limit,
            due_only=due,
            concept_id=concept_id,
            locked_ids=locked,
            respect_locks=respect_locks,
        )
    )
    return serialize_plan(plan)


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def start_session(
    body: SessionBody,
    svc: PracticeAppService = Depends(get_practice_app_service),
    user_id: str = Depends(current_user_id),
):
    return serialize_session(unwrap(svc.start_session(user_id, body.graph_id)))


@router.patch("/sessions/{session_id}")
def end_session(
    session_id: str,
    body: SessionPatchBody,
    svc: PracticeAppService = Depends(get_practice_app_service),
    user_id: str = Depends(current_user_id),
):
    if not body.ended:
        return serialize_session(unwrap(svc.get_session(user_id, session_id)))
    return serialize_session(unwrap(svc.end_session(user_id, session_id)))


@router.post("/attempts")
def submit_attempt(
    body: AttemptBody,
    svc: PracticeAppService = Depends(get_practice_app_service),
    user_id: str = Depends(current_user_id),
):
    outcome = unwrap(
        svc.submit_attempt(
            user_id,
            body.question_id,
            body.user_answer,
            time_taken_ms=body.time_taken_ms,
            session_id=body.session_id,
            graph_id=body.graph_id,
            idempotency_key=body.idempotency_key,
        )
    )
    return serialize_attempt_outcome(outcome)
