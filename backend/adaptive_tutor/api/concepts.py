"""Concept endpoints: find-or-create, reads, manual adjustment, deprecation, question banks."""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from adaptive_tutor.api.deps import current_user_id, unwrap
from adaptive_tutor.api.serializers import serialize_concept, serialize_question
from adaptive_tutor.application.concept_app_service import ConceptAppService
from adaptive_tutor.application.question_bank_service import QuestionBankService
from adaptive_tutor.container import get_concept_app_service, get_question_bank_service

router = APIRouter(tags=["concepts"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class ConceptBody(BaseModel):
    name: str
    description: str = ""
    key_terms: List[str] = []
    proficiency: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ConceptPatchBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    key_terms: Optional[List[str]] = None
    proficiency: Optional[float] = None
    confidence: Optional[float] = None


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
@router.get("/health")
def health():
    return {"status": "ok"}


# ------------------------------------------------------------------
# Concept endpoints
# ------------------------------------------------------------------
@router.get("/concepts/")
def list_concepts(
    include_deprecated: bool = False,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    return [serialize_concept(c) for c in svc.list_concepts(user_id, include_deprecated)]


@router.post("/concepts/")
def find_or_create_concept(
    body: ConceptBody,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    concept_id, was_reused = unwrap(
        svc.find_or_create(user_id, body.name, body.description, body.key_terms, body.proficiency, body.confidence)
    )
    concept = unwrap(svc.get_concept(user_id, concept_id))
    return {"was_reused": was_reused, "concept": serialize_concept(concept)}


@router.get("/concepts/{concept_id}")
def get_concept(
    concept_id: str,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    return serialize_concept(unwrap(svc.get_concept(user_id, concept_id)))


@router.patch("/concepts/{concept_id}")
def adjust_concept(
    concept_id: str,
    body: ConceptPatchBody,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update.")
    return serialize_concept(unwrap(svc.adjust_concept(user_id, concept_id, changes)))


@router.delete("/concepts/{concept_id}", status_code=status.HTTP_204_NO_CONTENT)
def deprecate_concept(
    concept_id: str,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    unwrap(svc.deprecate_concept(user_id, concept_id))


# ------------------------------------------------------------------
# Question bank endpoints
# ------------------------------------------------------------------
@router.get("/concepts/{concept_id}/questions")
def list_questions(
    concept_id: str,
    svc: ConceptAppService = Depends(get_concept_app_service),
    user_id: str = Depends(current_user_id),
):
    return [serialize_question(q) for q in unwrap(svc.list_questions(user_id, concept_id))]


@router.post("/concepts/{concept_id}/questions/generate", status_code=status.HTTP_202_ACCEPTED)
def generate_questions(
    concept_id: str,
    svc: ConceptAppService = Depends(get_concept_app_service),
    bank: QuestionBankService = Depends(get_question_bank_service),
    user_id: str = Depends(current_user_id),
):
    unwrap(svc.get_concept(user_id, concept_id))
    queued = bank.schedule(concept_id)
    return {"concept_id": concept_id, "queued": queued}
