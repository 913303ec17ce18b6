"""Typed shapes for collaborator output, and the strict decoder that produces them."""
from __future__ import annotations
import json
import re
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, model_validator

from adaptive_tutor.domain.common.result import Result
from adaptive_tutor.domain.concept.models import ErrorType, GapSeverity, QuestionType

M = TypeVar("M", bound=BaseModel)

# A single ```json ... ``` wrapper around the whole payload.
_FENCE = re.compile(r"^\s*```[a-zA-Z]*\s*\n(?P<body>.*)\n\s*```\s*$", re.DOTALL)


class SourceCitation(BaseModel):
    index: int = Field(ge=1)
    page_title: str = Field(min_length=1)
    page_url: str = Field(min_length=1)


class GeneratedQuestion(BaseModel):
    question_type: QuestionType
    question_text: str = Field(min_length=1)
    correct_answer: str = Field(min_length=1)
    distractors: List[str] = []
    explanation: str = ""
    difficulty: float = Field(ge=0.0, le=1.0)
    sources: List[SourceCitation] = []

    @model_validator(mode="after")
    def _mcq_needs_distractors(self) -> "GeneratedQuestion":
        if self.question_type == QuestionType.MCQ and not [d for d in self.distractors if d.strip()]:
            raise ValueError("mcq questions need at least one distractor")
        return self


class GeneratedQuestionSet(BaseModel):
    questions: List[GeneratedQuestion]


class GapAnalysis(BaseModel):
    missing_concept: str = Field(min_length=1)
    severity: GapSeverity = GapSeverity.MODERATE
    explanation: str = ""


class GraderVerdict(BaseModel):
    correct: bool
    score: float = Field(ge=0.0, le=1.0)
    feedback: str = ""
    explanation: str = ""
    error_type: ErrorType
    gap_analysis: Optional[GapAnalysis] = None


class ConceptSuggestion(BaseModel):
    name: str = Field(min_length=1)
    rationale: str = ""


def strip_code_fence(raw: str) -> str:
    match = _FENCE.match(raw or "")
    return match.group("body") if match else (raw or "").strip()


def decode(raw: str, model: Type[M]) -> Result[M]:
    """raw text -> JSON -> validated model. Anything short of a fully valid payload is a failure."""
    try:
        payload = json.loads(strip_code_fence(raw))
    except (TypeError, ValueError) as e:
        return Result.fail(f"Response is not valid JSON: {e}")
    try:
        return Result.ok(model.model_validate(payload))
    except ValidationError as e:
        return Result.fail(f"Response does not match {model.__name__}: {e.error_count()} error(s)")
