"""Learning domain models: pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class QuestionType(str, Enum):
    MCQ = "mcq"
    FILL_BLANK = "fill_blank"
    FLASHCARD = "flashcard"
    FREE_RESPONSE = "free_response"


class EdgeType(str, Enum):
    PREREQUISITE = "prerequisite"
    HELPFUL = "helpful"


class AddedBy(str, Enum):
    """Who introduced a membership or edge into a graph."""
    SYSTEM = "system"
    USER = "user"
    EXTERNAL_SUGGESTION = "external-suggestion"


class InsertPosition(str, Enum):
    PREREQUISITE = "prerequisite"
    EXTENSION = "extension"


class GapSeverity(str, Enum):
    NARROW = "NARROW"
    MODERATE = "MODERATE"
    BROAD = "BROAD"


class GapStatus(str, Enum):
    DETECTED = "detected"
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ErrorType(str, Enum):
    CORRECT = "CORRECT"
    MINOR = "MINOR"
    MISCONCEPTION = "MISCONCEPTION"
    PREREQUISITE_GAP = "PREREQUISITE_GAP"


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
DEFAULT_INTERVAL = 1

_CITATION_MARKER = re.compile(r"\[\d+\]")


@dataclass
class Concept:
    id: str
    user_id: str
    name: str
    name_normalized: str
    description: str = ""
    key_terms: List[str] = field(default_factory=list)
    proficiency: float = 0.0
    confidence: float = 0.0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = DEFAULT_INTERVAL
    repetition_count: int = 0
    last_practiced: Optional[datetime] = None
    next_due: Optional[datetime] = None
    attempt_count: int = 0
    is_deprecated: bool = False
    is_manually_adjusted: bool = False
    created_at: str = ""
    updated_at: str = ""


@dataclass
class UnitGraph:
    id: str
    user_id: str
    title: str
    created_at: str = ""


@dataclass
class GraphMembership:
    concept_id: str
    unit_graph_id: str
    depth_tier: int = 1
    position_x: float = 0.0
    position_y: float = 0.0
    added_by: AddedBy = AddedBy.SYSTEM


@dataclass
class ConceptEdge:
    """`from_id` should be learned before `to_id`, within one graph scope."""
    id: str
    from_id: str
    to_id: str
    unit_graph_id: str
    edge_type: EdgeType = EdgeType.PREREQUISITE
    added_by: AddedBy = AddedBy.SYSTEM


@dataclass
class QuestionSource:
    index: int
    page_title: str
    page_url: str


@dataclass
class Question:
    id: str
    concept_id: str
    question_type: QuestionType
    question_text: str
    correct_answer: str
    distractors: List[str] = field(default_factory=list)
    explanation: str = ""
    difficulty: float = 0.5
    sources: List[QuestionSource] = field(default_factory=list)
    created_at: str = ""

    @property
    def cited_sources(self) -> List[QuestionSource]:
        # Sources only count when the text actually cites them.
        if _CITATION_MARKER.search(self.question_text) or _CITATION_MARKER.search(self.explanation):
            return list(self.sources)
        return []


@dataclass
class SessionRecord:
    id: str
    user_id: str
    unit_graph_id: Optional[str] = None
    session_type: str = "practice"
    questions_attempted: int = 0
    questions_correct: int = 0
    concepts_covered: List[str] = field(default_factory=list)
    start_time: str = ""
    end_time: Optional[str] = None

    @property
    def accuracy(self) -> float:
        if self.questions_attempted == 0:
            return 0.0
        return self.questions_correct / self.questions_attempted


@dataclass(frozen=True)
class AttemptRecord:
    id: str
    question_id: str
    concept_id: str
    user_id: str
    user_answer: str
    is_correct: bool
    score: float
    quality: int
    feedback: str
    time_taken_ms: int
    session_id: str
    created_at: str
    idempotency_key: Optional[str] = None


@dataclass
class GapDetection:
    id: str
    user_id: str
    concept_id: str
    missing_concept: str
    severity: GapSeverity
    explanation: str = ""
    status: GapStatus = GapStatus.DETECTED
    created_at: str = ""
