"""Domain object → JSON-ready dict converters shared by the routers."""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from adaptive_tutor.application.graph_app_service import GraphView, InsertionOutcome, StructureChange
from adaptive_tutor.application.practice_app_service import AttemptOutcome
from adaptive_tutor.domain.concept.models import (
    AttemptRecord,
    Concept,
    ConceptEdge,
    GraphMembership,
    Question,
    SessionRecord,
)
from adaptive_tutor.domain.gaps.pattern import GapPattern
from adaptive_tutor.domain.practice.selector import SessionItem, SessionPlan


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def serialize_concept(c: Concept) -> dict:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "name": c.name,
        "description": c.description,
        "key_terms": c.key_terms,
        "proficiency": c.proficiency,
        "confidence": c.confidence,
        "ease_factor": c.ease_factor,
        "interval": c.interval,
        "repetition_count": c.repetition_count,
        "last_practiced": _iso(c.last_practiced),
        "next_due": _iso(c.next_due),
        "attempt_count": c.attempt_count,
        "is_deprecated": c.is_deprecated,
        "is_manually_adjusted": c.is_manually_adjusted,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def serialize_question(q: Question, include_answer: bool = True) -> dict:
    data = {
        "id": q.id,
        "concept_id": q.concept_id,
        "question_type": q.question_type.value,
        "question_text": q.question_text,
        "distractors": q.distractors,
        "difficulty": q.difficulty,
        "sources": [
            {"index": s.index, "page_title": s.page_title, "page_url": s.page_url} for s in q.cited_sources
        ],
    }
    if include_answer:
        data["correct_answer"] = q.correct_answer
        data["explanation"] = q.explanation
    return data


def serialize_membership(m: GraphMembership) -> dict:
    return {
        "concept_id": m.concept_id,
        "depth_tier": m.depth_tier,
        "position": {"x": m.position_x, "y": m.position_y},
        "added_by": m.added_by.value,
    }


def serialize_edge(e: ConceptEdge) -> dict:
    return {
        "id": e.id,
        "from": e.from_id,
        "to": e.to_id,
        "edge_type": e.edge_type.value,
        "added_by": e.added_by.value,
    }


def serialize_change(change: StructureChange) -> dict:
    return {
        "removed_edges": [serialize_edge(e) for e in change.removed_edges],
        "layout": {cid: {"x": x, "y": y} for cid, (x, y) in change.positions.items()},
    }


def serialize_graph(view: GraphView) -> dict:
    return {
        "id": view.graph.id,
        "title": view.graph.title,
        "created_at": view.graph.created_at,
        "concepts": [
            {
                **serialize_concept(view.concepts[m.concept_id]),
                **serialize_membership(m),
                **view.neighbours.get(m.concept_id, {"prerequisites": [], "dependents": []}),
            }
            for m in view.memberships
            if m.concept_id in view.concepts
        ],
        "edges": [serialize_edge(e) for e in view.edges],
        "components": view.components,
        "locked": view.locked,
    }


def serialize_insertion(outcome: InsertionOutcome) -> dict:
    return {
        "concept_id": outcome.concept_id,
        "was_reused": outcome.was_reused,
        "position": outcome.position.value,
        "membership": serialize_membership(outcome.membership),
        "edge": serialize_edge(outcome.edge),
        "edge_kept": outcome.edge_kept,
        **serialize_change(outcome.change),
    }


def serialize_session(s: SessionRecord) -> dict:
    return {
        "id": s.id,
        "unit_graph_id": s.unit_graph_id,
        "session_type": s.session_type,
        "questions_attempted": s.questions_attempted,
        "questions_correct": s.questions_correct,
        "accuracy": s.accuracy,
        "concepts_covered": s.concepts_covered,
        "start_time": s.start_time,
        "end_time": s.end_time,
    }


def serialize_item(item: SessionItem) -> dict:
    return {
        **serialize_question(item.question, include_answer=False),
        "concept_name": item.concept_name,
    }


def serialize_plan(plan: SessionPlan) -> dict:
    return {
        "questions": [serialize_item(item) for item in plan.items],
        "due_concept_count": plan.due_concept_count,
        "type_counts": dict(plan.type_counts),
    }


def serialize_attempt(a: AttemptRecord) -> dict:
    return {
        "id": a.id,
        "question_id": a.question_id,
        "concept_id": a.concept_id,
        "user_answer": a.user_answer,
        "is_correct": a.is_correct,
        "score": a.score,
        "quality": a.quality,
        "feedback": a.feedback,
        "time_taken_ms": a.time_taken_ms,
        "session_id": a.session_id,
        "created_at": a.created_at,
    }


def serialize_pattern(pattern: Optional[GapPattern]) -> dict:
    if pattern is None:
        return {"has_pattern": False}
    return {
        "has_pattern": True,
        "missing_concept": pattern.missing_concept,
        "severity": pattern.severity.value,
        "explanation": pattern.explanation,
        "occurrences": pattern.occurrences,
    }


def serialize_attempt_outcome(outcome: AttemptOutcome) -> dict:
    return {
        "attempt": serialize_attempt(outcome.attempt),
        "concept": serialize_concept(outcome.concept) if outcome.concept else None,
        "session": serialize_session(outcome.session) if outcome.session else None,
        "explanation": outcome.explanation,
        "error_type": outcome.error_type.value if outcome.error_type else None,
        "gap": serialize_pattern(outcome.gap_pattern),
        "replayed": outcome.replayed,
    }
