"""SQLite implementation of ConceptRepository."""
from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import List, Optional

from adaptive_tutor.domain.concept.models import Concept
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.concept_repository import ConceptRepository


def _to_iso(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    moment = datetime.fromisoformat(value)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _row_to_concept(row) -> Concept:
    return Concept(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        name_normalized=row["name_normalized"],
        description=row["description"] or "",
        key_terms=json.loads(row["key_terms"] or "[]"),
        proficiency=row["proficiency"],
        confidence=row["confidence"],
        ease_factor=row["ease_factor"],
        interval=row["interval_days"],
        repetition_count=row["repetition_count"],
        last_practiced=_from_iso(row["last_practiced"]),
        next_due=_from_iso(row["next_due"]),
        attempt_count=row["attempt_count"],
        is_deprecated=bool(row["is_deprecated"]),
        is_manually_adjusted=bool(row["is_manually_adjusted"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteConceptRepository(ConceptRepository):

    def __init__(self, db: Database):
        self._db = db

    def save(self, concept: Concept) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO concepts (
                    id, user_id, name, name_normalized, description, key_terms,
                    proficiency, confidence, ease_factor, interval_days, repetition_count,
                    last_practiced, next_due, attempt_count, is_deprecated, is_manually_adjusted,
                    created_at, updated_at
                ) VALUES (
                    :id, :user_id, :name, :name_normalized, :description, :key_terms,
                    :proficiency, :confidence, :ease_factor, :interval_days, :repetition_count,
                    :last_practiced, :next_due, :attempt_count, :is_deprecated, :is_manually_adjusted,
                    :created_at, :updated_at
                )
                ON CONFLICT(id) DO UPDATE SET
                    name                 = excluded.name,
                    name_normalized      = excluded.name_normalized,
                    description          = excluded.description,
                    key_terms            = excluded.key_terms,
                    proficiency          = excluded.proficiency,
                    confidence           = excluded.confidence,
                    ease_factor          = excluded.ease_factor,
                    interval_days        = excluded.interval_days,
                    repetition_count     = excluded.repetition_count,
                    last_practiced       = excluded.last_practiced,
                    next_due             = excluded.next_due,
                    attempt_count        = excluded.attempt_count,
                    is_deprecated        = excluded.is_deprecated,
                    is_manually_adjusted = excluded.is_manually_adjusted,
                    updated_at           = excluded.updated_at
                """,
                {
                    "id": concept.id,
                    "user_id": concept.user_id,
                    "name": concept.name,
                    "name_normalized": concept.name_normalized,
                    "description": concept.description,
                    "key_terms": json.dumps(concept.key_terms),
                    "proficiency": concept.proficiency,
                    "confidence": concept.confidence,
                    "ease_factor": concept.ease_factor,
                    "interval_days": concept.interval,
                    "repetition_count": concept.repetition_count,
                    "last_practiced": _to_iso(concept.last_practiced),
                    "next_due": _to_iso(concept.next_due),
                    "attempt_count": concept.attempt_count,
                    "is_deprecated": int(concept.is_deprecated),
                    "is_manually_adjusted": int(concept.is_manually_adjusted),
                    "created_at": concept.created_at,
                    "updated_at": concept.updated_at,
                },
            )

    def get_by_id(self, concept_id: str) -> Optional[Concept]:
        with self._db.session() as conn:
            row = conn.execute("SELECT * FROM concepts WHERE id = ?", (concept_id,)).fetchone()
        return _row_to_concept(row) if row else None

    def find_by_normalized_name(self, user_id: str, name_normalized: str) -> Optional[Concept]:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT * FROM concepts WHERE user_id = ? AND name_normalized = ?",
                (user_id, name_normalized),
            ).fetchone()
        return _row_to_concept(row) if row else None

    def list_by_user(self, user_id: str, include_deprecated: bool = False) -> List[Concept]:
        sql = "SELECT * FROM concepts WHERE user_id = ?"
        if not include_deprecated:
            sql += " AND is_deprecated = 0"
        with self._db.session() as conn:
            rows = conn.execute(sql + " ORDER BY created_at ASC", (user_id,)).fetchall()
        return [_row_to_concept(r) for r in rows]

    def list_by_ids(self, concept_ids: List[str]) -> List[Concept]:
        if not concept_ids:
            return []
        placeholders = ",".join("?" for _ in concept_ids)
        with self._db.session() as conn:
            rows = conn.execute(
                f"SELECT * FROM concepts WHERE id IN ({placeholders})", list(concept_ids)
            ).fetchall()
        by_id = {r["id"]: _row_to_concept(r) for r in rows}
        return [by_id[cid] for cid in concept_ids if cid in by_id]

    def list_due(self, user_id: str, now: datetime, graph_id: Optional[str] = None) -> List[Concept]:
        sql = """
            SELECT c.* FROM concepts c
            WHERE c.user_id = ? AND c.is_deprecated = 0
              AND (c.next_due IS NULL OR c.next_due <= ?)
        """
        params: list = [user_id, _to_iso(now)]
        if graph_id is not None:
            sql += " AND c.id IN (SELECT concept_id FROM graph_memberships WHERE unit_graph_id = ?)"
            params.append(graph_id)
        with self._db.session() as conn:
            rows = conn.execute(sql + " ORDER BY c.created_at ASC", params).fetchall()
        return [_row_to_concept(r) for r in rows]
