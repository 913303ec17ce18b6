"""SQLite implementation of PracticeRepository."""
from __future__ import annotations
import json
from typing import List, Optional

from adaptive_tutor.domain.concept.models import AttemptRecord, SessionRecord
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.practice_repository import PracticeRepository


def _row_to_session(row) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        user_id=row["user_id"],
        unit_graph_id=row["unit_graph_id"],
        session_type=row["session_type"],
        questions_attempted=row["questions_attempted"],
        questions_correct=row["questions_correct"],
        concepts_covered=json.loads(row["concepts_covered"] or "[]"),
        start_time=row["start_time"],
        end_time=row["end_time"],
    )


def _row_to_attempt(row) -> AttemptRecord:
    return AttemptRecord(
        id=row["id"],
        question_id=row["question_id"],
        concept_id=row["concept_id"],
        user_id=row["user_id"],
        user_answer=row["user_answer"],
        is_correct=bool(row["is_correct"]),
        score=row["score"],
        quality=row["quality"],
        feedback=row["feedback"],
        time_taken_ms=row["time_taken_ms"],
        session_id=row["session_id"],
        created_at=row["created_at"],
        idempotency_key=row["idempotency_key"],
    )


class SqlitePracticeRepository(PracticeRepository):

    def __init__(self, db: Database):
        self._db = db

    def save_session(self, session: SessionRecord) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO session_records (
                    id, user_id, unit_graph_id, session_type, questions_attempted,
                    questions_correct, concepts_covered, start_time, end_time
                ) VALUES (
                    :id, :user_id, :unit_graph_id, :session_type, :questions_attempted,
                    :questions_correct, :concepts_covered, :start_time, :end_time
                )
                ON CONFLICT(id) DO UPDATE SET
                    questions_attempted = excluded.questions_attempted,
                    questions_correct   = excluded.questions_correct,
                    concepts_covered    = excluded.concepts_covered,
                    end_time            = excluded.end_time
                """,
                {
                    "id": session.id,
                    "user_id": session.user_id,
                    "unit_graph_id": session.unit_graph_id,
                    "session_type": session.session_type,
                    "questions_attempted": session.questions_attempted,
                    "questions_correct": session.questions_correct,
                    "concepts_covered": json.dumps(session.concepts_covered),
                    "start_time": session.start_time,
                    "end_time": session.end_time,
                },
            )

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._db.session() as conn:
            row = conn.execute("SELECT * FROM session_records WHERE id = ?", (session_id,)).fetchone()
        return _row_to_session(row) if row else None

    def find_active_session(self, user_id: str, graph_id: Optional[str] = None) -> Optional[SessionRecord]:
        sql = "SELECT * FROM session_records WHERE user_id = ? AND end_time IS NULL"
        params: list = [user_id]
        if graph_id is not None:
            sql += " AND unit_graph_id = ?"
            params.append(graph_id)
        with self._db.session() as conn:
            row = conn.execute(sql + " ORDER BY start_time DESC LIMIT 1", params).fetchone()
        return _row_to_session(row) if row else None

    def record_attempt(self, attempt: AttemptRecord) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO attempt_records (
                    id, question_id, concept_id, user_id, user_answer, is_correct, score,
                    quality, feedback, time_taken_ms, session_id, idempotency_key, created_at
                ) VALUES (
                    :id, :question_id, :concept_id, :user_id, :user_answer, :is_correct, :score,
                    :quality, :feedback, :time_taken_ms, :session_id, :idempotency_key, :created_at
                )
                """,
                {
                    "id": attempt.id,
                    "question_id": attempt.question_id,
                    "concept_id": attempt.concept_id,
                    "user_id": attempt.user_id,
                    "user_answer": attempt.user_answer,
                    "is_correct": int(attempt.is_correct),
                    "score": attempt.score,
                    "quality": attempt.quality,
                    "feedback": attempt.feedback,
                    "time_taken_ms": attempt.time_taken_ms,
                    "session_id": attempt.session_id,
                    "idempotency_key": attempt.idempotency_key,
                    "created_at": attempt.created_at,
                },
            )

    def find_attempt_by_key(self, user_id: str, idempotency_key: str) -> Optional[AttemptRecord]:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT * FROM attempt_records WHERE user_id = ? AND idempotency_key = ?",
                (user_id, idempotency_key),
            ).fetchone()
        return _row_to_attempt(row) if row else None

    def list_attempts(self, session_id: str) -> List[AttemptRecord]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM attempt_records WHERE session_id = ? ORDER BY created_at ASC", (session_id,)
            ).fetchall()
        return [_row_to_attempt(r) for r in rows]
