"""SQLite implementation of QuestionRepository."""
from __future__ import annotations
import json
from typing import Dict, List, Optional

from adaptive_tutor.domain.concept.models import Question, QuestionSource, QuestionType
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.question_repository import QuestionRepository


def _row_to_question(row) -> Question:
    return Question(
        id=row["id"],
        concept_id=row["concept_id"],
        question_type=QuestionType(row["question_type"]),
        question_text=row["question_text"],
        correct_answer=row["correct_answer"],
        distractors=json.loads(row["distractors"] or "[]"),
        explanation=row["explanation"] or "",
        difficulty=row["difficulty"],
        sources=[QuestionSource(**s) for s in json.loads(row["sources"] or "[]")],
        created_at=row["created_at"],
    )


class SqliteQuestionRepository(QuestionRepository):

    def __init__(self, db: Database):
        self._db = db

    def save_many(self, questions: List[Question]) -> None:
        if not questions:
            return
        with self._db.session() as conn:
            conn.executemany(
                """
                INSERT INTO questions (
                    id, concept_id, question_type, question_text, correct_answer,
                    distractors, explanation, difficulty, sources, created_at
                ) VALUES (
                    :id, :concept_id, :question_type, :question_text, :correct_answer,
                    :distractors, :explanation, :difficulty, :sources, :created_at
                )
                """,
                [
                    {
                        "id": q.id,
                        "concept_id": q.concept_id,
                        "question_type": q.question_type.value,
                        "question_text": q.question_text,
                        "correct_answer": q.correct_answer,
                        "distractors": json.dumps(q.distractors),
                        "explanation": q.explanation,
                        "difficulty": q.difficulty,
                        "sources": json.dumps(
                            [{"index": s.index, "page_title": s.page_title, "page_url": s.page_url} for s in q.sources]
                        ),
                        "created_at": q.created_at,
                    }
                    for q in questions
                ],
            )

    def get_by_id(self, question_id: str) -> Optional[Question]:
        with self._db.session() as conn:
            row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
        return _row_to_question(row) if row else None

    def list_by_concept(self, concept_id: str) -> List[Question]:
        with self._db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM questions WHERE concept_id = ? ORDER BY created_at ASC", (concept_id,)
            ).fetchall()
        return [_row_to_question(r) for r in rows]

    def list_by_concepts(self, concept_ids: List[str]) -> Dict[str, List[Question]]:
        grouped: Dict[str, List[Question]] = {cid: [] for cid in concept_ids}
        if not concept_ids:
            return grouped
        placeholders = ",".join("?" for _ in concept_ids)
        with self._db.session() as conn:
            rows = conn.execute(
                f"SELECT * FROM questions WHERE concept_id IN ({placeholders}) ORDER BY created_at ASC",
                list(concept_ids),
            ).fetchall()
        for row in rows:
            grouped.setdefault(row["concept_id"], []).append(_row_to_question(row))
        return grouped

    def count_by_concept(self, concept_id: str) -> int:
        with self._db.session() as conn:
            row = conn.execute("SELECT COUNT(*) FROM questions WHERE concept_id = ?", (concept_id,)).fetchone()
        return row[0] if row else 0
