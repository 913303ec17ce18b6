"""SQLite implementation of GapRepository."""
from __future__ import annotations
from typing import List, Optional

from adaptive_tutor.domain.concept.models import GapDetection, GapSeverity, GapStatus
from adaptive_tutor.persistence.db import Database
from adaptive_tutor.persistence.interfaces.gap_repository import GapRepository


def _row_to_detection(row) -> GapDetection:
    return GapDetection(
        id=row["id"],
        user_id=row["user_id"],
        concept_id=row["concept_id"],
        missing_concept=row["missing_concept"],
        severity=GapSeverity(row["severity"]),
        explanation=row["explanation"] or "",
        status=GapStatus(row["status"]),
        created_at=row["created_at"],
    )


class SqliteGapRepository(GapRepository):

    def __init__(self, db: Database):
        self._db = db

    def save(self, detection: GapDetection) -> None:
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO gap_detections (
                    id, user_id, concept_id, missing_concept, severity, explanation, status, created_at
                ) VALUES (
                    :id, :user_id, :concept_id, :missing_concept, :severity, :explanation, :status, :created_at
                )
                """,
                {
                    "id": detection.id,
                    "user_id": detection.user_id,
                    "concept_id": detection.concept_id,
                    "missing_concept": detection.missing_concept,
                    "severity": detection.severity.value,
                    "explanation": detection.explanation,
                    "status": detection.status.value,
                    "created_at": detection.created_at,
                },
            )

    def list_for(self, user_id: str, concept_id: str, status: Optional[GapStatus] = None) -> List[GapDetection]:
        sql = "SELECT * FROM gap_detections WHERE user_id = ? AND concept_id = ?"
        params: list = [user_id, concept_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        with self._db.session() as conn:
            rows = conn.execute(sql + " ORDER BY created_at DESC, rowid DESC", params).fetchall()
        return [_row_to_detection(r) for r in rows]

    def update_status(self, detection_ids: List[str], status: GapStatus) -> int:
        if not detection_ids:
            return 0
        with self._db.session() as conn:
            cur = conn.executemany(
                "UPDATE gap_detections SET status = ? WHERE id = ?",
                [(status.value, detection_id) for detection_id in detection_ids],
            )
            return cur.rowcount
