"""Student progress data access layer."""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import StudentProgress

logger = logging.getLogger(__name__)


def advance_streak(streak: int, last_activity_at: Optional[datetime], at: datetime) -> int:
    """
    Day streak after an activity at `at`.

    Same calendar day keeps the streak, the next day extends it, anything
    else (first activity, gap, clock going backwards) restarts it at 1.
    """
    if last_activity_at is None:
        return 1
    gap = (at.date() - last_activity_at.date()).days
    if gap == 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1


class ProgressRepository:
    """Repository for the per-student progress record (upsert semantics)."""

    def __init__(self, db: DBSession):
        self.db = db

    def get(self, student_id: str) -> Optional[StudentProgress]:
        return self.db.query(StudentProgress).filter(StudentProgress.user_id == student_id).first()

    def get_many(self, student_ids: Iterable[str]) -> dict[str, StudentProgress]:
        ids = list(student_ids)
        if not ids:
            return {}
        rows = self.db.query(StudentProgress).filter(StudentProgress.user_id.in_(ids)).all()
        return {row.user_id: row for row in rows}

    def _get_or_new(self, student_id: str) -> StudentProgress:
        record = self.get(student_id)
        if record is None:
            record = StudentProgress(
                user_id=student_id,
                points=0,
                streak=0,
                hints_used=0,
                last_activity_at=None,
            )
            self.db.add(record)
        return record

    def upsert(
        self,
        student_id: str,
        *,
        points: Optional[int] = None,
        last_activity_at: Optional[datetime] = None,
        streak: Optional[int] = None,
        hints_used: Optional[int] = None,
    ) -> StudentProgress:
        """
        Write absolute values. Fields passed as None keep their stored value.

        Returns:
            The stored StudentProgress
        """
        record = self._get_or_new(student_id)
        if points is not None:
            record.points = max(0, points)
        if last_activity_at is not None:
            record.last_activity_at = last_activity_at
        if streak is not None:
            record.streak = max(0, streak)
        if hints_used is not None:
            record.hints_used = max(0, hints_used)
        record.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(record)
        return record

    def apply_activity(
        self,
        student_id: str,
        *,
        points_delta: int = 0,
        hints_delta: int = 0,
        at: Optional[datetime] = None,
    ) -> StudentProgress:
        """
        Add point and hint deltas and register activity at `at`.

        Updates last_activity_at and the day streak.
        """
        at = at or datetime.utcnow()
        record = self._get_or_new(student_id)
        record.points = max(0, (record.points or 0) + points_delta)
        record.hints_used = max(0, (record.hints_used or 0) + hints_delta)
        record.streak = advance_streak(record.streak or 0, record.last_activity_at, at)
        if record.last_activity_at is None or at > record.last_activity_at:
            record.last_activity_at = at
        record.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            f"Progress for {student_id}: +{points_delta} points, +{hints_delta} hints, "
            f"total={record.points}, streak={record.streak}"
        )
        return record
