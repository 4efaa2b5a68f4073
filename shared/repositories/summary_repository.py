"""Learning summary data access layer (append-only)."""
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import LearningSummary


class SummaryRepository:
    """Repository for learning summaries. Each record counts as one session."""

    def __init__(self, db: DBSession):
        self.db = db

    def append(
        self,
        student_id: str,
        content: str,
        source_id: Optional[str] = None,
        source_type: str = "chat",
        created_at: Optional[datetime] = None,
    ) -> LearningSummary:
        """
        Append a learning summary.

        Args:
            student_id: Student the summary belongs to
            content: Summary text
            source_id: Originating conversation, if any
            source_type: Origin kind ("chat")
            created_at: Defaults to now

        Returns:
            Created LearningSummary
        """
        summary = LearningSummary(
            id=str(uuid4()),
            user_id=student_id,
            content=content,
            source_type=source_type,
            source_id=source_id,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(summary)
        self.db.commit()
        self.db.refresh(summary)
        return summary

    def list_for_students(
        self,
        student_ids: Iterable[str],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[LearningSummary]:
        """Summaries of the given students in [since, until], newest first."""
        ids = list(student_ids)
        if not ids:
            return []
        query = self.db.query(LearningSummary).filter(LearningSummary.user_id.in_(ids))
        if since is not None:
            query = query.filter(LearningSummary.created_at >= since)
        if until is not None:
            query = query.filter(LearningSummary.created_at <= until)
        return query.order_by(LearningSummary.created_at.desc()).all()

    def count_for_student(self, student_id: str, since: datetime, until: datetime) -> int:
        """Summaries in the half-open range [since, until)."""
        return (
            self.db.query(LearningSummary)
            .filter(
                LearningSummary.user_id == student_id,
                LearningSummary.created_at >= since,
                LearningSummary.created_at < until,
            )
            .count()
        )

    def latest_for_student(self, student_id: str) -> Optional[LearningSummary]:
        return (
            self.db.query(LearningSummary)
            .filter(LearningSummary.user_id == student_id)
            .order_by(LearningSummary.created_at.desc())
            .first()
        )
