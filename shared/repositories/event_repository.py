"""Learning event data access layer.

The event log is optional: queries let SQLAlchemyError propagate so analytics
callers can fall back to an approximation.
"""
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import LearningEvent

HINT_USED = "hint_used"
ERROR_TAG = "error_tag"


class EventRepository:
    """Repository for fine-grained learning events."""

    def __init__(self, db: DBSession):
        self.db = db

    def log(
        self,
        student_id: str,
        event_type: str,
        meta: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> LearningEvent:
        """
        Log a learning event.

        Args:
            student_id: Student identifier
            event_type: HINT_USED or ERROR_TAG
            meta: Event data, e.g. {"tag": "Fracciones"}
            created_at: Defaults to now

        Returns:
            Created LearningEvent
        """
        event = LearningEvent(
            id=str(uuid4()),
            student_id=student_id,
            type=event_type,
            meta_json=json.dumps(meta) if meta is not None else None,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_for_students(
        self,
        student_ids: Iterable[str],
        event_type: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[LearningEvent]:
        """Events of one type for the given students, oldest first."""
        ids = list(student_ids)
        if not ids:
            return []
        query = self.db.query(LearningEvent).filter(
            LearningEvent.student_id.in_(ids),
            LearningEvent.type == event_type,
        )
        if since is not None:
            query = query.filter(LearningEvent.created_at >= since)
        if until is not None:
            query = query.filter(LearningEvent.created_at <= until)
        return query.order_by(LearningEvent.created_at).all()

    @staticmethod
    def tag_of(event: LearningEvent) -> Optional[str]:
        """The error tag carried in an event's metadata, if any."""
        if not event.meta_json:
            return None
        try:
            meta = json.loads(event.meta_json)
        except (json.JSONDecodeError, TypeError):
            return None
        tag = meta.get("tag") if isinstance(meta, dict) else None
        return tag if isinstance(tag, str) and tag.strip() else None
