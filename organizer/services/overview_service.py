"""Organizer overview: gathers activity data and runs the engagement engine."""

import json
import logging
import time
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from organizer.aggregation import (
    build_alerts,
    build_daily_series,
    build_recommended_actions,
    build_student_rows,
    compute_kpis,
    count_segments,
    top_error_tags,
)
from organizer.engagement import clamp_days, evaluate_student, window_bounds
from organizer.models import (
    EngagementSegment,
    OverviewResponse,
    StudentActivitySnapshot,
    SummaryRow,
)
from organizer.thresholds import DEFAULT_THRESHOLDS, LATEST_SUMMARIES, EngagementThresholds
from shared.models.entities import LearningSummary, User
from shared.repositories import ERROR_TAG, HINT_USED, EventRepository, StudentRepository, SummaryRepository

logger = logging.getLogger("organizer.overview_service")


class OverviewService:
    """Builds the organizer dashboard for one organization."""

    def __init__(self, db: DBSession, thresholds: EngagementThresholds = DEFAULT_THRESHOLDS):
        self.db = db
        self.thresholds = thresholds
        self.student_repo = StudentRepository(db)
        self.summary_repo = SummaryRepository(db)
        self.event_repo = EventRepository(db)

    def get_overview(
        self,
        organization_id: str,
        days: Union[int, str, None] = 14,
        active_only: bool = False,
        now: Optional[datetime] = None,
    ) -> OverviewResponse:
        start_time = time.time()
        now = now or datetime.utcnow()
        days = clamp_days(days)
        window_start, _ = window_bounds(now, days)

        students = self.student_repo.list_students(organization_id)
        student_ids = [s.id for s in students]
        summaries = self._load_summaries(student_ids)

        snapshots = [self._snapshot(student, summaries) for student in students]
        evaluated = [
            (snapshot, evaluate_student(snapshot, now, days, self.thresholds))
            for snapshot in snapshots
        ]

        hint_times = self._load_event_times(student_ids, HINT_USED, window_start, now)
        error_tags = self._load_error_tags(student_ids, window_start, now)

        kpis = compute_kpis(
            evaluated,
            now,
            days,
            summaries_count=len(summaries),
            hint_events_in_window=len(hint_times) if hint_times is not None else None,
        )
        series = build_daily_series(
            now,
            days,
            [s.created_at for s in summaries if window_start <= s.created_at <= now],
            hint_times,
            approximate_hints_total=kpis.hints_total or 0,
        )

        rows = build_student_rows(evaluated)
        if active_only:
            rows = [row for row in rows if row.segment != EngagementSegment.SIN_ACTIVIDAD]

        names = {s.id: s.name for s in students}
        response = OverviewResponse(
            days=days,
            active_only=active_only,
            kpis=kpis,
            students=rows,
            summaries=[
                SummaryRow(
                    id=s.id,
                    student_id=s.user_id,
                    student_name=names.get(s.user_id, ""),
                    content=s.content,
                    created_at=s.created_at,
                )
                for s in summaries[:LATEST_SUMMARIES]
            ],
            series=series,
            top_error_tags=top_error_tags(error_tags),
            segmentation_counts=count_segments(evaluated),
            alerts=build_alerts(evaluated),
            recommended_actions=build_recommended_actions(evaluated, now),
        )

        logger.info(json.dumps({
            "event": "overview_built",
            "organization_id": organization_id,
            "days": days,
            "students": len(students),
            "hints_source": kpis.hints_source,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        return response

    # ─── Data loading (optional sources degrade) ──────────────────────

    def _snapshot(self, student: User, summaries: List[LearningSummary]) -> StudentActivitySnapshot:
        progress = student.progress
        return StudentActivitySnapshot(
            student_id=student.id,
            name=student.name,
            email=student.email,
            points=progress.points if progress else 0,
            streak=progress.streak if progress else 0,
            hints_used=progress.hints_used if progress else 0,
            last_activity_at=progress.last_activity_at if progress else None,
            session_timestamps=[s.created_at for s in summaries if s.user_id == student.id],
        )

    def _load_summaries(self, student_ids: List[str]) -> List[LearningSummary]:
        try:
            return self.summary_repo.list_for_students(student_ids)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Learning summaries unavailable, counting no sessions: {e}")
            return []

    def _load_event_times(
        self, student_ids: List[str], event_type: str, since: datetime, until: datetime
    ) -> Optional[List[datetime]]:
        try:
            events = self.event_repo.list_for_students(student_ids, event_type, since, until)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Event log unavailable for {event_type}, approximating: {e}")
            return None
        return [event.created_at for event in events]

    def _load_error_tags(
        self, student_ids: List[str], since: datetime, until: datetime
    ) -> Optional[List[Optional[str]]]:
        try:
            events = self.event_repo.list_for_students(student_ids, ERROR_TAG, since, until)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Error tag log unavailable: {e}")
            return None
        return [EventRepository.tag_of(event) for event in events]
