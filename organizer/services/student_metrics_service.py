"""Per-student detail, metrics and teacher guidelines for the organizer panel."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from mentor.prompts.mentor_prompts import TEACHER_PROMPT_MAX_LENGTH
from organizer.aggregation import top_error_tags
from organizer.engagement import round_half_up
from organizer.models import (
    ProgressInfo,
    StudentDetailResponse,
    StudentInfo,
    StudentMetricsResponse,
    StudentSummaryItem,
)
from shared.models import GuidelinesResponse, GuidelinesUpdateRequest
from shared.models.entities import User
from shared.repositories import ERROR_TAG, EventRepository, StudentRepository, SummaryRepository
from shared.utils.exceptions import StudentNotFoundException

logger = logging.getLogger("organizer.student_metrics_service")

METRICS_WINDOW_DAYS = 14
TREND_WINDOW_DAYS = 7
DETAIL_SUMMARIES = 30


class StudentMetricsService:
    """Student lookups scoped to an organization."""

    def __init__(self, db: DBSession):
        self.db = db
        self.student_repo = StudentRepository(db)
        self.summary_repo = SummaryRepository(db)
        self.event_repo = EventRepository(db)

    def _require_student(self, organization_id: str, student_id: str) -> User:
        student = self.student_repo.get_student(organization_id, student_id)
        if student is None:
            raise StudentNotFoundException(student_id, organization_id)
        return student

    def get_metrics(
        self,
        organization_id: str,
        student_id: str,
        now: Optional[datetime] = None,
    ) -> StudentMetricsResponse:
        """
        Sessions and hints over the last 14 days plus the 7-day activity trend.

        The trend is previous-7-days minus last-7-days: positive means the
        student was more active before.
        """
        student = self._require_student(organization_id, student_id)
        now = now or datetime.utcnow()
        since_14 = now - timedelta(days=METRICS_WINDOW_DAYS)
        since_7 = now - timedelta(days=TREND_WINDOW_DAYS)

        try:
            summaries = self.summary_repo.list_for_students([student_id], since=since_14, until=now)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Learning summaries unavailable for {student_id}: {e}")
            summaries = []

        last_7 = sum(1 for s in summaries if s.created_at >= since_7)
        prev_7 = len(summaries) - last_7

        progress = student.progress
        hints_total = progress.hints_used if progress else 0
        sessions = len(summaries)

        return StudentMetricsResponse(
            sessions_14d=sessions,
            hints_total=hints_total,
            hints_per_session=round_half_up(hints_total / sessions, 1) if sessions > 0 else 0.0,
            last_activity_at=progress.last_activity_at if progress else None,
            streak=progress.streak if progress else 0,
            points=progress.points if progress else 0,
            frequent_errors=top_error_tags(self._error_tags(student_id, since_14, now)),
            activity_trend=prev_7 - last_7,
            summaries_last_7d=last_7,
            summaries_prev_7d=prev_7,
        )

    def get_detail(self, organization_id: str, student_id: str) -> StudentDetailResponse:
        """Student card: identity, progress, latest summaries and teacher guidelines."""
        student = self._require_student(organization_id, student_id)
        progress = student.progress

        try:
            summaries = self.summary_repo.list_for_students([student_id])[:DETAIL_SUMMARIES]
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Learning summaries unavailable for {student_id}: {e}")
            summaries = []

        guidelines = self.student_repo.get_guidelines(student_id)
        return StudentDetailResponse(
            student=StudentInfo(
                id=student.id, name=student.name, email=student.email, created_at=student.created_at
            ),
            progress=ProgressInfo(
                points=progress.points,
                last_activity_at=progress.last_activity_at,
                streak=progress.streak,
                hints_used=progress.hints_used,
            ) if progress else ProgressInfo(),
            summaries=[
                StudentSummaryItem(id=s.id, content=s.content, created_at=s.created_at)
                for s in summaries
            ],
            teacher_prompt=guidelines.teacher_prompt if guidelines else None,
            private_notes=guidelines.private_notes if guidelines else None,
        )

    def update_guidelines(
        self,
        organization_id: str,
        student_id: str,
        request: GuidelinesUpdateRequest,
    ) -> GuidelinesResponse:
        """
        Partial update of the teacher mini-prompt and private notes.

        Only fields present in the request change. Values are trimmed, the
        prompt is cut to TEACHER_PROMPT_MAX_LENGTH and blanks become null.
        """
        self._require_student(organization_id, student_id)
        changes = {}
        if "teacher_prompt" in request.model_fields_set:
            changes["teacher_prompt"] = _clean(request.teacher_prompt, TEACHER_PROMPT_MAX_LENGTH)
        if "private_notes" in request.model_fields_set:
            changes["private_notes"] = _clean(request.private_notes)

        guidelines = self.student_repo.upsert_guidelines(student_id, changes)
        logger.info(f"Guidelines updated for {student_id}: {sorted(changes)}")
        return GuidelinesResponse(
            student_id=student_id,
            teacher_prompt=guidelines.teacher_prompt,
            private_notes=guidelines.private_notes,
            updated_at=guidelines.updated_at,
        )

    def _error_tags(self, student_id: str, since: datetime, until: datetime):
        try:
            events = self.event_repo.list_for_students([student_id], ERROR_TAG, since, until)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Error tag log unavailable for {student_id}: {e}")
            return None
        return [EventRepository.tag_of(event) for event in events]


def _clean(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if max_length is not None:
        value = value[:max_length]
    return value or None
