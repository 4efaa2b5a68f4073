"""Organizer dashboard API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DBSession

from database import get_db
from organizer.models import OverviewResponse, StudentDetailResponse, StudentMetricsResponse
from organizer.services import OverviewService, StudentMetricsService
from shared.models import GuidelinesResponse, GuidelinesUpdateRequest
from shared.utils.exceptions import MentisException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organization", tags=["organizer"])


@router.get("/{organization_id}/overview", response_model=OverviewResponse)
def get_overview(
    organization_id: str,
    days: Optional[str] = Query(default=None, description="Window length, clamped to [7, 30]"),
    active_only: bool = Query(default=False),
    db: DBSession = Depends(get_db),
):
    """KPIs, series, segmentation, alerts and recommended actions."""
    try:
        return OverviewService(db).get_overview(organization_id, days=days, active_only=active_only)
    except MentisException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Organization overview failed for {organization_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error loading overview")


@router.get("/{organization_id}/students/{student_id}", response_model=StudentDetailResponse)
def get_student_detail(organization_id: str, student_id: str, db: DBSession = Depends(get_db)):
    """Student card with progress, latest summaries and teacher guidelines."""
    try:
        return StudentMetricsService(db).get_detail(organization_id, student_id)
    except MentisException as e:
        raise e.to_http_exception()


@router.get("/{organization_id}/students/{student_id}/metrics", response_model=StudentMetricsResponse)
def get_student_metrics(organization_id: str, student_id: str, db: DBSession = Depends(get_db)):
    """Aggregated metrics for the student detail panel."""
    try:
        return StudentMetricsService(db).get_metrics(organization_id, student_id)
    except MentisException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Student metrics failed for {student_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error loading metrics")


@router.patch("/{organization_id}/students/{student_id}/guidelines", response_model=GuidelinesResponse)
def update_student_guidelines(
    organization_id: str,
    student_id: str,
    request: GuidelinesUpdateRequest,
    db: DBSession = Depends(get_db),
):
    """Update the teacher mini-prompt and/or private notes of a student."""
    try:
        return StudentMetricsService(db).update_guidelines(organization_id, student_id, request)
    except MentisException as e:
        raise e.to_http_exception()
