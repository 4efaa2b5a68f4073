"""Student progress and learning summary API endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from database import get_db
from mentor.api.chat import get_llm_client
from mentor.services import LearningSummaryService
from mentor.services.progress_sync import get_progress_writer
from shared.models import (
    LearningSummaryRequest,
    LearningSummaryResponse,
    ProgressResponse,
    ProgressUpdateRequest,
)
from shared.repositories import ProgressRepository
from shared.services.llm_service import CompletionClient
from shared.utils.exceptions import DatabaseException, MentisException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["progress"])


def _to_response(student_id: str, record) -> ProgressResponse:
    if record is None:
        return ProgressResponse(student_id=student_id)
    return ProgressResponse(
        student_id=student_id,
        points=record.points or 0,
        last_activity_at=record.last_activity_at,
        streak=record.streak or 0,
        hints_used=record.hints_used or 0,
    )


@router.get("/student-progress/{student_id}", response_model=ProgressResponse)
def get_progress(student_id: str, db: DBSession = Depends(get_db)):
    """Progress record; buffered chat activity is flushed first."""
    get_progress_writer().flush()
    return _to_response(student_id, ProgressRepository(db).get(student_id))


@router.post("/student-progress/{student_id}", response_model=ProgressResponse)
def upsert_progress(student_id: str, request: ProgressUpdateRequest, db: DBSession = Depends(get_db)):
    """Upsert absolute progress values. Omitted fields keep their stored value."""
    try:
        # Buffered deltas land first so the absolute values win
        get_progress_writer().flush()
        record = ProgressRepository(db).upsert(
            student_id,
            points=request.points,
            last_activity_at=request.last_activity_at,
            streak=request.streak,
            hints_used=request.hints_used,
        )
        return _to_response(student_id, record)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Student progress update failed for {student_id}: {e}", exc_info=True)
        raise DatabaseException("progress upsert", e).to_http_exception()


@router.post("/learning-summary", response_model=LearningSummaryResponse)
def create_learning_summary(
    request: LearningSummaryRequest,
    db: DBSession = Depends(get_db),
    llm: CompletionClient = Depends(get_llm_client),
):
    """Generate a short summary plus tips from a chat transcript and store it."""
    try:
        service = LearningSummaryService(db, llm=llm)
        return service.generate(request.student_id, request.messages, source_id=request.source_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MentisException as e:
        raise e.to_http_exception()
