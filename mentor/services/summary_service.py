"""Learning summary generation: short recap plus tips from a chat transcript."""

import logging
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from mentor.prompts.summary_prompts import (
    LEARNING_SUMMARY_SYSTEM_PROMPT,
    LEARNING_SUMMARY_USER_PROMPT,
)
from mentor.prompts.templates import format_transcript
from shared.models import LearningSummaryResponse
from shared.repositories import SummaryRepository
from shared.services.llm_service import CompletionClient, LLMServiceError
from shared.utils.exceptions import LLMProviderException

logger = logging.getLogger("mentor.summary_service")


class LearningSummaryService:
    """Summarizes a finished chat and appends it as a learning-summary record."""

    def __init__(self, db: DBSession, llm: Optional[CompletionClient] = None):
        self.db = db
        self.summary_repo = SummaryRepository(db)
        if llm is None:
            from mentor.services.chat_service import create_llm_service
            llm = create_llm_service()
        self.llm = llm

    def generate(
        self,
        student_id: str,
        messages: Sequence,
        source_id: Optional[str] = None,
    ) -> LearningSummaryResponse:
        """
        Generate and store a summary of `messages`.

        Raises ValueError for an empty transcript and LLMProviderException when
        the completion fails. A storage failure is logged and the summary is
        still returned.
        """
        if not messages:
            raise ValueError("Se necesitan mensajes del chat para generar el resumen")

        prompt = LEARNING_SUMMARY_USER_PROMPT.render(transcript=format_transcript(list(messages)))
        try:
            content = self.llm.chat([
                {"role": "system", "content": LEARNING_SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]).strip()
            if not content:
                raise LLMServiceError("Empty learning summary completion")
        except LLMServiceError as e:
            logger.error(f"Learning summary generation failed for {student_id}: {e}")
            raise LLMProviderException(e)

        summary_id = None
        try:
            record = self.summary_repo.append(student_id, content, source_id=source_id)
            summary_id = record.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Learning summary save failed for {student_id}: {e}")

        return LearningSummaryResponse(summary=content, summary_id=summary_id)
