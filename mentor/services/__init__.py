"""Mentor chat services."""
from mentor.services.chat_service import MentorChatService, create_llm_service
from mentor.services.progress_sync import (
    ProgressWriteBehind,
    get_progress_writer,
    reset_progress_writer,
)
from mentor.services.summary_service import LearningSummaryService
