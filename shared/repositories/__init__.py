"""Data access layer - repository pattern for database operations."""
from .conversation_repository import ConversationRepository
from .progress_repository import ProgressRepository, advance_streak
from .summary_repository import SummaryRepository
from .event_repository import EventRepository, HINT_USED, ERROR_TAG
from .student_repository import StudentRepository

__all__ = [
    "ConversationRepository",
    "ProgressRepository",
    "advance_streak",
    "SummaryRepository",
    "EventRepository",
    "HINT_USED",
    "ERROR_TAG",
    "StudentRepository",
]
