"""Data models - ORM entities and API schemas."""

# SQLAlchemy ORM models
from .entities import (
    Base,
    Organization,
    User,
    StudentProgress,
    LearningSummary,
    LearningEvent,
    StudentTeacherGuidelines,
    Conversation,
)

# API request/response schemas
from .schemas import (
    StartConversationRequest,
    StartConversationResponse,
    ChatMessageRequest,
    HintRequest,
    TurnResponse,
    ChatMessage,
    ConversationResponse,
    ProgressResponse,
    ProgressUpdateRequest,
    LearningSummaryRequest,
    LearningSummaryResponse,
    GuidelinesUpdateRequest,
    GuidelinesResponse,
)

__all__ = [
    # Database models
    "Base",
    "Organization",
    "User",
    "StudentProgress",
    "LearningSummary",
    "LearningEvent",
    "StudentTeacherGuidelines",
    "Conversation",
    # API schemas
    "StartConversationRequest",
    "StartConversationResponse",
    "ChatMessageRequest",
    "HintRequest",
    "TurnResponse",
    "ChatMessage",
    "ConversationResponse",
    "ProgressResponse",
    "ProgressUpdateRequest",
    "LearningSummaryRequest",
    "LearningSummaryResponse",
    "GuidelinesUpdateRequest",
    "GuidelinesResponse",
]
