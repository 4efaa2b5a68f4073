"""Dialogue orchestration: turn processing and conversation storage."""

from mentor.orchestration.orchestrator import (
    FALLBACK_REPLY,
    MentorOrchestrator,
    TurnResult,
    resolve_next_phase,
)
from mentor.orchestration.conversation_store import (
    ConversationLocks,
    ConversationStore,
    InMemoryConversationStore,
    SqlConversationStore,
    get_conversation_locks,
    reset_conversation_locks,
)

__all__ = [
    "FALLBACK_REPLY",
    "MentorOrchestrator",
    "TurnResult",
    "resolve_next_phase",
    "ConversationLocks",
    "ConversationStore",
    "InMemoryConversationStore",
    "SqlConversationStore",
    "get_conversation_locks",
    "reset_conversation_locks",
]
