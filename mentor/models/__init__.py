"""Mentor chat models."""
from mentor.models.conversation import (
    ConversationPhase,
    ConversationContext,
    ConversationState,
    Message,
    HINT_PHASES,
    create_conversation_state,
)

__all__ = [
    "ConversationPhase",
    "ConversationContext",
    "ConversationState",
    "Message",
    "HINT_PHASES",
    "create_conversation_state",
]
