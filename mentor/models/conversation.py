"""
Conversation Models

Phase enumeration, pedagogical context and the per-conversation state owned
by the dialogue orchestrator.
"""

from enum import Enum
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ConversationPhase(str, Enum):
    """States of the guided dialogue. Determine what the tutor may say."""

    IDLE = "idle"
    DEFINING_CONTEXT = "defining_context"
    SOLVING = "solving"
    EVALUATING = "evaluating"
    WAITING_FOR_CORRECTION = "waiting_for_correction"
    GIVING_HINT = "giving_hint"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConversationPhase"]:
        """Return the phase named by `value`, or None if it is not a phase."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Phases in which the "Pedir ayuda" control is enabled
HINT_PHASES = frozenset({
    ConversationPhase.SOLVING,
    ConversationPhase.EVALUATING,
    ConversationPhase.WAITING_FOR_CORRECTION,
})


class ConversationContext(BaseModel):
    """Pedagogical context fixed while defining the session."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subject: Optional[str] = Field(default=None, description="Subject chosen in the UI")
    topic: Optional[str] = Field(default=None, description="Concrete topic, e.g. 'área del cuadrado'")
    is_exercise: Optional[bool] = Field(
        default=None, alias="isExercise", description="True = concrete exercise, False = general review"
    )
    exercise_description: Optional[str] = Field(
        default=None, alias="exerciseDescription", description="Short description of the current exercise"
    )

    def merge(self, update: "ConversationContext") -> "ConversationContext":
        """Shallow merge: fields set on `update` win, everything else persists."""
        changes = update.model_dump(exclude_unset=True)
        return self.model_copy(update=changes)

    def with_subject(self, subject: Optional[str]) -> "ConversationContext":
        if subject is None:
            return self
        return self.model_copy(update={"subject": subject})

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Message(BaseModel):
    """One entry of the append-only conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"] = Field(description="Who wrote the message")
    content: str = Field(description="Message text")


class ConversationState(BaseModel):
    """Per-conversation state: phase, context, message log and turn sequence."""

    phase: ConversationPhase = ConversationPhase.IDLE
    context: ConversationContext = Field(default_factory=ConversationContext)
    messages: list[Message] = Field(default_factory=list)
    turn_seq: int = Field(default=0, ge=0, description="Number of committed turns")
    resume_phase: Optional[ConversationPhase] = Field(
        default=None, description="Phase to return to after giving_hint"
    )

    def recent_messages(self, limit: Optional[int]) -> list[Message]:
        if not limit or limit <= 0:
            return list(self.messages)
        return list(self.messages[-limit:])

    @property
    def can_request_hint(self) -> bool:
        return self.phase in HINT_PHASES


def create_conversation_state(subject: Optional[str], greeting: Optional[str] = None) -> ConversationState:
    """Fresh state for a new conversation: idle, subject from the UI."""
    messages = [Message(role="assistant", content=greeting)] if greeting else []
    return ConversationState(
        phase=ConversationPhase.IDLE,
        context=ConversationContext(subject=subject),
        messages=messages,
    )
