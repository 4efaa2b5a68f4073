"""Pydantic API request/response schemas."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ─── Mentor chat ──────────────────────────────────────────────────────

class StartConversationRequest(BaseModel):
    """Request to open a guided chat for the subject chosen in the UI."""
    student_id: Optional[str] = None
    subject: Optional[str] = None


class StartConversationResponse(BaseModel):
    """New conversation id plus the greeting shown before the first message."""
    conversation_id: str
    phase: str
    context: Dict[str, Any]
    greeting: str


class ChatMessageRequest(BaseModel):
    """A student message. `subject` re-asserts the UI selection for this turn."""
    message: str
    subject: Optional[str] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("message must not be empty")
        return value.strip()


class HintRequest(BaseModel):
    """"Pedir ayuda" request; reuses the existing message history."""
    subject: Optional[str] = None


class TurnResponse(BaseModel):
    """Outcome of one tutor turn."""
    reply: str
    next_phase: str
    context_update: Optional[Dict[str, Any]] = None
    points_awarded: int = 0
    can_request_hint: bool = False


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ConversationResponse(BaseModel):
    """Current state and full message log of a conversation."""
    conversation_id: str
    student_id: Optional[str] = None
    phase: str
    context: Dict[str, Any]
    messages: List[ChatMessage]
    turn_seq: int
    can_request_hint: bool


# ─── Student progress ─────────────────────────────────────────────────

class ProgressResponse(BaseModel):
    """Per-student progress record."""
    student_id: str
    points: int = 0
    last_activity_at: Optional[datetime] = None
    streak: int = 0
    hints_used: int = 0


class ProgressUpdateRequest(BaseModel):
    """Absolute values to upsert. Omitted fields keep their stored value."""
    points: Optional[int] = Field(default=None, ge=0)
    last_activity_at: Optional[datetime] = None
    streak: Optional[int] = Field(default=None, ge=0)
    hints_used: Optional[int] = Field(default=None, ge=0)


# ─── Learning summary ─────────────────────────────────────────────────

class LearningSummaryRequest(BaseModel):
    """Transcript to summarize into a learning-summary record."""
    student_id: str
    messages: List[ChatMessage] = Field(min_length=1)
    source_id: Optional[str] = None


class LearningSummaryResponse(BaseModel):
    summary: str
    summary_id: Optional[str] = None


# ─── Teacher guidelines ───────────────────────────────────────────────

class GuidelinesUpdateRequest(BaseModel):
    """Teacher mini-prompt and private notes. Blank strings clear the field."""
    teacher_prompt: Optional[str] = None
    private_notes: Optional[str] = None


class GuidelinesResponse(BaseModel):
    student_id: str
    teacher_prompt: Optional[str] = None
    private_notes: Optional[str] = None
    updated_at: Optional[datetime] = None
