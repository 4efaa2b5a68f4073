"""Conversation data access layer."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import Conversation
from shared.utils.exceptions import StaleStateError

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Repository for conversation CRUD with optimistic versioning."""

    def __init__(self, db: DBSession):
        self.db = db

    def create(
        self,
        conversation_id: str,
        *,
        student_id: Optional[str],
        subject: Optional[str],
        phase: str,
        context_json: str,
        messages_json: str,
        resume_phase: Optional[str] = None,
    ) -> Conversation:
        """
        Create a new conversation record at turn 0, version 1.

        Args:
            conversation_id: Unique conversation identifier
            student_id: Owning student, if known
            subject: Subject chosen in the UI
            phase: Initial phase value
            context_json: Serialized ConversationContext
            messages_json: Serialized message log

        Returns:
            Created Conversation
        """
        now = datetime.utcnow()
        conversation = Conversation(
            id=conversation_id,
            student_id=student_id,
            subject=subject,
            phase=phase,
            context_json=context_json,
            messages_json=messages_json,
            resume_phase=resume_phase,
            turn_seq=0,
            state_version=1,
            created_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        return self.db.query(Conversation).filter(Conversation.id == conversation_id).first()

    def save(
        self,
        conversation_id: str,
        *,
        phase: str,
        context_json: str,
        messages_json: str,
        turn_seq: int,
        expected_version: int,
        resume_phase: Optional[str] = None,
    ) -> None:
        """Single transactional write of the conversation state.
        Raises StaleStateError if state_version doesn't match."""
        result = self.db.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.state_version == expected_version,
            )
            .values(
                phase=phase,
                context_json=context_json,
                messages_json=messages_json,
                turn_seq=turn_seq,
                resume_phase=resume_phase,
                state_version=expected_version + 1,
                updated_at=datetime.utcnow(),
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise StaleStateError(
                f"Conversation {conversation_id} was modified concurrently (expected version {expected_version})"
            )
        self.db.commit()
        # Bulk UPDATE bypasses the identity map
        self.db.expire_all()

    def list_by_student(self, student_id: str, limit: int = 20) -> list[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.student_id == student_id)
            .order_by(Conversation.updated_at.desc())
            .limit(limit)
            .all()
        )
