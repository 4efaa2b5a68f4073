"""
Conversation Store

Explicit key-value store from conversation id to ConversationState, with a
per-conversation asyncio.Lock so at most one turn runs per conversation and a
turn-sequence guard so a stale result never overwrites a newer turn.
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional

from sqlalchemy.orm import Session as DBSession

from mentor.exceptions import ConversationNotFoundError, StaleTurnError
from mentor.models.conversation import (
    ConversationContext,
    ConversationPhase,
    ConversationState,
    Message,
)
from shared.repositories.conversation_repository import ConversationRepository
from shared.utils.exceptions import StaleStateError

logger = logging.getLogger(__name__)


class ConversationLocks:
    """
    Registry of per-conversation locks shared by every store in the process.

    An entry exists only while a turn holds or waits on it, so the registry
    does not grow with the number of conversations ever served.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._locks

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[asyncio.Lock]:
        """Acquire the conversation's lock, dropping the entry once nobody needs it."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._holders[conversation_id] = self._holders.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield lock
        finally:
            self._holders[conversation_id] -= 1
            if self._holders[conversation_id] == 0:
                del self._holders[conversation_id]
                del self._locks[conversation_id]


_conversation_locks: Optional[ConversationLocks] = None


def get_conversation_locks() -> ConversationLocks:
    """Get or create the process-wide lock registry."""
    global _conversation_locks
    if _conversation_locks is None:
        _conversation_locks = ConversationLocks()
    return _conversation_locks


def reset_conversation_locks():
    """Reset the lock registry (useful for testing)."""
    global _conversation_locks
    _conversation_locks = None


class ConversationStore(ABC):
    """Storage for conversation state keyed by conversation id."""

    def __init__(self, locks: Optional[ConversationLocks] = None):
        self.locks = locks or get_conversation_locks()

    def lock(self, conversation_id: str) -> AsyncContextManager[asyncio.Lock]:
        """Lock to hold (`async with`) for a read -> LLM -> write sequence."""
        return self.locks.hold(conversation_id)

    @abstractmethod
    def create(
        self,
        state: ConversationState,
        student_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> str:
        """Store a fresh state and return its conversation id."""

    @abstractmethod
    def get(self, conversation_id: str) -> ConversationState:
        """Return the stored state. Raises ConversationNotFoundError."""

    @abstractmethod
    def save(self, conversation_id: str, state: ConversationState, expected_turn_seq: int) -> None:
        """Write `state` if the stored turn_seq still equals `expected_turn_seq`, else StaleTurnError."""

    @abstractmethod
    def owner(self, conversation_id: str) -> Optional[str]:
        """Student id that owns the conversation, if any."""


class InMemoryConversationStore(ConversationStore):
    """Dict-backed store for tests and single-process use."""

    def __init__(self, locks: Optional[ConversationLocks] = None):
        super().__init__(locks or ConversationLocks())
        self._states: dict[str, ConversationState] = {}
        self._owners: dict[str, Optional[str]] = {}

    def create(self, state, student_id=None, conversation_id=None) -> str:
        conversation_id = conversation_id or str(uuid.uuid4())
        self._states[conversation_id] = state.model_copy(deep=True)
        self._owners[conversation_id] = student_id
        return conversation_id

    def get(self, conversation_id: str) -> ConversationState:
        state = self._states.get(conversation_id)
        if state is None:
            raise ConversationNotFoundError(conversation_id)
        return state.model_copy(deep=True)

    def save(self, conversation_id: str, state: ConversationState, expected_turn_seq: int) -> None:
        current = self._states.get(conversation_id)
        if current is None:
            raise ConversationNotFoundError(conversation_id)
        if current.turn_seq != expected_turn_seq:
            raise StaleTurnError(conversation_id, expected_turn_seq, current.turn_seq)
        self._states[conversation_id] = state.model_copy(deep=True)

    def owner(self, conversation_id: str) -> Optional[str]:
        if conversation_id not in self._states:
            raise ConversationNotFoundError(conversation_id)
        return self._owners.get(conversation_id)


class SqlConversationStore(ConversationStore):
    """Store backed by the conversations table."""

    def __init__(self, db: DBSession, locks: Optional[ConversationLocks] = None):
        super().__init__(locks)
        self.repo = ConversationRepository(db)

    def create(self, state, student_id=None, conversation_id=None) -> str:
        conversation_id = conversation_id or str(uuid.uuid4())
        self.repo.create(
            conversation_id,
            student_id=student_id,
            subject=state.context.subject,
            phase=state.phase.value,
            context_json=state.context.model_dump_json(exclude_none=True),
            messages_json=self._dump_messages(state),
            resume_phase=state.resume_phase.value if state.resume_phase else None,
        )
        return conversation_id

    def get(self, conversation_id: str) -> ConversationState:
        row = self.repo.get_by_id(conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return ConversationState(
            phase=ConversationPhase.parse(row.phase) or ConversationPhase.IDLE,
            context=ConversationContext.model_validate_json(row.context_json or "{}"),
            messages=[Message.model_validate(m) for m in json.loads(row.messages_json or "[]")],
            turn_seq=row.turn_seq or 0,
            resume_phase=ConversationPhase.parse(row.resume_phase),
        )

    def save(self, conversation_id: str, state: ConversationState, expected_turn_seq: int) -> None:
        row = self.repo.get_by_id(conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        if row.turn_seq != expected_turn_seq:
            raise StaleTurnError(conversation_id, expected_turn_seq, row.turn_seq)
        try:
            self.repo.save(
                conversation_id,
                phase=state.phase.value,
                context_json=state.context.model_dump_json(exclude_none=True),
                messages_json=self._dump_messages(state),
                turn_seq=state.turn_seq,
                resume_phase=state.resume_phase.value if state.resume_phase else None,
                expected_version=row.state_version or 1,
            )
        except StaleStateError:
            # Another worker committed between our read and write
            latest = self.repo.get_by_id(conversation_id)
            raise StaleTurnError(
                conversation_id, expected_turn_seq, latest.turn_seq if latest else -1
            )

    def owner(self, conversation_id: str) -> Optional[str]:
        row = self.repo.get_by_id(conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return row.student_id

    @staticmethod
    def _dump_messages(state: ConversationState) -> str:
        return json.dumps([m.model_dump() for m in state.messages], ensure_ascii=False)
