"""Mentor chat business logic: conversations, turns, hints and their side effects."""

import asyncio
import json
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from config import Settings, get_settings
from mentor.exceptions import ConfigurationError, ConversationNotFoundError, StaleTurnError
from mentor.models.conversation import create_conversation_state
from mentor.orchestration import (
    ConversationLocks,
    MentorOrchestrator,
    SqlConversationStore,
    TurnResult,
)
from mentor.prompts.mentor_prompts import get_initial_greeting
from mentor.services.progress_sync import ProgressWriteBehind, get_progress_writer
from shared.models import (
    ChatMessage,
    ChatMessageRequest,
    ConversationResponse,
    HintRequest,
    StartConversationRequest,
    StartConversationResponse,
    TurnResponse,
)
from shared.repositories import EventRepository, StudentRepository, HINT_USED
from shared.services.llm_service import CompletionClient, LLMService
from shared.utils.exceptions import (
    ConversationNotFoundException,
    DatabaseException,
    StaleStateError,
)

logger = logging.getLogger("mentor.chat_service")


def create_llm_service(settings: Optional[Settings] = None) -> LLMService:
    """
    Build the completion client for Profesor Mentis from settings.

    `llm_timeout_seconds` bounds the whole turn, so each attempt gets an equal
    share of it and the retries fit inside the turn deadline.
    """
    settings = settings or get_settings()
    if not settings.openrouter_api_key:
        raise ConfigurationError("OPENROUTER_API_KEY", "not set")
    attempts = max(1, settings.llm_max_retries)
    return LLMService(
        api_key=settings.openrouter_api_key,
        model_id=settings.llm_model,
        base_url=settings.openrouter_base_url,
        max_retries=attempts,
        timeout=settings.llm_timeout_seconds / attempts,
    )


class MentorChatService:
    """Owns the conversation lifecycle around the orchestrator."""

    def __init__(
        self,
        db: DBSession,
        llm: Optional[CompletionClient] = None,
        progress_writer: Optional[ProgressWriteBehind] = None,
        locks: Optional[ConversationLocks] = None,
    ):
        self.db = db
        self.settings = get_settings()
        self.store = SqlConversationStore(db, locks)
        self.student_repo = StudentRepository(db)
        self.event_repo = EventRepository(db)
        self._llm = llm
        self._orchestrator: Optional[MentorOrchestrator] = None
        self.progress = progress_writer or get_progress_writer()

    @property
    def orchestrator(self) -> MentorOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = MentorOrchestrator(
                self._llm or create_llm_service(self.settings),
                timeout_seconds=self.settings.llm_timeout_seconds,
                max_history_messages=self.settings.max_history_messages,
            )
        return self._orchestrator

    # ─── Conversation lifecycle ───────────────────────────────────────

    def start_conversation(self, request: StartConversationRequest) -> StartConversationResponse:
        """Create an idle conversation whose log starts with the greeting."""
        greeting = get_initial_greeting(request.subject)
        state = create_conversation_state(request.subject, greeting=greeting)
        try:
            conversation_id = self.store.create(state, student_id=request.student_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not create conversation: {e}", exc_info=True)
            raise DatabaseException("conversation create", e)
        logger.info(json.dumps({
            "event": "conversation_started",
            "conversation_id": conversation_id,
            "student_id": request.student_id,
            "subject": request.subject,
        }))
        return StartConversationResponse(
            conversation_id=conversation_id,
            phase=state.phase.value,
            context=state.context.as_dict(),
            greeting=greeting,
        )

    def get_conversation(self, conversation_id: str) -> ConversationResponse:
        try:
            state = self.store.get(conversation_id)
            owner = self.store.owner(conversation_id)
        except ConversationNotFoundError:
            raise ConversationNotFoundException(conversation_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseException("conversation read", e)
        return ConversationResponse(
            conversation_id=conversation_id,
            student_id=owner,
            phase=state.phase.value,
            context=state.context.as_dict(),
            messages=[ChatMessage(role=m.role, content=m.content) for m in state.messages],
            turn_seq=state.turn_seq,
            can_request_hint=state.can_request_hint,
        )

    async def send_message(self, conversation_id: str, request: ChatMessageRequest) -> TurnResponse:
        result = await self._run(conversation_id, request.message, False, request.subject)
        return self._to_response(result)

    async def request_hint(self, conversation_id: str, request: HintRequest) -> TurnResponse:
        result = await self._run(conversation_id, None, True, request.subject)
        return self._to_response(result)

    # ─── Helpers ──────────────────────────────────────────────────────

    async def _run(
        self,
        conversation_id: str,
        message: Optional[str],
        requesting_hint: bool,
        subject: Optional[str],
    ) -> TurnResult:
        loop = asyncio.get_event_loop()
        try:
            student_id = await loop.run_in_executor(None, lambda: self.store.owner(conversation_id))
            teacher_prompt = await loop.run_in_executor(None, lambda: self._teacher_prompt(student_id))
            result = await self.orchestrator.run_turn(
                self.store,
                conversation_id,
                message,
                requesting_hint=requesting_hint,
                subject=subject,
                teacher_prompt=teacher_prompt,
            )
        except ConversationNotFoundError:
            raise ConversationNotFoundException(conversation_id)
        except StaleTurnError as e:
            raise StaleStateError(e.message)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Conversation {conversation_id} storage failed: {e}", exc_info=True)
            raise DatabaseException("conversation turn", e)

        if not result.failed and student_id:
            self.progress.record(
                student_id,
                points=result.points_awarded,
                hints=1 if requesting_hint else 0,
            )
            if requesting_hint:
                await loop.run_in_executor(None, lambda: self._log_hint(student_id, conversation_id))
        return result

    def _teacher_prompt(self, student_id: Optional[str]) -> Optional[str]:
        if not student_id:
            return None
        try:
            return self.student_repo.get_teacher_prompt(student_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Teacher guidelines unavailable for {student_id}: {e}")
            return None

    def _log_hint(self, student_id: str, conversation_id: str) -> None:
        try:
            self.event_repo.log(student_id, HINT_USED, {"conversation_id": conversation_id})
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Could not log hint_used for {student_id}: {e}")

    @staticmethod
    def _to_response(result: TurnResult) -> TurnResponse:
        return TurnResponse(
            reply=result.reply,
            next_phase=result.next_phase.value,
            context_update=result.context_update,
            points_awarded=result.points_awarded,
            can_request_hint=result.state.can_request_hint,
        )
