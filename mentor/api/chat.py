"""Mentor chat API endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from database import get_db
from mentor.exceptions import ConfigurationError
from mentor.services import MentorChatService, create_llm_service
from shared.models import (
    ChatMessageRequest,
    ConversationResponse,
    HintRequest,
    StartConversationRequest,
    StartConversationResponse,
    TurnResponse,
)
from shared.services.llm_service import CompletionClient
from shared.utils.exceptions import MentisException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mentor-chat", tags=["mentor-chat"])


def get_llm_client() -> CompletionClient:
    """Completion client for tutor turns (overridable in tests)."""
    try:
        return create_llm_service()
    except ConfigurationError as e:
        logger.error(e.message)
        raise HTTPException(status_code=503, detail="Servicio de IA no configurado")


@router.post("/conversations", response_model=StartConversationResponse)
def start_conversation(request: StartConversationRequest, db: DBSession = Depends(get_db)):
    """Open a conversation for the subject chosen in the UI and return the greeting."""
    try:
        service = MentorChatService(db)
        return service.start_conversation(request)
    except MentisException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error starting conversation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error starting conversation")


@router.post("/conversations/{conversation_id}/messages", response_model=TurnResponse)
async def send_message(
    conversation_id: str,
    request: ChatMessageRequest,
    db: DBSession = Depends(get_db),
    llm: CompletionClient = Depends(get_llm_client),
):
    """Send a student message and get Profesor Mentis' reply."""
    try:
        service = MentorChatService(db, llm=llm)
        return await service.send_message(conversation_id, request)
    except MentisException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error processing message: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing message")


@router.post("/conversations/{conversation_id}/hint", response_model=TurnResponse)
async def request_hint(
    conversation_id: str,
    request: HintRequest,
    db: DBSession = Depends(get_db),
    llm: CompletionClient = Depends(get_llm_client),
):
    """"Pedir ayuda": one conceptual hint over the existing history."""
    try:
        service = MentorChatService(db, llm=llm)
        return await service.request_hint(conversation_id, request)
    except MentisException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error processing hint: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing hint")


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
def get_conversation(conversation_id: str, db: DBSession = Depends(get_db)):
    """Current phase, context and message log."""
    try:
        service = MentorChatService(db)
        return service.get_conversation(conversation_id)
    except MentisException as e:
        raise e.to_http_exception()
