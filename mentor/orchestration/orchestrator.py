"""
Mentor Orchestrator

One guided-dialogue turn: assemble prompt -> single LLM call -> decode
directives -> next state. The LLM call is the only suspending step and is
bounded by a timeout; any failure yields the fixed fallback reply and leaves
the conversation state untouched.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mentor.exceptions import LLMEmptyReplyError, LLMTimeoutError
from mentor.models.conversation import (
    ConversationPhase,
    ConversationState,
    Message,
)
from mentor.orchestration.conversation_store import ConversationStore
from mentor.prompts.mentor_prompts import build_mentor_system_prompt
from mentor.protocol.directives import DirectiveStatus, decode_reply
from shared.services.llm_service import CompletionClient

logger = logging.getLogger("mentor.orchestrator")

FALLBACK_REPLY = "No he podido generar una respuesta. Inténtalo de nuevo."


class TurnResult(BaseModel):
    """Result of processing a turn."""
    reply: str = Field(description="Visible tutor reply, directives stripped")
    next_phase: ConversationPhase = Field(description="Phase after this turn")
    context_update: Optional[Dict[str, Any]] = Field(
        default=None, description="Partial context decoded from the reply, if any"
    )
    points_awarded: int = Field(default=0, ge=0, le=10)
    state: ConversationState = Field(description="State to persist (the input state on failure)")
    failed: bool = Field(default=False, description="True when the fallback reply was returned")
    hint: bool = Field(default=False)


def resolve_next_phase(
    current: ConversationPhase,
    signalled: Optional[ConversationPhase],
) -> ConversationPhase:
    """An explicit phase directive wins; otherwise idle advances and every other phase stays."""
    if signalled is not None:
        return signalled
    if current == ConversationPhase.IDLE:
        return ConversationPhase.DEFINING_CONTEXT
    return current


class MentorOrchestrator:
    """Runs Profesor Mentis turns against an injected completion client."""

    def __init__(
        self,
        llm: CompletionClient,
        timeout_seconds: float = 30.0,
        max_history_messages: Optional[int] = 40,
    ):
        self.llm = llm
        self.timeout_seconds = timeout_seconds
        self.max_history_messages = max_history_messages

    # ─── Public API ───────────────────────────────────────────────────

    async def process_turn(
        self,
        state: ConversationState,
        student_message: str,
        *,
        subject: Optional[str] = None,
        teacher_prompt: Optional[str] = None,
    ) -> TurnResult:
        """Process a student message."""
        return await self._run(
            state,
            student_message=student_message,
            requesting_hint=False,
            subject=subject,
            teacher_prompt=teacher_prompt,
        )

    async def process_hint(
        self,
        state: ConversationState,
        *,
        subject: Optional[str] = None,
        teacher_prompt: Optional[str] = None,
    ) -> TurnResult:
        """
        Process a "Pedir ayuda" request over the existing history.

        Not gated on phase here; a hint outside the solving family is
        processed like any other hint turn.
        """
        if not state.can_request_hint:
            logger.warning(json.dumps({
                "event": "hint_outside_solving_phases",
                "phase": state.phase.value,
            }))
        return await self._run(
            state,
            student_message=None,
            requesting_hint=True,
            subject=subject,
            teacher_prompt=teacher_prompt,
        )

    async def run_turn(
        self,
        store: ConversationStore,
        conversation_id: str,
        student_message: Optional[str] = None,
        *,
        requesting_hint: bool = False,
        subject: Optional[str] = None,
        teacher_prompt: Optional[str] = None,
    ) -> TurnResult:
        """
        Read -> process -> write under the conversation's lock.

        Store reads and writes run in worker threads so a slow database never
        blocks turns of other conversations. Failed turns are not written. A
        result that no longer matches the stored turn sequence is rejected by
        the store with StaleTurnError.
        """
        loop = asyncio.get_event_loop()
        async with store.lock(conversation_id):
            state = await loop.run_in_executor(None, lambda: store.get(conversation_id))
            if requesting_hint:
                result = await self.process_hint(
                    state, subject=subject, teacher_prompt=teacher_prompt
                )
            else:
                result = await self.process_turn(
                    state, student_message or "", subject=subject, teacher_prompt=teacher_prompt
                )
            if not result.failed:
                await loop.run_in_executor(
                    None,
                    lambda: store.save(conversation_id, result.state, expected_turn_seq=state.turn_seq),
                )
            return result

    # ─── Turn processing ──────────────────────────────────────────────

    def build_messages(
        self,
        state: ConversationState,
        history: List[Message],
        requesting_hint: bool,
        teacher_prompt: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        """System instruction first, then the (possibly truncated) conversation."""
        system = build_mentor_system_prompt(
            state.phase,
            state.context,
            requesting_hint=requesting_hint,
            teacher_prompt=teacher_prompt,
            resume_phase=state.resume_phase,
        )
        messages = [{"role": "system", "content": system}]
        recent = history[-self.max_history_messages:] if self.max_history_messages else history
        messages.extend({"role": m.role, "content": m.content} for m in recent)
        return messages

    async def _run(
        self,
        state: ConversationState,
        student_message: Optional[str],
        requesting_hint: bool,
        subject: Optional[str],
        teacher_prompt: Optional[str],
    ) -> TurnResult:
        start_time = time.time()
        turn_no = state.turn_seq + 1

        # The UI subject is authoritative over whatever was stored
        working = state.model_copy(update={"context": state.context.with_subject(subject)})
        history = list(working.messages)
        if student_message is not None:
            history.append(Message(role="user", content=student_message))

        logger.info(json.dumps({
            "event": "turn_started",
            "turn": turn_no,
            "phase": working.phase.value,
            "hint": requesting_hint,
            "history": len(history),
        }))

        messages = self.build_messages(working, history, requesting_hint, teacher_prompt)
        try:
            raw_reply = await self._complete(messages)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(json.dumps({
                "event": "turn_failed",
                "turn": turn_no,
                "phase": state.phase.value,
                "error_type": type(e).__name__,
                "error": str(e),
                "duration_ms": duration_ms,
            }))
            return TurnResult(
                reply=FALLBACK_REPLY,
                next_phase=state.phase,
                state=state,
                failed=True,
                hint=requesting_hint,
            )

        decoded = decode_reply(raw_reply)
        next_phase = resolve_next_phase(working.phase, decoded.next_phase)

        update = decoded.context_update
        context = working.context
        if update is not None:
            context = context.merge(update).with_subject(working.context.subject)

        resume_phase = None
        if next_phase == ConversationPhase.GIVING_HINT:
            resume_phase = (
                working.resume_phase
                if working.phase == ConversationPhase.GIVING_HINT
                else working.phase
            )

        history.append(Message(role="assistant", content=decoded.reply))
        new_state = ConversationState(
            phase=next_phase,
            context=context,
            messages=history,
            turn_seq=turn_no,
            resume_phase=resume_phase,
        )

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "event": "turn_completed",
            "turn": turn_no,
            "phase": working.phase.value,
            "next_phase": next_phase.value,
            "points": decoded.points_awarded,
            "context_updated": update is not None,
            "malformed": [
                name for name, d in (
                    ("points", decoded.points),
                    ("phase", decoded.phase),
                    ("context", decoded.context),
                ) if d.status == DirectiveStatus.MALFORMED
            ],
            "duration_ms": duration_ms,
        }))

        return TurnResult(
            reply=decoded.reply,
            next_phase=next_phase,
            context_update=update.model_dump(exclude_unset=True) if update is not None else None,
            points_awarded=decoded.points_awarded,
            state=new_state,
            hint=requesting_hint,
        )

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        """Single completion call in a worker thread, bounded by the turn timeout."""
        loop = asyncio.get_event_loop()
        try:
            reply = await asyncio.wait_for(
                loop.run_in_executor(None, lambda: self.llm.chat(messages)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise LLMTimeoutError(self.timeout_seconds, getattr(self.llm, "model_id", None))
        if not reply or not reply.strip():
            raise LLMEmptyReplyError(getattr(self.llm, "model_id", None))
        return reply
