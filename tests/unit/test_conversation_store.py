"""Unit tests for the conversation stores and the lock registry."""

import asyncio

import pytest

from mentor.exceptions import ConversationNotFoundError, StaleTurnError
from mentor.models.conversation import (
    ConversationPhase,
    ConversationState,
    Message,
    create_conversation_state,
)
from mentor.orchestration import (
    ConversationLocks,
    InMemoryConversationStore,
    SqlConversationStore,
    get_conversation_locks,
    reset_conversation_locks,
)


def advanced(state, phase=ConversationPhase.SOLVING, **context):
    return ConversationState(
        phase=phase,
        context=state.context.model_copy(update=context),
        messages=state.messages + [
            Message(role="user", content="áreas"),
            Message(role="assistant", content="¿Ejercicio o repaso?"),
        ],
        turn_seq=state.turn_seq + 1,
    )


@pytest.fixture(params=["memory", "sql"])
def store(request, db_session):
    if request.param == "memory":
        return InMemoryConversationStore()
    return SqlConversationStore(db_session, locks=ConversationLocks())


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------

class TestConversationStore:
    def test_create_and_get(self, store):
        conversation_id = store.create(
            create_conversation_state("MATHS", greeting="Hola"), student_id="alice"
        )

        state = store.get(conversation_id)
        assert state.phase == ConversationPhase.IDLE
        assert state.context.subject == "MATHS"
        assert state.messages == [Message(role="assistant", content="Hola")]
        assert state.turn_seq == 0
        assert store.owner(conversation_id) == "alice"

    def test_create_with_explicit_id(self, store):
        assert store.create(create_conversation_state(None), conversation_id="c-1") == "c-1"
        assert store.get("c-1").context.subject is None

    def test_save_round_trips_state(self, store):
        conversation_id = store.create(create_conversation_state("MATHS"))
        new_state = advanced(store.get(conversation_id), topic="áreas", is_exercise=True)
        new_state.resume_phase = ConversationPhase.EVALUATING

        store.save(conversation_id, new_state, expected_turn_seq=0)

        stored = store.get(conversation_id)
        assert stored.phase == ConversationPhase.SOLVING
        assert stored.context.as_dict() == {"subject": "MATHS", "topic": "áreas", "is_exercise": True}
        assert len(stored.messages) == 2
        assert stored.turn_seq == 1
        assert stored.resume_phase == ConversationPhase.EVALUATING

    def test_stale_save_is_rejected(self, store):
        conversation_id = store.create(create_conversation_state("MATHS"))
        base = store.get(conversation_id)
        store.save(conversation_id, advanced(base), expected_turn_seq=0)

        with pytest.raises(StaleTurnError) as exc_info:
            store.save(conversation_id, advanced(base, ConversationPhase.COMPLETED), expected_turn_seq=0)

        assert exc_info.value.actual_seq == 1
        assert store.get(conversation_id).phase == ConversationPhase.SOLVING

    def test_unknown_conversation(self, store):
        with pytest.raises(ConversationNotFoundError):
            store.get("missing")
        with pytest.raises(ConversationNotFoundError):
            store.save("missing", create_conversation_state(None), expected_turn_seq=0)
        with pytest.raises(ConversationNotFoundError):
            store.owner("missing")

    def test_returned_state_is_a_copy(self, store):
        conversation_id = store.create(create_conversation_state("MATHS"))
        state = store.get(conversation_id)
        state.messages.append(Message(role="user", content="no guardado"))

        assert store.get(conversation_id).messages == []


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------

class TestConversationLocks:
    @pytest.mark.asyncio
    async def test_entry_lives_only_while_held(self):
        locks = ConversationLocks()
        async with locks.hold("a") as lock:
            assert "a" in locks
            assert lock.locked()
        assert "a" not in locks
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_waiter_keeps_entry_and_shares_lock(self):
        locks = ConversationLocks()
        order = []
        first_in = asyncio.Event()
        release = asyncio.Event()

        async def first():
            async with locks.hold("a") as lock:
                order.append(("first", id(lock)))
                first_in.set()
                await release.wait()

        async def second():
            await first_in.wait()
            async with locks.hold("a") as lock:
                order.append(("second", id(lock)))

        task_first = asyncio.create_task(first())
        task_second = asyncio.create_task(second())
        await first_in.wait()
        await asyncio.sleep(0)
        assert len(locks) == 1
        release.set()
        await asyncio.gather(task_first, task_second)

        assert [name for name, _ in order] == ["first", "second"]
        assert order[0][1] == order[1][1]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_conversations_do_not_block(self):
        locks = ConversationLocks()
        async with locks.hold("a"):
            async with locks.hold("b"):
                assert len(locks) == 2
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_entry_released_after_error(self):
        locks = ConversationLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")
        assert "a" not in locks

    def test_stores_share_the_global_registry(self, db_session):
        reset_conversation_locks()
        sql_store = SqlConversationStore(db_session)
        other = SqlConversationStore(db_session)
        assert sql_store.locks is other.locks
        assert sql_store.locks is get_conversation_locks()
