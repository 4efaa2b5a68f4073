"""Pytest configuration and shared fixtures."""
import os

# Settings are read on import of main; keep tests off real services
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import threading
from datetime import datetime
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from shared.models.entities import Base
# Import all models to ensure they are registered with Base.metadata
from shared.models.entities import *
from database import get_db
from main import app
from mentor.api.chat import get_llm_client
from mentor.orchestration import reset_conversation_locks
from mentor.services import progress_sync
from mentor.services.progress_sync import ProgressWriteBehind


class ScriptedLLM:
    """Completion client returning scripted replies and recording every call."""

    model_id = "scripted-model"

    def __init__(self, replies: Optional[List] = None):
        self.replies = list(replies or [])
        self.calls: List[List[dict]] = []
        self._lock = threading.Lock()

    def queue(self, *replies):
        self.replies.extend(replies)

    def chat(self, messages, **kwargs) -> str:
        with self._lock:
            self.calls.append(messages)
            reply = self.replies.pop(0) if self.replies else "Vale."
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def last_messages(self) -> List[dict]:
        return self.calls[-1]


@pytest.fixture(autouse=True)
def _fresh_conversation_locks():
    reset_conversation_locks()
    yield
    reset_conversation_locks()


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared across threads (TestClient, write-behind timer)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """
    Create a test database session with in-memory SQLite.

    Fresh database per test function for isolation.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def progress_writer(session_factory, monkeypatch):
    """Write-behind buffer bound to the test database, installed as the global writer."""
    writer = ProgressWriteBehind(session_factory=session_factory, flush_delay_seconds=60)
    monkeypatch.setattr(progress_sync, "_progress_writer", writer)
    yield writer
    writer.close()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM()


@pytest.fixture
def client(session_factory, progress_writer, scripted_llm):
    """Test client with the DB and LLM dependencies overridden."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_client] = lambda: scripted_llm
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def make_student(db_session):
    """Create an organization student, optionally with a progress record."""

    def _make(
        student_id: str,
        name: Optional[str] = None,
        organization_id: str = "org-1",
        points: Optional[int] = None,
        streak: int = 0,
        hints_used: int = 0,
        last_activity_at: Optional[datetime] = None,
    ) -> User:
        if db_session.get(Organization, organization_id) is None:
            db_session.add(Organization(id=organization_id, name=f"Colegio {organization_id}"))
        user = User(
            id=student_id,
            organization_id=organization_id,
            role="STUDENT",
            name=name or student_id.title(),
            email=f"{student_id}@example.com",
        )
        db_session.add(user)
        if points is not None:
            db_session.add(StudentProgress(
                user_id=student_id,
                points=points,
                streak=streak,
                hints_used=hints_used,
                last_activity_at=last_activity_at,
            ))
        db_session.commit()
        return user

    return _make
