"""
Database access for the Mentis backend.

One engine per process (PostgreSQL in deployments, SQLite for local runs),
request-scoped sessions for FastAPI routes and a transactional scope for
background writers that manage their own sessions.
"""

from contextlib import contextmanager
from typing import Callable, Generator, Iterator
from sqlalchemy import create_engine, text, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from config import Settings, get_settings
import logging

logger = logging.getLogger(__name__)


@contextmanager
def transaction_scope(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """
    Open a session, commit on success, roll back on error, always close.

    Usage:
        with transaction_scope(factory) as session:
            ProgressRepository(session).apply_activity(...)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database transaction failed: {e}")
        raise
    finally:
        session.close()


class DatabaseManager:
    """Owns the engine and session factory built from settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        return self._session_factory

    def _create_engine(self) -> Engine:
        url = str(self.settings.database_url)
        echo = self.settings.log_level == "DEBUG"
        logger.info(f"Creating database engine for: {mask_password(url)}")

        if url.startswith("sqlite"):
            # Local runs and tests; the write-behind timer uses the DB from another thread
            return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=self.settings.db_pool_size,
            max_overflow=self.settings.db_max_overflow,
            pool_timeout=self.settings.db_pool_timeout,
            pool_pre_ping=True,
            echo=echo,
        )

    def get_session(self) -> Session:
        return self.session_factory()

    def session_scope(self):
        """Transactional scope over this manager's sessions (see transaction_scope)."""
        return transaction_scope(self.session_factory)

    def create_tables(self) -> None:
        """Create conversations, progress, summaries, events and guidelines tables if missing."""
        from shared.models.entities import Base

        Base.metadata.create_all(self.engine)

    def health_check(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine closed")
        self._engine = None
        self._session_factory = None


def mask_password(url: str) -> str:
    """Replace the password of a database URL with ****."""
    scheme, sep, rest = url.partition("://")
    credentials, at, host = rest.rpartition("@")
    if not sep or not at or ":" not in credentials:
        return url
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:****@{host}"


_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """Get or create the process-wide database manager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    session = get_db_manager().get_session()
    try:
        yield session
    finally:
        session.close()


def reset_db_manager():
    """Dispose and drop the global manager (useful for testing)."""
    global _db_manager
    if _db_manager:
        _db_manager.close()
    _db_manager = None
