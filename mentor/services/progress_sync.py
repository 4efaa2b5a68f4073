"""
Write-behind buffer for student progress.

Point awards and hint usage are accumulated in memory per student and written
to the progress record from a background timer thread within a bounded delay.
Each flush uses its own DB session, independent of the request-scoped one.

Usage:
    writer = get_progress_writer()
    writer.record(student_id, points=2)
    writer.record(student_id, hints=1)
    writer.flush()  # force convergence (shutdown, tests)
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session as DBSession

from database import get_db_manager, transaction_scope
from shared.repositories.progress_repository import ProgressRepository

logger = logging.getLogger(__name__)


@dataclass
class PendingProgress:
    """Accumulated, not yet persisted activity for one student."""
    points: int = 0
    hints: int = 0
    last_activity_at: Optional[datetime] = None

    def add(self, points: int, hints: int, at: datetime) -> None:
        self.points += points
        self.hints += hints
        if self.last_activity_at is None or at > self.last_activity_at:
            self.last_activity_at = at


class ProgressWriteBehind:
    """Eventually-consistent progress writer with a bounded flush delay."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], DBSession]] = None,
        flush_delay_seconds: float = 1.5,
    ):
        self._session_factory = session_factory
        self.flush_delay_seconds = flush_delay_seconds
        self._pending: Dict[str, PendingProgress] = {}
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def _get_session_factory(self) -> Callable[[], DBSession]:
        if self._session_factory is None:
            self._session_factory = get_db_manager().session_factory
        return self._session_factory

    def record(
        self,
        student_id: str,
        points: int = 0,
        hints: int = 0,
        at: Optional[datetime] = None,
    ) -> None:
        """Buffer activity for `student_id` and make sure a flush is scheduled."""
        if not student_id:
            return
        at = at or datetime.utcnow()
        with self._lock:
            self._pending.setdefault(student_id, PendingProgress()).add(points, hints, at)
            if self._timer is None:
                self._timer = threading.Timer(self.flush_delay_seconds, self._on_timer)
                self._timer.daemon = True
                self._timer.start()

    def pending(self, student_id: str) -> Optional[PendingProgress]:
        with self._lock:
            entry = self._pending.get(student_id)
            return PendingProgress(entry.points, entry.hints, entry.last_activity_at) if entry else None

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        self.flush()

    def flush(self) -> int:
        """
        Write every buffered update now, in one transaction scope.

        Returns:
            Number of student records written. Failed writes are re-queued.
        """
        with self._lock:
            batch, self._pending = self._pending, {}
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if not batch:
            return 0

        unwritten = dict(batch)
        try:
            with transaction_scope(self._get_session_factory()) as session:
                repo = ProgressRepository(session)
                for student_id, entry in batch.items():
                    try:
                        repo.apply_activity(
                            student_id,
                            points_delta=entry.points,
                            hints_delta=entry.hints,
                            at=entry.last_activity_at,
                        )
                    except Exception as e:
                        session.rollback()
                        logger.error(f"Progress write for {student_id} failed, re-queueing: {e}")
                        continue
                    del unwritten[student_id]
        except Exception as e:
            # Runs on the timer thread; the batch stays buffered for the next flush
            logger.error(f"Progress flush failed, re-queueing {len(unwritten)} students: {e}")
        finally:
            for student_id, entry in unwritten.items():
                self._requeue(student_id, entry)
        return len(batch) - len(unwritten)

    def _requeue(self, student_id: str, entry: PendingProgress) -> None:
        with self._lock:
            self._pending.setdefault(student_id, PendingProgress()).add(
                entry.points, entry.hints, entry.last_activity_at or datetime.utcnow()
            )
            if self._timer is None:
                self._timer = threading.Timer(self.flush_delay_seconds, self._on_timer)
                self._timer.daemon = True
                self._timer.start()

    def close(self) -> None:
        """Cancel the timer and write whatever is still buffered."""
        self.flush()


# Global writer instance
_progress_writer: Optional[ProgressWriteBehind] = None


def get_progress_writer() -> ProgressWriteBehind:
    """Get or create the process-wide progress writer."""
    global _progress_writer
    if _progress_writer is None:
        from config import get_settings
        _progress_writer = ProgressWriteBehind(
            flush_delay_seconds=get_settings().progress_flush_delay_seconds
        )
    return _progress_writer


def reset_progress_writer():
    """Flush and drop the global writer (useful for testing)."""
    global _progress_writer
    if _progress_writer is not None:
        _progress_writer.close()
    _progress_writer = None
