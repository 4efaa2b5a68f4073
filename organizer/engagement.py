"""
Engagement Engine

Pure, stateless evaluation of one student's activity over a window of `days`
(plus the preceding window of equal length): session counts, hints per
session, inactivity, flags and the student's segment.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple, Union

from organizer.models import (
    EngagementFlag,
    EngagementSegment,
    StudentActivitySnapshot,
    StudentEvaluation,
)
from organizer.thresholds import (
    DEFAULT_DAYS,
    DEFAULT_THRESHOLDS,
    MAX_DAYS,
    MIN_DAYS,
    NEVER_ACTIVE_DAYS,
    EngagementThresholds,
)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves upwards (2.25 -> 2.3, 2.5 -> 3), unlike Python's banker's round()."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp_days(value: Union[int, str, None]) -> int:
    """Window length bounded to [7, 30]; missing, unparsable or zero means 14."""
    try:
        days = int(value) if value is not None else DEFAULT_DAYS
    except (TypeError, ValueError):
        days = DEFAULT_DAYS
    if days == 0:
        days = DEFAULT_DAYS
    return min(MAX_DAYS, max(MIN_DAYS, days))


def window_bounds(now: datetime, days: int) -> Tuple[datetime, datetime]:
    """(start of the window, start of the previous window)."""
    start = now - timedelta(days=days)
    return start, start - timedelta(days=days)


def count_sessions(
    timestamps: Iterable[datetime],
    start: datetime,
    end: datetime,
    include_end: bool = True,
) -> int:
    if include_end:
        return sum(1 for ts in timestamps if start <= ts <= end)
    return sum(1 for ts in timestamps if start <= ts < end)


def hints_average(hints_used: int, session_count: int) -> float:
    """Hints per session to one decimal; the raw counter when there were no sessions."""
    if session_count > 0:
        return round_half_up(hints_used / session_count, 1)
    return float(hints_used)


def days_since(last_activity_at: Optional[datetime], now: datetime) -> int:
    if last_activity_at is None:
        return NEVER_ACTIVE_DAYS
    return math.floor((now - last_activity_at).total_seconds() / 86400)


def derive_flags(
    *,
    points: int,
    session_count: int,
    prev_session_count: int,
    hints_avg: float,
    last_activity_days: int,
    thresholds: EngagementThresholds = DEFAULT_THRESHOLDS,
) -> List[EngagementFlag]:
    """Independently evaluated flags; at most one inactivity flag, 14d first."""
    flags = []
    if hints_avg >= thresholds.high_hints_avg and session_count > 0:
        flags.append(EngagementFlag.DEPENDENCIA_ALTA)
    if (
        session_count >= thresholds.stagnation_sessions_min
        and prev_session_count >= thresholds.stagnation_sessions_min
        and points < thresholds.stagnation_points_growth_max
    ):
        flags.append(EngagementFlag.ESTANCAMIENTO)
    if last_activity_days >= thresholds.inactive_days_14:
        flags.append(EngagementFlag.INACTIVO_14D)
    elif last_activity_days >= thresholds.inactive_days:
        flags.append(EngagementFlag.INACTIVO_7D)
    return flags


def classify_segment(
    *,
    points: int,
    streak: int,
    session_count: int,
    hints_avg: float,
    last_activity_at: Optional[datetime],
    thresholds: EngagementThresholds = DEFAULT_THRESHOLDS,
) -> EngagementSegment:
    """Exactly one segment; first matching rule wins."""
    if session_count == 0 and last_activity_at is None:
        return EngagementSegment.SIN_ACTIVIDAD
    if hints_avg <= thresholds.segment_hints_low and points > 0:
        return EngagementSegment.AUTONOMO
    if streak >= thresholds.segment_streak_min and hints_avg >= thresholds.segment_hints_high:
        return EngagementSegment.CONSTANTE_DEPENDIENTE
    if session_count > 0 or last_activity_at is not None:
        return EngagementSegment.INTERMITENTE
    return EngagementSegment.SIN_ACTIVIDAD


def evaluate_student(
    snapshot: StudentActivitySnapshot,
    now: datetime,
    days: int = DEFAULT_DAYS,
    thresholds: EngagementThresholds = DEFAULT_THRESHOLDS,
) -> StudentEvaluation:
    start, prev_start = window_bounds(now, days)
    session_count = count_sessions(snapshot.session_timestamps, start, now)
    prev_session_count = count_sessions(
        snapshot.session_timestamps, prev_start, start, include_end=False
    )
    hints_avg = hints_average(snapshot.hints_used, session_count)
    last_days = days_since(snapshot.last_activity_at, now)

    return StudentEvaluation(
        session_count=session_count,
        prev_session_count=prev_session_count,
        hints_avg=hints_avg,
        last_activity_days=last_days,
        flags=derive_flags(
            points=snapshot.points,
            session_count=session_count,
            prev_session_count=prev_session_count,
            hints_avg=hints_avg,
            last_activity_days=last_days,
            thresholds=thresholds,
        ),
        segment=classify_segment(
            points=snapshot.points,
            streak=snapshot.streak,
            session_count=session_count,
            hints_avg=hints_avg,
            last_activity_at=snapshot.last_activity_at,
            thresholds=thresholds,
        ),
    )
