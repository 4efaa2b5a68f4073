"""
Overview Aggregation

Pure functions that turn per-student snapshots and evaluations into the
organizer dashboard: KPIs, the per-day series, alerts, recommended actions,
segment counts and top error tags. Optional sources (hint events, error tags)
arrive as None when unavailable and degrade to an approximation or "N/A".
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from organizer.engagement import days_since, round_half_up, window_bounds
from organizer.models import (
    NOT_AVAILABLE,
    EngagementFlag,
    EngagementSegment,
    ErrorTagShare,
    OverviewAction,
    OverviewAlert,
    OverviewKpis,
    OverviewSeries,
    SegmentationCounts,
    SeriesDay,
    StudentActivitySnapshot,
    StudentEvaluation,
    StudentRow,
)
from organizer.thresholds import MAX_ACTIONS, MAX_ALERTS, MAX_ERROR_TAGS

# es-ES short month names
MONTHS_ES = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic")

Evaluated = Tuple[StudentActivitySnapshot, StudentEvaluation]


def day_label(day: datetime) -> str:
    return f"{day.day:02d} {MONTHS_ES[day.month - 1]}"


def is_active_in_window(
    snapshot: StudentActivitySnapshot,
    evaluation: StudentEvaluation,
    window_start: datetime,
) -> bool:
    """Active when the last activity or a learning summary falls inside the window."""
    recent = snapshot.last_activity_at is not None and snapshot.last_activity_at >= window_start
    return recent or evaluation.session_count > 0


def compute_kpis(
    evaluated: Sequence[Evaluated],
    now: datetime,
    days: int,
    summaries_count: int,
    hint_events_in_window: Optional[int],
) -> OverviewKpis:
    """
    Organization KPIs for the window.

    `hint_events_in_window` is None when the event log is unavailable; the
    cumulative hint counters are then used as an approximation.
    """
    window_start, _ = window_bounds(now, days)
    total_students = len(evaluated)
    total_points = sum(s.points for s, _ in evaluated)
    sessions_count = sum(e.session_count for _, e in evaluated)
    active_students = sum(1 for s, e in evaluated if is_active_in_window(s, e, window_start))

    if hint_events_in_window is not None:
        hints_total = hint_events_in_window
        hints_avg = round_half_up(hints_total / sessions_count, 1) if sessions_count > 0 else 0.0
        hints_source = "events"
    else:
        hints_total = sum(s.hints_used for s, _ in evaluated)
        hints_avg = round_half_up(hints_total / sessions_count, 1) if sessions_count > 0 else None
        hints_source = "approximated"

    return OverviewKpis(
        total_students=total_students,
        total_points=total_points,
        summaries_count=summaries_count,
        active_count=sum(1 for s, _ in evaluated if s.last_activity_at is not None),
        avg_points=int(round_half_up(total_points / total_students)) if total_students else 0,
        best_streak=max((s.streak for s, _ in evaluated), default=0),
        sessions_count=sessions_count,
        hints_total=hints_total,
        hints_avg_per_session=hints_avg,
        hints_source=hints_source,
        active_students=active_students,
        inactive_students=total_students - active_students,
    )


def build_daily_series(
    now: datetime,
    days: int,
    session_times: Iterable[datetime],
    hint_times: Optional[Iterable[datetime]],
    approximate_hints_total: int = 0,
) -> OverviewSeries:
    """
    One bucket per calendar day from `days - 1` days ago to today, zero-filled.

    Without hint events (`hint_times` is None) the approximate total is spread
    evenly over the buckets, the remainder going to the most recent days.
    """
    keys = [(now - timedelta(days=i)).date() for i in range(days - 1, -1, -1)]
    buckets = {key: [0, 0] for key in keys}

    for ts in session_times:
        if ts.date() in buckets:
            buckets[ts.date()][0] += 1

    if hint_times is not None:
        for ts in hint_times:
            if ts.date() in buckets:
                buckets[ts.date()][1] += 1
    elif approximate_hints_total > 0:
        base, extra = divmod(approximate_hints_total, len(keys))
        for index, key in enumerate(keys):
            buckets[key][1] = base + (1 if index >= len(keys) - extra else 0)

    series = [
        SeriesDay(
            date=key.isoformat(),
            label=day_label(datetime(key.year, key.month, key.day)),
            sessions=buckets[key][0],
            hints=buckets[key][1],
        )
        for key in keys
    ]
    return OverviewSeries(sessions_per_day=series, hints_per_day=[d.model_copy() for d in series])


def build_student_rows(evaluated: Sequence[Evaluated]) -> List[StudentRow]:
    return [
        StudentRow(
            id=s.student_id,
            name=s.name,
            email=s.email,
            points=s.points,
            last_activity_at=s.last_activity_at,
            streak=s.streak,
            hints_used=s.hints_used,
            flags=e.flags,
            segment=e.segment,
        )
        for s, e in evaluated
    ]


def build_alerts(evaluated: Sequence[Evaluated], limit: int = MAX_ALERTS) -> List[OverviewAlert]:
    """First students (in listing order) carrying at least one flag."""
    return [
        OverviewAlert(student_id=s.student_id, name=s.name, flags=e.flags)
        for s, e in evaluated
        if e.flags
    ][:limit]


def build_recommended_actions(
    evaluated: Sequence[Evaluated],
    now: datetime,
    limit: int = MAX_ACTIONS,
) -> List[OverviewAction]:
    actions = []
    for s, e in evaluated:
        link = f"/organizer/students/{s.student_id}"
        if EngagementFlag.DEPENDENCIA_ALTA in e.flags:
            per_session = _format_number(e.hints_avg)
            actions.append(OverviewAction(
                text=f"Revisar a {s.name}: dependencia alta ({per_session} pistas/sesión)",
                student_id=s.student_id,
                link=link,
            ))
        if EngagementFlag.INACTIVO_14D in e.flags or EngagementFlag.INACTIVO_7D in e.flags:
            days_ago = days_since(s.last_activity_at, now) if s.last_activity_at else 99
            actions.append(OverviewAction(
                text=f"Contactar a {s.name}: 0 actividad desde hace {days_ago} días",
                student_id=s.student_id,
                link=link,
            ))
    return actions[:limit]


def count_segments(evaluated: Sequence[Evaluated]) -> SegmentationCounts:
    counts = Counter(e.segment for _, e in evaluated)
    return SegmentationCounts(**{segment.value: counts.get(segment, 0) for segment in EngagementSegment})


def top_error_tags(
    tags: Optional[Sequence[Optional[str]]],
    limit: int = MAX_ERROR_TAGS,
) -> Union[List[ErrorTagShare], str]:
    """
    Share of each tag over all error-tag events, highest first.

    `tags` holds one entry per event (None when the event carries no tag) or is
    None when the tag log is unavailable. Returns "N/A" without usable tags.
    """
    if not tags:
        return NOT_AVAILABLE
    counts = Counter(tag for tag in tags if tag)
    if not counts:
        return NOT_AVAILABLE
    total = len(tags)
    shares = [
        ErrorTagShare(tag=tag, pct_sessions=int(round_half_up(count / total * 100)), trend=0)
        for tag, count in counts.items()
    ]
    shares.sort(key=lambda share: share.pct_sessions, reverse=True)
    return shares[:limit]


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
