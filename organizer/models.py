"""
Organizer Models

Activity snapshots fed into the engagement engine and the payloads returned
by the overview, student metrics and student detail endpoints.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

NOT_AVAILABLE = "N/A"


class EngagementFlag(str, Enum):
    DEPENDENCIA_ALTA = "dependencia_alta"
    ESTANCAMIENTO = "estancamiento"
    INACTIVO_7D = "inactivo_7d"
    INACTIVO_14D = "inactivo_14d"


class EngagementSegment(str, Enum):
    AUTONOMO = "autonomo"
    CONSTANTE_DEPENDIENTE = "constante_dependiente"
    INTERMITENTE = "intermitente"
    SIN_ACTIVIDAD = "sin_actividad"


class StudentActivitySnapshot(BaseModel):
    """Everything the engine needs to know about one student."""
    student_id: str
    name: str = ""
    email: Optional[str] = None
    points: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    hints_used: int = Field(default=0, ge=0, description="Cumulative hint counter")
    last_activity_at: Optional[datetime] = None
    session_timestamps: List[datetime] = Field(
        default_factory=list, description="One per learning summary"
    )


class StudentEvaluation(BaseModel):
    """Per-student result for one evaluation window."""
    session_count: int
    prev_session_count: int
    hints_avg: float
    last_activity_days: int
    flags: List[EngagementFlag] = Field(default_factory=list)
    segment: EngagementSegment


# ─── Overview payload ─────────────────────────────────────────────────

class OverviewKpis(BaseModel):
    total_students: int
    total_points: int
    summaries_count: int
    active_count: int = Field(description="Students with any chat activity ever")
    avg_points: int
    best_streak: int
    sessions_count: int = Field(description="Learning summaries inside the window")
    hints_total: Optional[int] = None
    hints_avg_per_session: Optional[float] = None
    hints_source: Literal["events", "approximated"] = "events"
    active_students: int
    inactive_students: int


class SeriesDay(BaseModel):
    date: str
    label: str
    sessions: int = 0
    hints: int = 0


class OverviewSeries(BaseModel):
    sessions_per_day: List[SeriesDay]
    hints_per_day: List[SeriesDay]


class OverviewAlert(BaseModel):
    student_id: str
    name: str
    flags: List[EngagementFlag]


class OverviewAction(BaseModel):
    text: str
    student_id: Optional[str] = None
    link: str


class SegmentationCounts(BaseModel):
    autonomo: int = 0
    constante_dependiente: int = 0
    intermitente: int = 0
    sin_actividad: int = 0


class ErrorTagShare(BaseModel):
    tag: str
    pct_sessions: int
    trend: int = 0


class StudentRow(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    points: int
    last_activity_at: Optional[datetime] = None
    streak: int
    hints_used: int
    flags: List[EngagementFlag]
    segment: EngagementSegment


class SummaryRow(BaseModel):
    id: str
    student_id: str
    student_name: str
    content: str
    created_at: datetime


class OverviewResponse(BaseModel):
    days: int
    active_only: bool
    kpis: OverviewKpis
    students: List[StudentRow]
    summaries: List[SummaryRow]
    series: OverviewSeries
    top_error_tags: Union[List[ErrorTagShare], Literal["N/A"]]
    segmentation_counts: SegmentationCounts
    alerts: List[OverviewAlert]
    recommended_actions: List[OverviewAction]


# ─── Per-student payloads ─────────────────────────────────────────────

class StudentMetricsResponse(BaseModel):
    sessions_14d: int
    hints_total: int
    hints_per_session: float
    last_activity_at: Optional[datetime] = None
    streak: int
    points: int
    frequent_errors: Union[List[ErrorTagShare], Literal["N/A"]]
    activity_trend: int = Field(description="Previous 7 days minus last 7 days; positive = more activity before")
    summaries_last_7d: int
    summaries_prev_7d: int


class StudentInfo(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class ProgressInfo(BaseModel):
    points: int = 0
    last_activity_at: Optional[datetime] = None
    streak: int = 0
    hints_used: int = 0


class StudentSummaryItem(BaseModel):
    id: str
    content: str
    created_at: datetime


class StudentDetailResponse(BaseModel):
    student: StudentInfo
    progress: ProgressInfo
    summaries: List[StudentSummaryItem]
    teacher_prompt: Optional[str] = None
    private_notes: Optional[str] = None
