"""
Engagement thresholds for the organizer overview.

Tune alerts and segmentation here without touching the evaluation logic.
"""
from pydantic import BaseModel, ConfigDict

# Hints per session at or above => "dependencia_alta"
HIGH_HINTS_AVG = 5

# Days without activity => inactivity flags
INACTIVE_DAYS = 7
INACTIVE_DAYS_14 = 14

# Sessions needed in both windows to consider "estancamiento"
STAGNATION_SESSIONS_MIN = 3

# Points below this with sustained activity => possible stagnation
STAGNATION_POINTS_GROWTH_MAX = 10

# Segmentation: hints per session at or below => more autonomous
SEGMENT_HINTS_LOW = 2

# Segmentation: hints per session at or above => dependent
SEGMENT_HINTS_HIGH = 5

# Segmentation: minimum streak for "constante"
SEGMENT_STREAK_MIN = 3

# Evaluation window, in days
DEFAULT_DAYS = 14
MIN_DAYS = 7
MAX_DAYS = 30

# Days-since-activity reported for a student who was never active
NEVER_ACTIVE_DAYS = 999

MAX_ALERTS = 5
MAX_ACTIONS = 6
MAX_ERROR_TAGS = 6
LATEST_SUMMARIES = 50


class EngagementThresholds(BaseModel):
    """Threshold set used by flag and segment derivation."""

    model_config = ConfigDict(frozen=True)

    high_hints_avg: float = HIGH_HINTS_AVG
    inactive_days: int = INACTIVE_DAYS
    inactive_days_14: int = INACTIVE_DAYS_14
    stagnation_sessions_min: int = STAGNATION_SESSIONS_MIN
    stagnation_points_growth_max: int = STAGNATION_POINTS_GROWTH_MAX
    segment_hints_low: float = SEGMENT_HINTS_LOW
    segment_hints_high: float = SEGMENT_HINTS_HIGH
    segment_streak_min: int = SEGMENT_STREAK_MIN


DEFAULT_THRESHOLDS = EngagementThresholds()
