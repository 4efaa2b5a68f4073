"""Organizer services."""
from organizer.services.overview_service import OverviewService
from organizer.services.student_metrics_service import StudentMetricsService
