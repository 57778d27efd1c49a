"""
Visit Stats Module

Records page visits and aggregates them into device, location, time and trend
statistics for the public stats dashboard.
"""

from .factory import create_visit_stats_module
from .services import VisitStatsService
from .store import VisitStore

__all__ = ["create_visit_stats_module", "VisitStatsService", "VisitStore"]
