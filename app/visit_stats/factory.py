"""
Factory for creating visit stats module.
"""
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from config_manager import VisitStatsConfig
from .routes import create_visit_stats_blueprint
from .services import VisitStatsService
from .store import VisitStore


def create_visit_stats_module(
    visits_file: Path,
    stats_config: Optional[VisitStatsConfig] = None
) -> dict:
    """Create visit stats module with service and routes.

    Args:
        visits_file: JSON file holding the visit log
        stats_config: Ranking sizes, tracked paths and bucketing time zone

    Returns:
        Dictionary containing the store, the service and the blueprint
    """
    stats_config = stats_config or VisitStatsConfig()

    store = VisitStore(visits_file)

    tz = ZoneInfo(stats_config.timezone) if stats_config.timezone else None
    visit_stats_service = VisitStatsService(
        store=store,
        top_n=stats_config.top_n,
        top_ips=stats_config.top_ips,
        tz=tz
    )

    blueprint = create_visit_stats_blueprint(
        visit_stats_service=visit_stats_service,
        track_paths=stats_config.track_paths
    )

    return {
        "store": store,
        "service": visit_stats_service,
        "blueprint": blueprint
    }
