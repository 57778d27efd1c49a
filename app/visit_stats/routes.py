"""
Visit Stats Routes

Flask routes for the visit stats subsystem.
"""

import logging
from typing import List, Optional

from flask import Blueprint, request, jsonify

from .services import VisitStatsService

logger = logging.getLogger(__name__)


def get_client_ip() -> Optional[str]:
    """Get client IP address, handling proxy headers."""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    elif request.headers.get('X-Real-IP'):
        return request.headers.get('X-Real-IP')
    else:
        return request.remote_addr or None


def create_visit_stats_blueprint(
    visit_stats_service: VisitStatsService,
    track_paths: List[str]
) -> Blueprint:
    """Create visit stats blueprint with routes.

    Args:
        visit_stats_service: The visit stats service instance
        track_paths: Paths whose GET requests are recorded as visits

    Returns:
        Flask blueprint with visit stats routes
    """
    blueprint = Blueprint('visit_stats', __name__)
    tracked = set(track_paths)

    @blueprint.before_app_request
    def record_visit():
        """Record a visit for tracked pages (never blocks the request)."""
        if request.method != "GET" or request.path not in tracked:
            return None
        try:
            visit_stats_service.record_visit(
                ip=get_client_ip(),
                user_agent=request.headers.get("User-Agent"),
                referrer=request.referrer,
                url=request.url
            )
        except Exception as exc:
            logger.error(f"Error recording visit for {request.path}: {exc}")
        return None

    @blueprint.route('/api/visit-stats', methods=['GET'])
    def api_visit_stats():
        """API endpoint for the full visit statistics report."""
        try:
            report = visit_stats_service.process_all_stats()
            return jsonify({"status": "ok", "data": report.to_dict()})
        except Exception as exc:
            logger.exception("Error processing visit statistics")
            return jsonify({"error": str(exc)}), 500

    @blueprint.route('/api/visits/count', methods=['GET'])
    def api_visit_count():
        """API endpoint for the stored visit counter."""
        try:
            return jsonify({"totalVisits": visit_stats_service.get_visit_count()})
        except Exception as exc:
            logger.error(f"Error reading visit count: {exc}")
            return jsonify({"error": str(exc), "totalVisits": 0}), 500

    return blueprint
