"""
Visit Stats Service

Records page visits and turns the visit log into the analytics report shown on
the stats dashboard.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Dict, Optional

from .aggregators import (
    format_timestamp,
    prepare_visits,
    reduce_devices,
    reduce_locations,
    reduce_time,
    reduce_trends,
    summarize,
)
from .models import StatsReport, VisitRecord, VisitSummary
from .store import VisitStore
from .user_agent import describe_user_agent

logger = logging.getLogger(__name__)


class VisitStatsService:
    """Service for recording visits and computing visit statistics."""

    def __init__(self, store: VisitStore, top_n: int = 10, top_ips: int = 5,
                 tz: Optional[tzinfo] = None):
        """Initialize the visit stats service.

        Args:
            store: Visit log storage
            top_n: Size of the browser/OS/platform/location rankings
            top_ips: Size of the busiest-address ranking
            tz: Zone used for hour, weekday and month buckets (server local when None)
        """
        self.store = store
        self.top_n = top_n
        self.top_ips = top_ips
        self.tz = tz

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def empty_report(self, now: datetime) -> StatsReport:
        """Report for an empty visit log: zeroed counters, empty rankings."""
        return StatsReport(
            summary=VisitSummary(generated_at=format_timestamp(now)),
            time_analysis=reduce_time([], self.tz)
        )

    def process_all_stats(self) -> StatsReport:
        """Load the visit log and compute the full report.

        The log is re-read on every call; nothing is cached between calls.

        Raises:
            ValueError: if a stored visit has an unparsable timestamp
        """
        collection = self.store.load()
        now = self._now()

        if not collection.visits:
            return self.empty_report(now)

        visits = prepare_visits(collection.visits)
        return StatsReport(
            summary=summarize(visits, now),
            devices=reduce_devices(visits, self.top_n),
            locations=reduce_locations(visits, self.top_n, self.top_ips),
            time_analysis=reduce_time(visits, self.tz),
            trends=reduce_trends(visits, now)
        )

    def record_visit(self, ip: Optional[str], user_agent: Optional[str],
                     referrer: Optional[str] = None, url: Optional[str] = None) -> VisitRecord:
        """Append one visit to the log.

        Args:
            ip: Client address
            user_agent: Raw User-Agent header
            referrer: Referring page, if any
            url: Requested URL, if any

        Returns:
            The stored VisitRecord
        """
        record = VisitRecord(
            timestamp=format_timestamp(self._now()),
            ip=ip,
            user_agent=describe_user_agent(user_agent),
            referrer=referrer,
            url=url
        )
        self.store.append(record)
        return record

    def get_visit_count(self) -> int:
        """Stored (denormalized) visit counter."""
        return self.store.load().total_visits

    def get_count_check(self) -> Dict[str, int]:
        """Compare the stored counter with the actual number of records."""
        collection = self.store.load()
        return {
            "storedTotal": collection.total_visits,
            "actualTotal": len(collection.visits)
        }
