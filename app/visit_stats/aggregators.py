"""
Aggregation passes over the visit log.

Every reducer is a pure function of a list of ``NormalizedVisit`` objects and
returns one slice of the ``StatsReport``. All of them accept an empty list.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional

from .models import (
    UNKNOWN_LABEL,
    DeviceStats,
    DeviceType,
    LocationStats,
    NormalizedVisit,
    TimeAnalysis,
    TrendStats,
    TrendWindow,
    VisitRecord,
    VisitSummary,
)
from .user_agent import normalize

IPV4_MAPPED_PREFIX = "::ffff:"
LOOPBACK_ADDRESSES = ("127.0.0.1", "localhost")
PRIVATE_PREFIXES = ("192.168.", "10.", "172.")

WEEKDAY_NAMES = ["Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado"]


class FrequencyMap(Counter):
    """Counter that remembers first-seen order and answers top-N queries."""

    def increment(self, key: str) -> None:
        self[key] += 1

    def top_n(self, n: int) -> Dict[str, int]:
        """Highest counts first; equal counts keep first-seen order."""
        ranked = sorted(self.items(), key=lambda item: item[1], reverse=True)
        return dict(ranked[:n])

    def by_key(self) -> Dict[str, int]:
        return {key: self[key] for key in sorted(self)}


@dataclass(frozen=True)
class Location:
    country: str
    region: str
    city: str


UNRESOLVED_LOCATION = Location(UNKNOWN_LABEL, UNKNOWN_LABEL, UNKNOWN_LABEL)


# -----------------------------------------------------------------------------
# Field normalization
# -----------------------------------------------------------------------------

def normalize_ip(ip: Optional[str]) -> Optional[str]:
    """Strip the IPv4-mapped prefix and collapse ``::1`` to ``127.0.0.1``."""
    if not ip:
        return None
    if ip.startswith(IPV4_MAPPED_PREFIX):
        ip = ip[len(IPV4_MAPPED_PREFIX):]
    if ip == "::1":
        return "127.0.0.1"
    return ip


def locate_ip(ip: Optional[str]) -> Location:
    """Approximate a location from address ranges only.

    No geolocation lookup is performed: loopback and private ranges map to
    fixed local labels and everything else is unresolved.
    """
    clean_ip = normalize_ip(ip)
    if clean_ip is None:
        return UNRESOLVED_LOCATION
    if clean_ip in LOOPBACK_ADDRESSES:
        return Location("Brasil", "Desenvolvimento Local", "Local")
    if clean_ip.startswith(PRIVATE_PREFIXES):
        return Location("Brasil", "Rede Local", "Local")
    return UNRESOLVED_LOCATION


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware datetime.

    Naive values are taken as UTC.

    Raises:
        ValueError: if the value is missing or not ISO-8601
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid visit timestamp: {value!r}")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid visit timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Serialize as UTC with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def prepare_visits(records: Iterable[VisitRecord]) -> List[NormalizedVisit]:
    """Resolve timestamp, IP and user agent of every record once."""
    return [
        NormalizedVisit(
            timestamp=parse_timestamp(record.timestamp),
            ip=normalize_ip(record.ip),
            user_agent=normalize(record)
        )
        for record in records
    ]


# -----------------------------------------------------------------------------
# Reducers
# -----------------------------------------------------------------------------

def summarize(visits: List[NormalizedVisit], now: datetime) -> VisitSummary:
    """Record count, distinct visitors and first/last visit."""
    summary = VisitSummary(
        total_visits=len(visits),
        unique_visitors=len({visit.ip for visit in visits if visit.ip}),
        generated_at=format_timestamp(now)
    )
    if visits:
        timestamps = [visit.timestamp for visit in visits]
        summary.first_visit = format_timestamp(min(timestamps))
        summary.last_visit = format_timestamp(max(timestamps))
    return summary


def reduce_devices(visits: List[NormalizedVisit], top_n: int = 10) -> DeviceStats:
    """Device class counts plus top browsers, operating systems and platforms."""
    device_types = FrequencyMap({device.value: 0 for device in DeviceType})
    browsers = FrequencyMap()
    operating_systems = FrequencyMap()
    platforms = FrequencyMap()

    for visit in visits:
        ua = visit.user_agent
        device_types.increment(ua.device.value)
        browsers.increment(ua.browser)
        operating_systems.increment(ua.os)
        platforms.increment(ua.platform)

    return DeviceStats(
        device_types=dict(device_types),
        browsers=browsers.top_n(top_n),
        operating_systems=operating_systems.top_n(top_n),
        platforms=platforms.top_n(top_n)
    )


def reduce_locations(visits: List[NormalizedVisit], top_n: int = 10, top_ips: int = 5) -> LocationStats:
    """Country, region and city distributions plus the busiest addresses."""
    countries = FrequencyMap()
    regions = FrequencyMap()
    cities = FrequencyMap()
    addresses = FrequencyMap()

    for visit in visits:
        location = locate_ip(visit.ip)
        countries.increment(location.country)
        regions.increment(location.region)
        cities.increment(location.city)
        if visit.ip:
            addresses.increment(visit.ip)

    return LocationStats(
        countries=countries.top_n(top_n),
        regions=regions.top_n(top_n),
        cities=cities.top_n(top_n),
        top_ips=addresses.top_n(top_ips)
    )


def reduce_time(visits: List[NormalizedVisit], tz: Optional[tzinfo] = None) -> TimeAnalysis:
    """Bucket visits by hour, day, month and weekday.

    Hour, month and weekday use ``tz`` (server local time when None); the day
    key is the UTC calendar date.
    """
    hourly = FrequencyMap({f"{hour}:00": 0 for hour in range(24)})
    weekdays = FrequencyMap({name: 0 for name in WEEKDAY_NAMES})
    daily = FrequencyMap()
    monthly = FrequencyMap()

    for visit in visits:
        local = visit.timestamp.astimezone(tz)
        hourly.increment(f"{local.hour}:00")
        weekdays.increment(WEEKDAY_NAMES[(local.weekday() + 1) % 7])
        daily.increment(visit.timestamp.astimezone(timezone.utc).date().isoformat())
        monthly.increment(f"{local.year}-{local.month:02d}")

    return TimeAnalysis(
        hourly=dict(hourly),
        daily=daily.by_key(),
        monthly=monthly.by_key(),
        weekdays=dict(weekdays)
    )


def _window(visits: List[NormalizedVisit], start: datetime, units: int, average_key: str) -> TrendWindow:
    recent = [visit for visit in visits if visit.timestamp >= start]
    return TrendWindow(
        total_visits=len(recent),
        unique_visitors=len({visit.ip for visit in recent if visit.ip}),
        average=round(len(recent) / units, 1),
        average_key=average_key
    )


def reduce_trends(visits: List[NormalizedVisit], now: datetime) -> TrendStats:
    """Totals, distinct visitors and averages for the 24h/7d/30d windows."""
    return TrendStats(
        last_24_hours=_window(visits, now - timedelta(hours=24), 24, "averageVisitsPerHour"),
        last_7_days=_window(visits, now - timedelta(days=7), 7, "averageVisitsPerDay"),
        last_30_days=_window(visits, now - timedelta(days=30), 30, "averageVisitsPerDay")
    )
