"""
Data Models for Visit Stats

Defines the persisted visit log structures and the report returned to the
dashboard.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNKNOWN_LABEL = "Desconhecido"


def _coerce_text(value: Any) -> Optional[str]:
    """Keep strings, stringify other scalars, drop nested values."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return None


class DeviceType(Enum):
    """Device classes a visit can be attributed to."""

    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"
    BOT = "bot"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "DeviceType":
        """Map a stored device string to a known class, defaulting to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# -----------------------------------------------------------------------------
# Persisted structures (visits.json)
# -----------------------------------------------------------------------------

class UserAgentDescriptor(BaseModel):
    """Structured user-agent data captured at ingestion time."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    browser: Optional[str] = Field(default=None, description="Browser family")
    version: Optional[str] = Field(default=None, description="Browser version")
    os: Optional[str] = Field(default=None, description="Operating system family")
    platform: Optional[str] = Field(default=None, description="Platform label, falls back to os")
    source: Optional[str] = Field(default=None, description="Raw User-Agent header")
    device: Optional[str] = Field(default=None, description="Device class")
    is_mobile: Optional[bool] = Field(default=None, alias="isMobile")
    is_desktop: Optional[bool] = Field(default=None, alias="isDesktop")
    is_tablet: Optional[bool] = Field(default=None, alias="isTablet")
    is_bot: Optional[bool] = Field(default=None, alias="isBot")

    @field_validator("browser", "version", "os", "platform", "source", "device", mode="before")
    @classmethod
    def coerce_text_fields(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("is_mobile", "is_desktop", "is_tablet", "is_bot", mode="before")
    @classmethod
    def coerce_flag_fields(cls, value: Any) -> Optional[bool]:
        return None if value is None else bool(value)


class VisitRecord(BaseModel):
    """One logged page visit."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    timestamp: Optional[str] = Field(default=None, description="ISO-8601 instant of the visit")
    ip: Optional[str] = Field(default=None, description="Client address as seen by the server")
    user_agent: Union[UserAgentDescriptor, str, None] = Field(
        default=None, alias="userAgent",
        description="Structured descriptor, legacy raw string, or absent"
    )
    browser: Optional[str] = Field(default=None, description="Legacy flat browser field")
    os: Optional[str] = Field(default=None, description="Legacy flat OS field")
    device: Optional[str] = Field(default=None, description="Legacy flat device field")
    referrer: Optional[str] = None
    url: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> Optional[str]:
        # Numeric timestamps are epoch milliseconds
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                instant = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return str(value)
            return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return _coerce_text(value)

    @field_validator("ip", "browser", "os", "device", "referrer", "url", mode="before")
    @classmethod
    def coerce_text_fields(cls, value: Any) -> Optional[str]:
        return _coerce_text(value)

    @field_validator("user_agent", mode="before")
    @classmethod
    def coerce_user_agent(cls, value: Any) -> Any:
        if isinstance(value, (dict, UserAgentDescriptor)):
            return value
        return _coerce_text(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(by_alias=True, exclude_none=True)


class VisitCollection(BaseModel):
    """The whole visit log with its denormalized counter."""
    model_config = ConfigDict(populate_by_name=True)

    total_visits: int = Field(default=0, alias="totalVisits")
    visits: List[VisitRecord] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "VisitCollection":
        return cls(total_visits=0, visits=[])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVisits": self.total_visits,
            "visits": [visit.to_dict() for visit in self.visits]
        }


# -----------------------------------------------------------------------------
# Derived structures (never persisted)
# -----------------------------------------------------------------------------

@dataclass
class NormalizedUserAgent:
    """Canonical user-agent view used by the aggregators."""

    browser: str
    os: str
    device: DeviceType
    platform: str
    is_mobile: bool = False
    is_desktop: bool = False
    is_tablet: bool = False
    is_bot: bool = False

    @classmethod
    def build(cls, browser: str, os: str, device: DeviceType,
              platform: Optional[str] = None) -> "NormalizedUserAgent":
        """Create a descriptor whose boolean flags follow ``device``."""
        return cls(
            browser=browser,
            os=os,
            device=device,
            platform=platform or os,
            is_mobile=device is DeviceType.MOBILE,
            is_desktop=device is DeviceType.DESKTOP,
            is_tablet=device is DeviceType.TABLET,
            is_bot=device is DeviceType.BOT
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "browser": self.browser,
            "os": self.os,
            "device": self.device.value,
            "isMobile": self.is_mobile,
            "isDesktop": self.is_desktop,
            "isTablet": self.is_tablet,
            "isBot": self.is_bot,
            "platform": self.platform
        }


@dataclass
class NormalizedVisit:
    """A visit record after timestamp parsing and IP/user-agent normalization."""

    timestamp: datetime
    ip: Optional[str]
    user_agent: NormalizedUserAgent


# -----------------------------------------------------------------------------
# Report structures
# -----------------------------------------------------------------------------

@dataclass
class VisitSummary:
    """Headline numbers for the whole collection."""

    total_visits: int = 0
    unique_visitors: int = 0
    first_visit: Optional[str] = None
    last_visit: Optional[str] = None
    generated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVisits": self.total_visits,
            "uniqueVisitors": self.unique_visitors,
            "firstVisit": self.first_visit,
            "lastVisit": self.last_visit,
            "generatedAt": self.generated_at
        }


@dataclass
class DeviceStats:
    """Device class, browser, OS and platform distributions."""

    device_types: Dict[str, int] = field(
        default_factory=lambda: {device.value: 0 for device in DeviceType}
    )
    browsers: Dict[str, int] = field(default_factory=dict)
    operating_systems: Dict[str, int] = field(default_factory=dict)
    platforms: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceTypes": self.device_types,
            "browsers": self.browsers,
            "operatingSystems": self.operating_systems,
            "platforms": self.platforms
        }


@dataclass
class LocationStats:
    """Approximate geographic distribution derived from IP heuristics."""

    countries: Dict[str, int] = field(default_factory=dict)
    regions: Dict[str, int] = field(default_factory=dict)
    cities: Dict[str, int] = field(default_factory=dict)
    top_ips: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "countries": self.countries,
            "regions": self.regions,
            "cities": self.cities,
            "topIPs": self.top_ips
        }


@dataclass
class TimeAnalysis:
    """Hour, day, month and weekday buckets."""

    hourly: Dict[str, int] = field(default_factory=dict)
    daily: Dict[str, int] = field(default_factory=dict)
    monthly: Dict[str, int] = field(default_factory=dict)
    weekdays: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hourly": self.hourly,
            "daily": self.daily,
            "monthly": self.monthly,
            "weekdays": self.weekdays
        }


@dataclass
class TrendWindow:
    """Visit volume inside one rolling window."""

    total_visits: int = 0
    unique_visitors: int = 0
    average: float = 0.0
    average_key: str = "averageVisitsPerDay"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVisits": self.total_visits,
            "uniqueVisitors": self.unique_visitors,
            self.average_key: self.average
        }


@dataclass
class TrendStats:
    """The three rolling windows reported to the dashboard."""

    last_24_hours: TrendWindow = field(
        default_factory=lambda: TrendWindow(average_key="averageVisitsPerHour")
    )
    last_7_days: TrendWindow = field(default_factory=TrendWindow)
    last_30_days: TrendWindow = field(default_factory=TrendWindow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last24hours": self.last_24_hours.to_dict(),
            "last7days": self.last_7_days.to_dict(),
            "last30days": self.last_30_days.to_dict()
        }


@dataclass
class StatsReport:
    """Complete analytics report consumed by the stats dashboard."""

    summary: VisitSummary = field(default_factory=VisitSummary)
    devices: DeviceStats = field(default_factory=DeviceStats)
    locations: LocationStats = field(default_factory=LocationStats)
    time_analysis: TimeAnalysis = field(default_factory=TimeAnalysis)
    trends: TrendStats = field(default_factory=TrendStats)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "summary": self.summary.to_dict(),
            "devices": self.devices.to_dict(),
            "locations": self.locations.to_dict(),
            "timeAnalysis": self.time_analysis.to_dict(),
            "trends": self.trends.to_dict()
        }
