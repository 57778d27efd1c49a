"""
User-agent normalization for visit records.

Stored visits carry user-agent data in one of three shapes: a structured
descriptor written at ingestion time, a raw header string written by older
versions of the site, or nothing at all (very old records keep flat
``browser``/``os``/``device`` fields instead). Everything is resolved here into
a single ``NormalizedUserAgent``.
"""

from typing import Optional

from user_agents import parse as parse_ua

from .models import (
    UNKNOWN_LABEL,
    DeviceType,
    NormalizedUserAgent,
    UserAgentDescriptor,
    VisitRecord,
)

BOT_MARKERS = ("bot", "crawler", "spider")


def _classify_browser(ua: str) -> str:
    if "Chrome" in ua and "Edge" not in ua:
        return "Chrome"
    if "Firefox" in ua:
        return "Firefox"
    if "Safari" in ua and "Chrome" not in ua:
        return "Safari"
    if "Edge" in ua:
        return "Edge"
    if "Opera" in ua:
        return "Opera"
    return UNKNOWN_LABEL


def _classify_os(ua: str) -> str:
    if "Windows NT" in ua:
        return "Windows"
    if "Mac OS X" in ua or "Macintosh" in ua:
        return "macOS"
    if "Linux" in ua and "Android" not in ua:
        return "Linux"
    if "Android" in ua:
        return "Android"
    if "iPhone" in ua or "iPad" in ua:
        return "iOS"
    return UNKNOWN_LABEL


def _classify_device(ua: str) -> DeviceType:
    lowered = ua.lower()
    if any(marker in lowered for marker in BOT_MARKERS):
        return DeviceType.BOT
    if "Mobile" in ua or "iPhone" in ua or "Android" in ua:
        return DeviceType.MOBILE
    if "Tablet" in ua or "iPad" in ua:
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def classify(user_agent: Optional[str]) -> NormalizedUserAgent:
    """Classify a raw User-Agent string with substring heuristics.

    Tests are case-sensitive except for the bot markers. Any input, even an empty one,
    yields a device class; ``desktop`` is the fallback.

    Args:
        user_agent: Raw User-Agent header value

    Returns:
        NormalizedUserAgent whose platform mirrors the detected OS
    """
    ua = user_agent or ""
    os_name = _classify_os(ua)
    return NormalizedUserAgent.build(
        browser=_classify_browser(ua),
        os=os_name,
        device=_classify_device(ua),
        platform=os_name
    )


def normalize(record: VisitRecord) -> NormalizedUserAgent:
    """Resolve the user-agent data of a visit record.

    Args:
        record: A stored visit

    Returns:
        NormalizedUserAgent with exactly one device flag set, or none for
        ``unknown``
    """
    descriptor = record.user_agent

    if isinstance(descriptor, UserAgentDescriptor):
        os_name = descriptor.os or UNKNOWN_LABEL
        return NormalizedUserAgent.build(
            browser=descriptor.browser or UNKNOWN_LABEL,
            os=os_name,
            device=DeviceType.from_value(descriptor.device),
            platform=descriptor.platform or os_name
        )

    if isinstance(descriptor, str):
        return classify(descriptor)

    os_name = record.os or UNKNOWN_LABEL
    return NormalizedUserAgent.build(
        browser=record.browser or UNKNOWN_LABEL,
        os=os_name,
        device=DeviceType.from_value(record.device),
        platform=os_name
    )


def describe_user_agent(header: Optional[str]) -> UserAgentDescriptor:
    """Build the structured descriptor stored with a new visit.

    Args:
        header: The request's User-Agent header

    Returns:
        UserAgentDescriptor parsed with the user-agents library
    """
    source = header or ""
    parsed = parse_ua(source)

    if parsed.is_bot:
        device = DeviceType.BOT
    elif parsed.is_tablet:
        device = DeviceType.TABLET
    elif parsed.is_mobile:
        device = DeviceType.MOBILE
    elif parsed.is_pc:
        device = DeviceType.DESKTOP
    else:
        device = DeviceType.UNKNOWN

    platform = parsed.device.family
    if not platform or platform == "Other":
        platform = parsed.os.family

    return UserAgentDescriptor(
        browser=parsed.browser.family,
        version=parsed.browser.version_string,
        os=parsed.os.family,
        platform=platform,
        source=source,
        device=device.value,
        is_mobile=device is DeviceType.MOBILE,
        is_desktop=device is DeviceType.DESKTOP,
        is_tablet=device is DeviceType.TABLET,
        is_bot=device is DeviceType.BOT
    )
