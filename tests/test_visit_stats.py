"""
Tests for user-agent normalization and the visit aggregation passes.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.visit_stats.aggregators import (
    FrequencyMap,
    format_timestamp,
    locate_ip,
    normalize_ip,
    parse_timestamp,
    prepare_visits,
    reduce_devices,
    reduce_locations,
    reduce_time,
    reduce_trends,
    summarize,
)
from app.visit_stats.models import DeviceType, VisitCollection, VisitRecord
from app.visit_stats.user_agent import classify, describe_user_agent, normalize


CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Safari/604.1"
)
GOOGLEBOT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_record(**fields) -> VisitRecord:
    return VisitRecord.model_validate(fields)


class TestClassify:
    """Test the heuristic raw User-Agent classifier."""

    def test_chrome_on_windows(self):
        ua = classify(CHROME_WINDOWS)
        assert ua.browser == "Chrome"
        assert ua.os == "Windows"
        assert ua.platform == "Windows"
        assert ua.device is DeviceType.DESKTOP
        assert ua.is_desktop and not ua.is_mobile

    def test_safari_on_iphone(self):
        ua = classify(SAFARI_IPHONE)
        assert ua.browser == "Safari"
        # "Mac OS X" appears in iPhone strings and wins the OS precedence
        assert ua.os == "macOS"
        assert ua.device is DeviceType.MOBILE
        assert ua.is_mobile

    def test_firefox_on_linux(self):
        ua = classify(FIREFOX_LINUX)
        assert ua.browser == "Firefox"
        assert ua.os == "Linux"
        assert ua.device is DeviceType.DESKTOP

    def test_ipad_is_tablet(self):
        ua = classify(IPAD)
        assert ua.device is DeviceType.TABLET
        assert ua.is_tablet

    def test_android_is_mobile(self):
        ua = classify("Mozilla/5.0 (Linux; Android 13; Pixel 7) Chrome/120.0 Safari/537.36")
        assert ua.os == "Android"
        assert ua.device is DeviceType.MOBILE

    def test_bot_markers_are_case_insensitive(self):
        assert classify(GOOGLEBOT).device is DeviceType.BOT
        assert classify("SomeCRAWLER/1.0").device is DeviceType.BOT
        assert classify("my-Spider").is_bot

    def test_opera_and_edge(self):
        assert classify("Opera/9.80 (Windows NT 6.1)").browser == "Opera"
        assert classify("Mozilla/5.0 Edge/18.0").browser == "Edge"

    def test_empty_string_defaults(self):
        ua = classify("")
        assert ua.browser == "Desconhecido"
        assert ua.os == "Desconhecido"
        assert ua.device is DeviceType.DESKTOP
        assert ua.is_desktop

    def test_none_defaults(self):
        assert classify(None).device is DeviceType.DESKTOP


class TestNormalize:
    """Test resolution of the three stored user-agent shapes."""

    def test_structured_descriptor(self):
        record = make_record(userAgent={"device": "desktop", "browser": "Chrome", "os": "Windows"})
        ua = normalize(record)
        assert ua.browser == "Chrome"
        assert ua.os == "Windows"
        assert ua.platform == "Windows"
        assert ua.device is DeviceType.DESKTOP

    def test_structured_platform_preferred_over_os(self):
        record = make_record(userAgent={"device": "mobile", "os": "iOS", "platform": "iPhone"})
        assert normalize(record).platform == "iPhone"

    def test_structured_defaults(self):
        ua = normalize(make_record(userAgent={}))
        assert ua.browser == "Desconhecido"
        assert ua.os == "Desconhecido"
        assert ua.device is DeviceType.UNKNOWN
        assert not any([ua.is_mobile, ua.is_desktop, ua.is_tablet, ua.is_bot])

    def test_structured_flags_without_device_are_unknown(self):
        record = make_record(userAgent={"browser": "Chrome", "os": "Android",
                                        "isMobile": True, "isDesktop": False, "isBot": False})
        ua = normalize(record)
        assert ua.device is DeviceType.UNKNOWN
        assert ua.browser == "Chrome"
        assert not any([ua.is_mobile, ua.is_desktop, ua.is_tablet, ua.is_bot])

    def test_structured_device_field_wins_over_flags(self):
        record = make_record(userAgent={"device": "desktop", "isBot": True})
        ua = normalize(record)
        assert ua.device is DeviceType.DESKTOP
        assert ua.is_desktop and not ua.is_bot

    def test_structured_unrecognised_device(self):
        record = make_record(userAgent={"device": "smart-tv"})
        assert normalize(record).device is DeviceType.UNKNOWN

    def test_legacy_string(self):
        record = make_record(userAgent=GOOGLEBOT)
        ua = normalize(record)
        assert ua.device is DeviceType.BOT
        assert ua.is_bot

    def test_flat_legacy_fields(self):
        record = make_record(browser="Firefox", os="Linux", device="tablet")
        ua = normalize(record)
        assert ua.browser == "Firefox"
        assert ua.os == "Linux"
        assert ua.platform == "Linux"
        assert ua.device is DeviceType.TABLET
        assert ua.is_tablet

    def test_nothing_at_all(self):
        ua = normalize(make_record())
        assert ua.device is DeviceType.UNKNOWN
        assert ua.browser == "Desconhecido"

    def test_to_dict_shape(self):
        data = classify(CHROME_WINDOWS).to_dict()
        assert data == {
            "browser": "Chrome",
            "os": "Windows",
            "device": "desktop",
            "isMobile": False,
            "isDesktop": True,
            "isTablet": False,
            "isBot": False,
            "platform": "Windows"
        }


class TestDescribeUserAgent:
    """Test the ingestion-time descriptor built with the user-agents library."""

    def test_desktop_browser(self):
        descriptor = describe_user_agent(CHROME_WINDOWS)
        assert descriptor.browser == "Chrome"
        assert descriptor.os == "Windows"
        assert descriptor.device == "desktop"
        assert descriptor.is_desktop is True
        assert descriptor.is_bot is False
        assert descriptor.source == CHROME_WINDOWS

    def test_mobile_browser(self):
        descriptor = describe_user_agent(SAFARI_IPHONE)
        assert descriptor.device == "mobile"
        assert descriptor.is_mobile is True
        assert descriptor.os == "iOS"

    def test_bot(self):
        descriptor = describe_user_agent(GOOGLEBOT)
        assert descriptor.device == "bot"
        assert descriptor.is_bot is True

    def test_round_trips_through_normalize(self):
        record = VisitRecord(timestamp="2024-06-15T11:00:00.000Z", ip="1.2.3.4",
                             user_agent=describe_user_agent(SAFARI_IPHONE))
        reloaded = VisitRecord.model_validate(record.to_dict())
        assert normalize(reloaded).device is DeviceType.MOBILE


class TestFieldNormalization:
    """Test IP, location and timestamp helpers."""

    @pytest.mark.parametrize("raw, expected", [
        ("::ffff:10.0.0.5", "10.0.0.5"),
        ("10.0.0.5", "10.0.0.5"),
        ("::1", "127.0.0.1"),
        ("2001:db8::1", "2001:db8::1"),
        ("", None),
        (None, None),
    ])
    def test_normalize_ip(self, raw, expected):
        assert normalize_ip(raw) == expected

    def test_locate_loopback(self):
        location = locate_ip("::1")
        assert (location.country, location.region, location.city) == ("Brasil", "Desenvolvimento Local", "Local")
        assert locate_ip("localhost").region == "Desenvolvimento Local"

    def test_locate_private_ranges(self):
        for ip in ("192.168.1.10", "::ffff:10.1.2.3", "172.20.0.1"):
            location = locate_ip(ip)
            assert location.country == "Brasil"
            assert location.region == "Rede Local"

    def test_locate_public_is_unresolved(self):
        location = locate_ip("8.8.8.8")
        assert (location.country, location.region, location.city) == ("Desconhecido",) * 3
        assert locate_ip(None).country == "Desconhecido"

    def test_parse_timestamp_with_z(self):
        parsed = parse_timestamp("2024-06-15T10:30:00.123Z")
        assert parsed == datetime(2024, 6, 15, 10, 30, 0, 123000, tzinfo=timezone.utc)

    def test_parse_naive_timestamp_is_utc(self):
        assert parse_timestamp("2024-06-15T10:30:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("bad", [None, "", "yesterday", "2024-13-45"])
    def test_parse_invalid_timestamp(self, bad):
        with pytest.raises(ValueError):
            parse_timestamp(bad)

    def test_format_timestamp(self):
        value = datetime(2024, 6, 15, 7, 30, tzinfo=timezone(timedelta(hours=-3)))
        assert format_timestamp(value) == "2024-06-15T10:30:00.000Z"


class TestFrequencyMap:
    """Test the counting helper shared by the reducers."""

    def test_top_n_sorted_and_truncated(self):
        counts = FrequencyMap()
        for name, n in [("a", 1), ("b", 5), ("c", 3), ("d", 4)]:
            for _ in range(n):
                counts.increment(name)
        assert list(counts.top_n(3).items()) == [("b", 5), ("d", 4), ("c", 3)]

    def test_ties_keep_first_seen_order(self):
        counts = FrequencyMap()
        for name in ["x", "y", "z", "y", "x", "z"]:
            counts.increment(name)
        assert list(counts.top_n(10)) == ["x", "y", "z"]

    def test_by_key(self):
        counts = FrequencyMap()
        for key in ["2024-02", "2023-12", "2024-01"]:
            counts.increment(key)
        assert list(counts.by_key()) == ["2023-12", "2024-01", "2024-02"]


class TestReducers:
    """Test each aggregation pass in isolation."""

    @pytest.fixture
    def visits(self):
        records = [
            make_record(timestamp="2024-06-15T11:30:00.000Z", ip="127.0.0.1",
                        userAgent={"device": "desktop", "browser": "Chrome", "os": "Windows"}),
            make_record(timestamp="2024-06-14T13:00:00.000Z", ip="::ffff:10.0.0.5",
                        userAgent=SAFARI_IPHONE),
            make_record(timestamp="2024-06-10T09:15:00.000Z", ip="10.0.0.5",
                        userAgent=GOOGLEBOT),
            make_record(timestamp="2024-05-20T23:59:00.000Z", ip="8.8.8.8",
                        browser="Firefox", os="Linux", device="desktop"),
        ]
        return prepare_visits(records)

    def test_summarize(self, visits):
        summary = summarize(visits, NOW)
        assert summary.total_visits == 4
        assert summary.unique_visitors == 3
        assert summary.first_visit == "2024-05-20T23:59:00.000Z"
        assert summary.last_visit == "2024-06-15T11:30:00.000Z"
        assert summary.generated_at == "2024-06-15T12:00:00.000Z"

    def test_summarize_empty(self):
        summary = summarize([], NOW)
        assert summary.total_visits == 0
        assert summary.unique_visitors == 0
        assert summary.first_visit is None
        assert summary.last_visit is None

    def test_reduce_devices(self, visits):
        devices = reduce_devices(visits)
        assert devices.device_types == {"mobile": 1, "desktop": 2, "tablet": 0, "bot": 1, "unknown": 0}
        assert devices.browsers["Chrome"] == 1
        assert devices.browsers["Firefox"] == 1
        assert sum(devices.operating_systems.values()) == 4
        assert sum(devices.platforms.values()) == 4

    def test_reduce_devices_empty(self):
        devices = reduce_devices([])
        assert devices.device_types == {"mobile": 0, "desktop": 0, "tablet": 0, "bot": 0, "unknown": 0}
        assert devices.browsers == {}
        assert devices.operating_systems == {}
        assert devices.platforms == {}

    def test_reduce_locations(self, visits):
        locations = reduce_locations(visits)
        assert locations.countries == {"Brasil": 3, "Desconhecido": 1}
        assert locations.regions == {"Rede Local": 2, "Desenvolvimento Local": 1, "Desconhecido": 1}
        assert locations.cities == {"Local": 3, "Desconhecido": 1}
        assert locations.top_ips == {"10.0.0.5": 2, "127.0.0.1": 1, "8.8.8.8": 1}

    def test_reduce_locations_top_ips_limit(self):
        records = [
            make_record(timestamp="2024-06-15T10:00:00Z", ip=f"203.0.113.{i}")
            for i in range(8)
        ]
        locations = reduce_locations(prepare_visits(records), top_ips=5)
        assert len(locations.top_ips) == 5

    def test_reduce_locations_skips_missing_ip_in_top_ips(self):
        visits = prepare_visits([make_record(timestamp="2024-06-15T10:00:00Z")])
        locations = reduce_locations(visits)
        assert locations.top_ips == {}
        assert locations.countries == {"Desconhecido": 1}

    def test_reduce_time(self, visits):
        time_analysis = reduce_time(visits, timezone.utc)
        assert len(time_analysis.hourly) == 24
        assert time_analysis.hourly["11:00"] == 1
        assert time_analysis.hourly["23:00"] == 1
        assert sum(time_analysis.hourly.values()) == 4
        assert list(time_analysis.daily) == ["2024-05-20", "2024-06-10", "2024-06-14", "2024-06-15"]
        assert time_analysis.monthly == {"2024-05": 1, "2024-06": 3}
        # 2024-06-15 Saturday, 06-14 Friday, 06-10 Monday, 05-20 Monday
        assert time_analysis.weekdays == {
            "Domingo": 0, "Segunda": 2, "Terça": 0, "Quarta": 0,
            "Quinta": 0, "Sexta": 1, "Sábado": 1
        }

    def test_reduce_time_uses_zone_for_hours(self):
        visits = prepare_visits([make_record(timestamp="2024-06-15T01:00:00Z")])
        time_analysis = reduce_time(visits, timezone(timedelta(hours=-3)))
        assert time_analysis.hourly["22:00"] == 1
        assert time_analysis.weekdays["Sexta"] == 1
        # day key stays on the UTC calendar date
        assert time_analysis.daily == {"2024-06-15": 1}

    def test_reduce_time_empty_is_dense(self):
        time_analysis = reduce_time([], timezone.utc)
        assert list(time_analysis.hourly) == [f"{h}:00" for h in range(24)]
        assert set(time_analysis.hourly.values()) == {0}
        assert len(time_analysis.weekdays) == 7
        assert time_analysis.daily == {}
        assert time_analysis.monthly == {}

    def test_reduce_trends(self, visits):
        trends = reduce_trends(visits, NOW).to_dict()
        assert trends["last24hours"] == {"totalVisits": 2, "uniqueVisitors": 2, "averageVisitsPerHour": 0.1}
        assert trends["last7days"] == {"totalVisits": 3, "uniqueVisitors": 2, "averageVisitsPerDay": 0.4}
        assert trends["last30days"] == {"totalVisits": 4, "uniqueVisitors": 3, "averageVisitsPerDay": 0.1}

    def test_reduce_trends_window_boundary_inclusive(self):
        start = NOW - timedelta(hours=24)
        visits = prepare_visits([make_record(timestamp=format_timestamp(start), ip="1.1.1.1")])
        assert reduce_trends(visits, NOW).last_24_hours.total_visits == 1


class TestVisitCollection:
    """Test the persisted collection model."""

    def test_parses_stored_shape(self):
        collection = VisitCollection.model_validate({
            "totalVisits": 99,
            "visits": [{"timestamp": "2024-06-15T10:00:00Z", "ip": "::1", "userAgent": "curl/8.0"}]
        })
        assert collection.total_visits == 99
        assert collection.visits[0].user_agent == "curl/8.0"

    def test_to_dict_uses_stored_keys(self):
        collection = VisitCollection(total_visits=1, visits=[
            VisitRecord(timestamp="2024-06-15T10:00:00.000Z", ip="::1")
        ])
        assert collection.to_dict() == {
            "totalVisits": 1,
            "visits": [{"timestamp": "2024-06-15T10:00:00.000Z", "ip": "::1"}]
        }
