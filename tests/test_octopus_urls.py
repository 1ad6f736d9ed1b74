"""Tests for consumption URL construction."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

from octopus_collector.octopus_urls import (
    build_latest_url,
    build_today_url,
    format_api_timestamp,
    utc_midnight,
)

NOW = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


def _query(url: str) -> dict:
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


def test_latest_url_requests_single_newest_record() -> None:
    url = build_latest_url("1200000000000", "21L0000000")

    parts = urlsplit(url)
    assert parts.scheme == "https"
    assert parts.netloc == "api.octopus.energy"
    assert parts.path == "/v1/electricity-meter-points/1200000000000/meters/21L0000000/consumption/"
    assert _query(url) == {"page_size": "1", "order_by": "-period"}


def test_today_url_starts_at_utc_midnight() -> None:
    url = build_today_url("1200000000000", "21L0000000", now=NOW)

    query = _query(url)
    assert query["period_from"] == "2024-03-15T00:00:00.000Z"
    assert query["order_by"] == "period"
    assert query["page_size"] == "250"


def test_today_url_custom_page_size() -> None:
    url = build_today_url("1200000000000", "21L0000000", now=NOW, page_size=48)
    assert _query(url)["page_size"] == "48"


def test_today_url_converts_non_utc_now() -> None:
    """00:30 at UTC+2 on the 16th is still the 15th in UTC."""
    plus_two = timezone(timedelta(hours=2))
    now = datetime(2024, 3, 16, 0, 30, tzinfo=plus_two)

    assert _query(build_today_url("1", "2", now=now))["period_from"] == "2024-03-15T00:00:00.000Z"


def test_identity_is_trimmed_and_percent_encoded() -> None:
    url = build_latest_url("  12/00 ", "AB?C&D")

    assert "/electricity-meter-points/12%2F00/meters/AB%3FC%26D/consumption/" in url
    assert " " not in url


def test_urls_are_deterministic() -> None:
    assert build_latest_url("1", "2") == build_latest_url("1", "2")
    assert build_today_url("1", "2", now=NOW) == build_today_url("1", "2", now=NOW)


def test_naive_now_is_treated_as_utc() -> None:
    assert utc_midnight(datetime(2024, 3, 15, 23, 59)) == datetime(2024, 3, 15, tzinfo=timezone.utc)


def test_format_api_timestamp_keeps_milliseconds() -> None:
    value = datetime(2024, 1, 2, 3, 4, 5, 678900, tzinfo=timezone.utc)
    assert format_api_timestamp(value) == "2024-01-02T03:04:05.678Z"
