"""URL construction for the Octopus Energy consumption endpoint."""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote, urlencode

BASE_URL = "https://api.octopus.energy"
CONSUMPTION_PATH = "/v1/electricity-meter-points/{mpan}/meters/{serial}/consumption/"

DEFAULT_TODAY_PAGE_SIZE = 250


def _consumption_url(mpan: str, serial: str, params: dict) -> str:
    path = CONSUMPTION_PATH.format(
        mpan=quote(mpan.strip(), safe=""),
        serial=quote(serial.strip(), safe=""),
    )
    return f"{BASE_URL}{path}?{urlencode(params)}"


def utc_midnight(now: datetime) -> datetime:
    """Start of the UTC calendar day containing `now`. Naive values are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def format_api_timestamp(value: datetime) -> str:
    """Format a UTC datetime as e.g. 2024-03-15T00:00:00.000Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_latest_url(mpan: str, serial: str) -> str:
    """URL for the single most recent consumption record."""
    return _consumption_url(mpan, serial, {
        "page_size": 1,
        "order_by": "-period",
    })


def build_today_url(
    mpan: str,
    serial: str,
    now: Optional[datetime] = None,
    page_size: int = DEFAULT_TODAY_PAGE_SIZE,
) -> str:
    """URL for all records since UTC midnight, oldest first.

    Args:
        mpan: Meter point administration number
        serial: Meter serial number
        now: Reference time (defaults to the current time)
        page_size: Maximum records to request

    Returns:
        Absolute URL string
    """
    if now is None:
        now = datetime.now(timezone.utc)

    return _consumption_url(mpan, serial, {
        "page_size": page_size,
        "order_by": "period",
        "period_from": format_api_timestamp(utc_midnight(now)),
    })
