"""Power and energy derivations from consumption records."""

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Iterable, Optional, Union

from .models import ConsumptionPage, ConsumptionRecord
from .octopus_client import DataError

# Octopus settlement period
DEFAULT_INTERVAL_HOURS = 0.5

# Enough digits to quantize any finite float
_ROUNDING_CONTEXT = Context(prec=400)


def is_finite_number(value: Any) -> bool:
    """True for real, finite numbers (bools are not numbers here)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        # ints beyond float range
        return False


def round_half_up(value: float, places: int) -> float:
    """Round with ties away from zero, e.g. 0.125 -> 0.13 at 2 places."""
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP, context=_ROUNDING_CONTEXT)
    return float(rounded)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the API, or None if it is unusable."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def interval_hours(record: ConsumptionRecord) -> float:
    """Length of the record's interval in hours.

    Falls back to the half-hour settlement period when either bound is
    missing or unparsable, or the interval is not positive.
    """
    start_raw, end_raw = record.interval_bounds()
    start = parse_timestamp(start_raw)
    end = parse_timestamp(end_raw)
    if start is None or end is None:
        return DEFAULT_INTERVAL_HOURS

    hours = (end - start).total_seconds() / 3600
    if hours > 0:
        return hours
    return DEFAULT_INTERVAL_HOURS


def compute_watts(record: ConsumptionRecord) -> float:
    """Average power over the record's interval in watts, 2 dp, never negative.

    Raises:
        DataError: consumption is missing, not a finite number, or the
            resulting power overflows
    """
    consumption = record.consumption
    if not is_finite_number(consumption):
        raise DataError("Consumption value missing or invalid")

    watts = float(consumption) * 1000 / interval_hours(record)
    if not math.isfinite(watts):
        raise DataError("Power value out of range")

    watts = round_half_up(watts, 2)
    return watts if watts > 0 else 0.0


def compute_daily_total(
    page: Union[ConsumptionPage, Iterable[ConsumptionRecord]],
) -> float:
    """Sum of valid consumption values in kWh, 3 dp, never negative.

    The caller is responsible for requesting only today's window.
    """
    records = page.results if isinstance(page, ConsumptionPage) else page

    total = 0.0
    for record in records:
        if is_finite_number(record.consumption):
            total += float(record.consumption)

    if not math.isfinite(total):
        raise DataError("Daily total out of range")

    total = round_half_up(total, 3)
    return total if total > 0 else 0.0
