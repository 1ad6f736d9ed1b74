"""Data models for Octopus Energy meters and consumption API responses."""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MeterSide(str, Enum):
    """Direction of energy flow measured by a meter."""

    IMPORT = "import"
    EXPORT = "export"

    @property
    def default_name(self) -> str:
        """Display name used when the configuration does not give one."""
        return "Octopus Import" if self is MeterSide.IMPORT else "Octopus Export"


class MeterIdentity(BaseModel):
    """One physical meter endpoint (MPAN + meter serial)."""

    model_config = ConfigDict(frozen=True)

    mpan: str
    serial: str
    side: MeterSide
    name: str

    @property
    def key(self) -> str:
        """Stable identifier used by registries and state stores."""
        return f"{self.side.value}-{self.mpan}-{self.serial}"

    def __str__(self) -> str:
        return self.name


# =============================================================================
# Consumption API Models
# =============================================================================

class ConsumptionRecord(BaseModel):
    """A single half-hourly reading from the consumption endpoint.

    The API reports the interval as interval_start/interval_end; older
    responses use period_start/period_end instead. Consumption is kept raw
    here and validated by the calculators, since a bad value in one record
    must not reject the whole page.

    Example:
    {
        "consumption": 0.245,
        "interval_start": "2024-03-15T13:30:00Z",
        "interval_end": "2024-03-15T14:00:00Z"
    }
    """

    model_config = ConfigDict(extra="ignore")

    consumption: Any = None  # kWh
    interval_start: Optional[str] = None
    interval_end: Optional[str] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None

    def interval_bounds(self) -> Tuple[Optional[str], Optional[str]]:
        """Start/end timestamps, interval_* taking precedence over period_*."""
        start = self.interval_start if self.interval_start is not None else self.period_start
        end = self.interval_end if self.interval_end is not None else self.period_end
        return start, end

    @classmethod
    def from_api_response(cls, data: dict) -> "ConsumptionRecord":
        """Create from one element of the API's results list."""
        if not isinstance(data, dict):
            raise ValueError(f"consumption record is not an object: {data!r}")
        return cls(
            consumption=data.get("consumption"),
            interval_start=_optional_str(data.get("interval_start")),
            interval_end=_optional_str(data.get("interval_end")),
            period_start=_optional_str(data.get("period_start")),
            period_end=_optional_str(data.get("period_end")),
        )


class ConsumptionPage(BaseModel):
    """One page of consumption records, in the order the API returned them."""

    results: List[ConsumptionRecord] = Field(default_factory=list)
    count: Optional[int] = None
    next: Optional[str] = None
    previous: Optional[str] = None

    def __len__(self) -> int:
        return len(self.results)

    @classmethod
    def from_api_response(cls, data: Any) -> "ConsumptionPage":
        """Create from the JSON envelope. A missing results list is an empty page."""
        if not isinstance(data, dict):
            raise ValueError("response body is not a JSON object")

        raw_results = data.get("results")
        if raw_results is None:
            raw_results = []
        if not isinstance(raw_results, list):
            raise ValueError("'results' is not a list")

        count = data.get("count")
        return cls(
            results=[ConsumptionRecord.from_api_response(item) for item in raw_results],
            count=count if isinstance(count, int) else None,
            next=_optional_str(data.get("next")),
            previous=_optional_str(data.get("previous")),
        )


# =============================================================================
# Cached State
# =============================================================================

class CachedState(BaseModel):
    """Last known good values for one meter."""

    last_watts: float = 0.0
    last_total_kwh: float = 0.0

    @field_validator("last_watts", "last_total_kwh", mode="after")
    @classmethod
    def clamp_non_negative(cls, value: float) -> float:
        # NaN compares false, so it is clamped too
        return value if value > 0 else 0.0


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
