"""Metric registry collaborators that receive meter values."""

import logging
from typing import Optional, Protocol

from .models import MeterIdentity

logger = logging.getLogger(__name__)

METRIC_POWER = "power_w"
METRIC_TOTAL = "total_kwh"

METRIC_UNITS = {
    METRIC_POWER: "W",
    METRIC_TOTAL: "kWh",
}


class MetricRegistry(Protocol):
    """Push contract for whatever exposes meter metrics to the outside."""

    def register_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        ...

    def update_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        ...


class MetricHandle:
    """A registered metric bound to one meter."""

    def __init__(self, registry: MetricRegistry, meter: MeterIdentity, metric: str):
        self.registry = registry
        self.meter = meter
        self.metric = metric

    def update(self, value: float):
        self.registry.update_metric(self.meter, self.metric, value)

    def __repr__(self):
        return f"MetricHandle(meter={self.meter.key}, metric={self.metric})"


def bind_metric(
    registry: MetricRegistry,
    meter: MeterIdentity,
    metric: str,
    initial_value: float = 0.0,
) -> Optional[MetricHandle]:
    """Register a metric, returning None if the registry cannot provide it.

    A registry without the capability is not an error: the meter keeps
    polling and caching values, they just are not published for that metric.
    """
    try:
        registry.register_metric(meter, metric, initial_value)
    except Exception as e:
        logger.warning(f"Failed to register {metric} metric on {meter.name}: {e}")
        return None
    return MetricHandle(registry, meter, metric)


class LoggingRegistry:
    """Registry that only logs published values."""

    def register_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        logger.info(f"[{meter.name}] Registered {metric} ({METRIC_UNITS.get(metric, '')}) = {value}")

    def update_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        logger.info(f"[{meter.name}] {metric}: {value} {METRIC_UNITS.get(metric, '')}".rstrip())
