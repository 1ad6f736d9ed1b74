"""InfluxDB writer for storing meter metrics."""

import logging
from datetime import datetime, timezone

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from .config import Settings
from .models import MeterIdentity
from .registry import METRIC_POWER, METRIC_TOTAL

logger = logging.getLogger(__name__)

MEASUREMENT = "octopus_meter"


class InfluxWriter:
    """Metric registry that writes every published value to InfluxDB."""

    KNOWN_METRICS = (METRIC_POWER, METRIC_TOTAL)

    def __init__(self, settings: Settings):
        self.client = InfluxDBClient(
            url=settings.influxdb_url,
            token=settings.influxdb_token,
            org=settings.influxdb_org
        )
        self.write_api = self.client.write_api(write_options=SYNCHRONOUS)
        self.bucket = settings.influxdb_bucket
        self.org = settings.influxdb_org

    def close(self):
        """Close the InfluxDB client."""
        self.write_api.close()
        self.client.close()

    def _now(self) -> datetime:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc)

    def register_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        """Accept only metrics this writer has a field for."""
        if metric not in self.KNOWN_METRICS:
            raise ValueError(f"Unsupported metric: {metric}")
        logger.debug(f"[{meter.name}] Registered {metric} for InfluxDB")

    def update_metric(self, meter: MeterIdentity, metric: str, value: float) -> None:
        """Write a metric value to InfluxDB."""
        try:
            point = (
                Point(MEASUREMENT)
                .tag("meter", meter.name)
                .tag("side", meter.side.value)
                .tag("mpan", meter.mpan)
                .tag("serial", meter.serial)
                .field(metric, float(value))
                .time(self._now(), WritePrecision.MS)
            )

            self.write_api.write(bucket=self.bucket, org=self.org, record=point)
            logger.debug(f"[{meter.name}] Wrote {metric}={value} to InfluxDB")

        except Exception as e:
            logger.error(f"[{meter.name}] Error writing {metric}: {e}")
