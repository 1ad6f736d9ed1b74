"""Main entry point for the Octopus meter collector service."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, Optional

from .config import ConfigError, Settings, settings
from .influx_writer import InfluxWriter
from .meter import MeterPoller
from .octopus_client import OctopusClient
from .registry import LoggingRegistry, MetricRegistry
from .state_store import JsonFileStateStore, MemoryStateStore, StateStore

logger = logging.getLogger("octopus-collector")


class Collector:
    """Main collector service: one poller per configured meter."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.running = False
        self.client: Optional[OctopusClient] = None
        self.registry: Optional[MetricRegistry] = None
        self.store: Optional[StateStore] = None
        self.pollers: Dict[str, MeterPoller] = {}
        self._stopped = asyncio.Event()

    def _create_registry(self) -> MetricRegistry:
        if self.settings.influxdb_enabled:
            logger.info(f"Publishing to InfluxDB at {self.settings.influxdb_url}")
            return InfluxWriter(self.settings)
        logger.info("Publishing to log only (set INFLUXDB_ENABLED=true for InfluxDB)")
        return LoggingRegistry()

    def _create_store(self) -> StateStore:
        if self.settings.state_cache_path:
            logger.info(f"Cached state file: {self.settings.state_cache_path}")
            return JsonFileStateStore(Path(self.settings.state_cache_path))
        return MemoryStateStore()

    async def start(self) -> bool:
        """Start polling every configured meter.

        Returns:
            False if configuration prevents any meter from starting
        """
        logger.info("=" * 60)
        logger.info("Octopus Energy Meter Collector")
        logger.info("=" * 60)

        try:
            meters = self.settings.meters()
        except ConfigError as e:
            logger.error(f"{e}; collector will not start.")
            return False

        self.client = OctopusClient(
            self.settings.octopus_api_key,
            timeout=self.settings.http_timeout,
            today_page_size=self.settings.today_page_size,
        )
        self.registry = self._create_registry()
        self.store = self._create_store()

        for meter in meters:
            self.pollers[meter.key] = MeterPoller(
                meter,
                self.client,
                self.registry,
                store=self.store,
                poll_seconds=self.settings.poll_seconds,
            )
            logger.info(f"Configured {meter.side.value} meter: {meter.name} (MPAN {meter.mpan}, serial {meter.serial})")

        logger.info("-" * 60)
        logger.info(f"Polling interval: {self.settings.poll_interval}s")
        logger.info("-" * 60)

        self.running = True
        for poller in self.pollers.values():
            poller.start()
        return True

    async def wait_stopped(self):
        """Block until stop() has completed."""
        await self._stopped.wait()

    async def stop(self):
        """Stop the collector service."""
        if not self.running:
            self._stopped.set()
            return

        logger.info("Stopping collector service...")
        self.running = False

        for poller in self.pollers.values():
            poller.stop()
        # Let in-flight refreshes finish before the session goes away
        await asyncio.gather(*(poller.drain() for poller in self.pollers.values()))

        if self.client:
            await self.client.close()

        if isinstance(self.registry, InfluxWriter):
            self.registry.close()

        logger.info("Collector service stopped")
        self._stopped.set()


async def main():
    """Main entry point."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    collector = Collector(settings)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Shutdown signal received")
        asyncio.create_task(collector.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        if await collector.start():
            await collector.wait_stopped()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await collector.stop()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
