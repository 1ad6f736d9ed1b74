"""Per-meter refresh cycle and polling schedule."""

import asyncio
import logging
from typing import Optional

import aiohttp

from .calculations import compute_daily_total, compute_watts
from .config import DEFAULT_POLL_SECONDS, MIN_POLL_SECONDS
from .models import CachedState, MeterIdentity
from .octopus_client import OctopusClient, OctopusError
from .registry import METRIC_POWER, METRIC_TOTAL, MetricHandle, MetricRegistry, bind_metric
from .state_store import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

# Failures a refresh cycle recovers from; anything else is a bug and propagates
REFRESH_ERRORS = (OctopusError, aiohttp.ClientError, asyncio.TimeoutError)


def effective_interval(configured) -> int:
    """Polling period in seconds: the configured value floored at 60."""
    if isinstance(configured, bool) or not isinstance(configured, (int, float)):
        configured = DEFAULT_POLL_SECONDS
    return max(MIN_POLL_SECONDS, configured)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class MeterPoller:
    """Keeps the power and today-total values of one meter fresh.

    Each cycle runs two independent sub-cycles (power, then total). A
    sub-cycle updates only its own cached value and only on success; a
    failure is logged and leaves the last known good value in place.

    Cycles never overlap: a tick that fires while a refresh is still in
    flight is skipped.
    """

    def __init__(
        self,
        meter: MeterIdentity,
        client: OctopusClient,
        registry: MetricRegistry,
        store: Optional[StateStore] = None,
        poll_seconds: int = DEFAULT_POLL_SECONDS,
    ):
        self.meter = meter
        self.client = client
        self.store = store if store is not None else MemoryStateStore()
        self.interval = effective_interval(poll_seconds)

        self.state: CachedState = self.store.load(meter.key)

        self.power_metric: Optional[MetricHandle] = bind_metric(
            registry, meter, METRIC_POWER, self.state.last_watts
        )
        self.total_metric: Optional[MetricHandle] = bind_metric(
            registry, meter, METRIC_TOTAL, self.state.last_total_kwh
        )

        self._refresh_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def start(self):
        """Refresh now, then every interval. No-op if already running."""
        if self.running:
            return
        logger.info(f"[{self.meter.name}] Polling every {self.interval}s")
        self._task = asyncio.create_task(self._run(), name=f"poll-{self.meter.key}")

    def stop(self):
        """Stop scheduling refreshes. An in-flight refresh is left to finish."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info(f"[{self.meter.name}] Polling stopped")

    async def drain(self):
        """Wait for an in-flight refresh, if any, to complete."""
        if self._inflight is not None and not self._inflight.done():
            await asyncio.gather(self._inflight, return_exceptions=True)

    async def _run(self):
        # Ticks start on a fixed grid from the first refresh, however long each refresh takes
        next_tick = self._now()
        while True:
            await self._tick()
            next_tick += self.interval
            now = self._now()
            # A refresh that ran past one or more ticks skips them
            while next_tick < now:
                next_tick += self.interval
            await self._wait(next_tick - now)

    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    async def _wait(self, seconds: float):
        await asyncio.sleep(seconds)

    async def _tick(self):
        self._inflight = asyncio.ensure_future(self.refresh_now())
        try:
            # Cancelling the timer must not cancel the request underneath it
            await asyncio.shield(self._inflight)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Refresh failed for {self.meter.name}: {_describe(e)}")

    # -------------------------------------------------------------------------
    # Refresh cycle
    # -------------------------------------------------------------------------

    async def refresh_now(self) -> bool:
        """Run one power + total cycle.

        Returns:
            True if both sub-cycles succeeded; False if either failed or the
            cycle was skipped because another one is in progress
        """
        if self._refresh_lock.locked():
            logger.debug(f"[{self.meter.name}] Refresh already in progress, skipping")
            return False

        async with self._refresh_lock:
            power_ok = await self.refresh_power()
            total_ok = await self.refresh_total()
        return power_ok and total_ok

    async def refresh_power(self) -> bool:
        """Fetch the latest record and update the cached power value."""
        try:
            record = await self.client.fetch_latest_record(self.meter)
            watts = compute_watts(record)
        except REFRESH_ERRORS as e:
            logger.warning(f"Failed to update power for {self.meter.name}: {_describe(e)}")
            return False

        self.state = CachedState(last_watts=watts, last_total_kwh=self.state.last_total_kwh)
        self._publish(self.power_metric, self.state.last_watts)
        self._save_state()
        logger.debug(f"{self.meter.name} power updated to {self.state.last_watts:.2f} W")
        return True

    async def refresh_total(self) -> bool:
        """Fetch today's records and update the cached daily total."""
        try:
            page = await self.client.fetch_today_page(self.meter)
            total_kwh = compute_daily_total(page)
        except REFRESH_ERRORS as e:
            logger.warning(f"Failed to update total consumption for {self.meter.name}: {_describe(e)}")
            return False

        self.state = CachedState(last_watts=self.state.last_watts, last_total_kwh=total_kwh)
        self._publish(self.total_metric, self.state.last_total_kwh)
        self._save_state()
        logger.debug(f"{self.meter.name} total updated to {self.state.last_total_kwh:.3f} kWh (today)")
        return True

    def _publish(self, handle: Optional[MetricHandle], value: float):
        if handle is None:
            return
        try:
            handle.update(value)
        except Exception as e:
            logger.error(f"[{self.meter.name}] Error publishing {handle.metric}: {e}")

    def _save_state(self):
        try:
            self.store.save(self.meter.key, self.state)
        except OSError as e:
            logger.error(f"[{self.meter.name}] Error saving cached state: {e}")
