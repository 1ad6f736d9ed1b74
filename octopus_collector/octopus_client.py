"""Octopus Energy consumption API client."""

import logging
from datetime import datetime
from typing import Optional

import aiohttp

from .models import ConsumptionPage, ConsumptionRecord, MeterIdentity
from .octopus_urls import DEFAULT_TODAY_PAGE_SIZE, build_latest_url, build_today_url

logger = logging.getLogger(__name__)


class OctopusError(Exception):
    """Base error for a failed consumption fetch."""
    pass


class HttpError(OctopusError):
    """Upstream API answered with a non-success status."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"HTTP {status}")


class DataError(OctopusError):
    """Response body or a record in it is not usable."""
    pass


class OctopusClient:
    """Async client for the Octopus Energy consumption endpoint.

    Authenticates with HTTP Basic auth, the API key as username and an
    empty password. No retries are made here; the poller's fixed interval
    is the retry policy.
    """

    def __init__(
        self,
        api_key: str,
        timeout: int = 30,
        today_page_size: int = DEFAULT_TODAY_PAGE_SIZE,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize Octopus client.

        Args:
            api_key: Octopus API key (sk_live_...)
            timeout: Request timeout in seconds
            today_page_size: Page size used for today's records
            session: Optional pre-built session (auth is still sent per request)
        """
        self.auth = aiohttp.BasicAuth(api_key, "")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.today_page_size = today_page_size
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def fetch(self, url: str) -> ConsumptionPage:
        """GET one consumption page.

        Raises:
            HttpError: status outside the 2xx range
            DataError: body is not the expected JSON envelope
        """
        session = await self._get_session()
        async with session.get(url, auth=self.auth) as response:
            if not 200 <= response.status < 300:
                logger.debug(f"Consumption request failed ({response.status}): {url}")
                raise HttpError(response.status)
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise DataError(f"Invalid JSON in response: {e}") from e

        try:
            page = ConsumptionPage.from_api_response(data)
        except (ValueError, TypeError) as e:
            raise DataError(f"Unexpected response format: {e}") from e

        logger.debug(f"Fetched {len(page)} consumption records from {url}")
        return page

    async def fetch_latest_record(self, meter: MeterIdentity) -> ConsumptionRecord:
        """Fetch the most recent consumption record for a meter."""
        page = await self.fetch(build_latest_url(meter.mpan, meter.serial))
        if not page.results:
            raise DataError("No consumption records returned")
        return page.results[0]

    async def fetch_today_page(
        self,
        meter: MeterIdentity,
        now: Optional[datetime] = None,
    ) -> ConsumptionPage:
        """Fetch all of today's (UTC) records for a meter. An empty page is valid."""
        url = build_today_url(meter.mpan, meter.serial, now=now, page_size=self.today_page_size)
        return await self.fetch(url)
