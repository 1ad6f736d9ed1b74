"""Shared fixtures for collector tests."""

import json
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from octopus_collector.models import ConsumptionPage, ConsumptionRecord, MeterIdentity, MeterSide
from octopus_collector.octopus_client import OctopusClient


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as a context manager."""

    def __init__(self, status: int = 200, payload: Any = None, invalid_json: bool = False):
        self.status = status
        self._payload = payload
        self._invalid_json = invalid_json

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self._invalid_json:
            raise json.JSONDecodeError("Expecting value", "<html>", 0)
        return self._payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Records GET calls and answers each with the next queued response."""

    def __init__(self, *responses: FakeResponse):
        self.closed = False
        self.calls: List[tuple] = []
        self._responses = list(responses)

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append((url, kwargs))
        return self._responses.pop(0)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def import_meter() -> MeterIdentity:
    return MeterIdentity(
        mpan="1200000000000",
        serial="21L0000000",
        side=MeterSide.IMPORT,
        name="Octopus Import",
    )


@pytest.fixture
def export_meter() -> MeterIdentity:
    return MeterIdentity(
        mpan="1300000000000",
        serial="21L0000000",
        side=MeterSide.EXPORT,
        name="Octopus Export",
    )


@pytest.fixture
def half_hour_record() -> ConsumptionRecord:
    """0.25 kWh over 30 minutes, i.e. 500 W."""
    return ConsumptionRecord(
        consumption=0.25,
        interval_start="2024-03-15T13:30:00Z",
        interval_end="2024-03-15T14:00:00Z",
    )


@pytest.fixture
def today_page() -> ConsumptionPage:
    return ConsumptionPage(results=[
        ConsumptionRecord(consumption=0.2),
        ConsumptionRecord(consumption=0.3),
    ])


@pytest.fixture
def mock_client(half_hour_record: ConsumptionRecord, today_page: ConsumptionPage) -> MagicMock:
    """OctopusClient double whose fetches succeed by default."""
    client = MagicMock(spec=OctopusClient)
    client.fetch_latest_record = AsyncMock(return_value=half_hour_record)
    client.fetch_today_page = AsyncMock(return_value=today_page)
    return client


@pytest.fixture
def mock_registry() -> MagicMock:
    registry = MagicMock()
    registry.register_metric = MagicMock()
    registry.update_metric = MagicMock()
    return registry
