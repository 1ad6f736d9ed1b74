"""Tests for the consumption API client."""

import base64
from datetime import datetime, timezone

import aiohttp
import pytest

from octopus_collector.models import MeterIdentity
from octopus_collector.octopus_client import DataError, HttpError, OctopusClient, OctopusError

from .conftest import FakeResponse, FakeSession

RECORD = {
    "consumption": 0.245,
    "interval_start": "2024-03-15T13:30:00Z",
    "interval_end": "2024-03-15T14:00:00Z",
}


def _client(session: FakeSession) -> OctopusClient:
    return OctopusClient("sk_test_key", session=session)


@pytest.mark.asyncio
async def test_fetch_sends_basic_auth_with_empty_password() -> None:
    session = FakeSession(FakeResponse(payload={"results": [RECORD]}))

    await _client(session).fetch("https://api.octopus.energy/x")

    url, kwargs = session.calls[0]
    assert url == "https://api.octopus.energy/x"
    expected = base64.b64encode(b"sk_test_key:").decode()
    assert kwargs["auth"].encode() == f"Basic {expected}"


@pytest.mark.asyncio
async def test_fetch_parses_records_in_order() -> None:
    second = dict(RECORD, consumption=0.1)
    session = FakeSession(FakeResponse(payload={"count": 2, "results": [RECORD, second]}))

    page = await _client(session).fetch("https://api.octopus.energy/x")

    assert [record.consumption for record in page.results] == [0.245, 0.1]
    assert page.count == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 404, 500, 503])
async def test_non_success_status_raises_http_error(status: int) -> None:
    session = FakeSession(FakeResponse(status=status))

    with pytest.raises(HttpError) as exc_info:
        await _client(session).fetch("https://api.octopus.energy/x")

    assert exc_info.value.status == status
    assert str(exc_info.value) == f"HTTP {status}"


@pytest.mark.asyncio
async def test_invalid_json_raises_data_error() -> None:
    session = FakeSession(FakeResponse(invalid_json=True))

    with pytest.raises(DataError):
        await _client(session).fetch("https://api.octopus.energy/x")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[RECORD], "text", {"results": "nope"}, {"results": [42]}])
async def test_unexpected_envelope_raises_data_error(payload) -> None:
    session = FakeSession(FakeResponse(payload=payload))

    with pytest.raises(DataError):
        await _client(session).fetch("https://api.octopus.energy/x")


@pytest.mark.asyncio
async def test_missing_results_is_empty_page_for_today(import_meter: MeterIdentity) -> None:
    session = FakeSession(FakeResponse(payload={"count": 0}))
    now = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)

    page = await _client(session).fetch_today_page(import_meter, now=now)

    assert page.results == []
    url, _ = session.calls[0]
    assert "period_from=2024-03-15T00%3A00%3A00.000Z" in url
    assert "order_by=period" in url


@pytest.mark.asyncio
async def test_missing_results_is_error_for_latest(import_meter: MeterIdentity) -> None:
    session = FakeSession(FakeResponse(payload={"results": []}))

    with pytest.raises(DataError, match="No consumption records"):
        await _client(session).fetch_latest_record(import_meter)


@pytest.mark.asyncio
async def test_fetch_latest_record_returns_first(import_meter: MeterIdentity) -> None:
    session = FakeSession(FakeResponse(payload={"results": [RECORD]}))

    record = await _client(session).fetch_latest_record(import_meter)

    assert record.consumption == 0.245
    assert record.interval_bounds() == ("2024-03-15T13:30:00Z", "2024-03-15T14:00:00Z")
    url, _ = session.calls[0]
    assert "page_size=1" in url and "order_by=-period" in url


@pytest.mark.asyncio
async def test_close_closes_session() -> None:
    session = FakeSession()
    await _client(session).close()
    assert session.closed


def test_errors_share_a_base_class() -> None:
    assert issubclass(HttpError, OctopusError)
    assert issubclass(DataError, OctopusError)
    assert not issubclass(OctopusError, aiohttp.ClientError)
