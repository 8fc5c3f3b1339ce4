import math
import random

import httpx
import pytest

from air_quality_mcp.config import config
from air_quality_mcp.errors import UpstreamError, ValidationError
from air_quality_mcp.fallback import FallbackSource
from air_quality_mcp.remote import RemoteStationSource
from air_quality_mcp.service import AirQualityService, validate_query

from conftest import make_measurement, payload


class FakeRemote:
    """Stands in for RemoteStationSource with canned results"""

    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    async def fetch_stations_with_measurements(self, center, radius_km, limit, pollutants=None):
        self.calls.append((center, radius_km, limit))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def service_with(remote, **kwargs):
    return AirQualityService(remote=remote, fallback=FallbackSource(rng=random.Random(1)), **kwargs)


@pytest.mark.asyncio
async def test_upstream_failure_falls_back():
    remote = FakeRemote([UpstreamError("Failed to fetch measurements", status=502)])
    service = service_with(remote)

    stations = await service.get_air_quality_data(-7.5617, 110.8318, 50, 5)

    assert len(remote.calls) == 1
    assert 0 < len(stations) <= 5
    assert all(s.id >= 1000 for s in stations)
    distances = [s.distance_km for s in stations]
    assert distances == sorted(distances)


@pytest.mark.asyncio
async def test_empty_upstream_falls_back():
    service = service_with(FakeRemote([[]]))

    outcome = await service.fetch(-6.2088, 106.8456, 25, 3)

    assert outcome.source == "fallback"
    assert outcome.error is None
    assert len(outcome.stations) == 3


@pytest.mark.asyncio
async def test_fallback_outcome_records_error():
    service = service_with(FakeRemote([UpstreamError("boom", status=500)]))

    outcome = await service.fetch(-6.2088, 106.8456)

    assert outcome.source == "fallback"
    assert "boom" in outcome.error


@pytest.mark.asyncio
async def test_remote_stations_returned(mock_client):
    results = [make_measurement(location_id=7, value=12.0), make_measurement(location_id=8, parameter="pm10", value=54)]
    client = mock_client(lambda request: httpx.Response(200, json=payload(results)))
    service = service_with(RemoteStationSource(base_url="https://openaq.test/v2", client=client))

    outcome = await service.fetch(-6.2088, 106.8456, 25, 10)

    assert outcome.source == "remote"
    assert {s.id for s in outcome.stations} == {7, 8}
    assert all(s.id < 1000 for s in outcome.stations)
    assert client.recorder.requests[0].url.params["radius"] == "25"


@pytest.mark.asyncio
async def test_transport_failure_falls_back(mock_client):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = mock_client(handler)
    service = service_with(RemoteStationSource(base_url="https://openaq.test/v2", client=client))

    outcome = await service.fetch(-6.2088, 106.8456, 25, 4)

    assert outcome.source == "fallback"
    assert len(outcome.stations) == 4


@pytest.mark.asyncio
async def test_invalid_latitude_makes_no_request(mock_client):
    client = mock_client(lambda request: httpx.Response(200, json=payload([])))
    service = service_with(RemoteStationSource(base_url="https://openaq.test/v2", client=client))

    with pytest.raises(ValidationError) as excinfo:
        await service.get_air_quality_data(999, 0)

    assert excinfo.value.argument == "latitude"
    assert client.recorder.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "latitude, longitude, radius_km, argument",
    [
        (-90.1, 0, 25, "latitude"),
        (math.nan, 0, 25, "latitude"),
        (0, 180.5, 25, "longitude"),
        (0, -181, 25, "longitude"),
        (0, 0, 0, "radius_km"),
        (0, 0, -5, "radius_km"),
        (0, 0, 1000.1, "radius_km"),
    ],
)
async def test_validation_errors(latitude, longitude, radius_km, argument):
    remote = FakeRemote([])
    service = service_with(remote)

    with pytest.raises(ValidationError) as excinfo:
        await service.fetch(latitude, longitude, radius_km)

    assert excinfo.value.argument == argument
    assert remote.calls == []


def test_validate_query_accepts_bounds():
    center = validate_query(90, -180, 1000)
    assert center.latitude == 90
    assert center.longitude == -180


def test_validation_error_is_value_error():
    with pytest.raises(ValueError, match="latitude must be between -90 and 90 degrees"):
        validate_query(91, 0, 10)


@pytest.mark.asyncio
async def test_retry_before_fallback(monkeypatch):
    monkeypatch.setattr(config, "retry_base_delay", 0.0)
    remote = FakeRemote([UpstreamError("first"), UpstreamError("second"), []])
    service = service_with(remote, retry_attempts=3)

    outcome = await service.fetch(-6.2088, 106.8456, 25, 2)

    assert len(remote.calls) == 3
    assert outcome.source == "fallback"
    assert outcome.error is None


@pytest.mark.asyncio
async def test_retry_recovers(monkeypatch):
    monkeypatch.setattr(config, "retry_base_delay", 0.0)
    real = FallbackSource(rng=random.Random(2)).synthesize(
        validate_query(-6.2088, 106.8456, 25), 2
    )
    for station in real:
        station.id -= 1000
    remote = FakeRemote([UpstreamError("first"), real])
    service = service_with(remote, retry_attempts=2)

    outcome = await service.fetch(-6.2088, 106.8456, 25, 2)

    assert outcome.source == "remote"
    assert [s.id for s in outcome.stations] == [s.id for s in real]


@pytest.mark.asyncio
async def test_mixed_timezone_payload_returns_stations(mock_client):
    results = [
        make_measurement(location_id=7, value=12.0, utc="2024-05-01T10:00:00+00:00"),
        make_measurement(location_id=7, parameter="o3", value=50, utc="2024-05-01T11:00:00"),
    ]
    client = mock_client(lambda request: httpx.Response(200, json=payload(results)))
    service = service_with(RemoteStationSource(base_url="https://openaq.test/v2", client=client))

    outcome = await service.fetch(-6.2088, 106.8456)

    assert outcome.source == "remote"
    assert outcome.stations[0].aqi == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("max_stations", [0, -1])
async def test_invalid_max_stations_makes_no_request(mock_client, max_stations):
    client = mock_client(lambda request: httpx.Response(200, json=payload([])))
    service = service_with(RemoteStationSource(base_url="https://openaq.test/v2", client=client))

    with pytest.raises(ValidationError) as excinfo:
        await service.fetch(-6.2088, 106.8456, 25, max_stations)

    assert excinfo.value.argument == "max_stations"
    assert client.recorder.requests == []
