"""Shared fixtures for the air quality tests."""

from datetime import datetime, timezone

import httpx
import pytest

from air_quality_mcp.models import Coordinates, Pollutant, PollutantReading, RawMeasurement, StationMetadata

JAKARTA = Coordinates(latitude=-6.2088, longitude=106.8456)
MONAS = Coordinates(latitude=-6.1754, longitude=106.8272)


def make_measurement(
    location_id=1,
    parameter="pm25",
    value=10.0,
    utc="2024-05-01T10:00:00+00:00",
    latitude=-6.1754,
    longitude=106.8272,
    location="Monas",
):
    """One record as returned by the measurements endpoint"""
    return {
        "locationId": location_id,
        "location": location,
        "parameter": parameter,
        "value": value,
        "date": {"utc": utc, "local": utc},
        "unit": "µg/m³",
        "coordinates": {"latitude": latitude, "longitude": longitude},
        "country": "ID",
        "city": "Jakarta",
        "isMobile": False,
        "isAnalysis": False,
        "entity": "Governmental Organization",
        "sensorType": "reference grade",
    }


def make_raw(station_id, parameter, value, observed_at, coordinates=MONAS, name=None):
    """One aggregator input record"""
    return RawMeasurement(
        station_id=station_id,
        metadata=StationMetadata(name=name or f"Station {station_id}", coordinates=coordinates),
        reading=PollutantReading(
            parameter=Pollutant(parameter),
            value=value,
            unit="µg/m³",
            observed_at=observed_at,
        ),
    )


def payload(results, found=None):
    return {
        "meta": {"name": "openaq-api", "page": 1, "limit": 100, "found": len(results) if found is None else found},
        "results": results,
    }


@pytest.fixture
def jakarta():
    return JAKARTA


@pytest.fixture
def t0():
    return datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


class RecordingTransport:
    """Serves canned responses and records every request"""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def mock_client():
    """Build an httpx.AsyncClient whose requests are answered by ``handler``"""

    def build(handler):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        client.recorder = transport
        return client

    return build
