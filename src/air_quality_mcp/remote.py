import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from air_quality_mcp.aggregator import StationAggregator
from air_quality_mcp.config import config
from air_quality_mcp.errors import UpstreamError
from air_quality_mcp.geo import distance_km
from air_quality_mcp.models import (
    ApiStatus,
    Coordinates,
    Pollutant,
    PollutantReading,
    RawMeasurement,
    Station,
    StationMetadata,
)

logger = logging.getLogger("air_quality.remote")

DEFAULT_POLLUTANTS = (
    Pollutant.PM25,
    Pollutant.PM10,
    Pollutant.O3,
    Pollutant.NO2,
    Pollutant.SO2,
    Pollutant.CO,
)


class RemoteStationSource:
    """Fetches monitoring stations and measurements from the OpenAQ API"""

    # Several pollutants per station share the measurement limit
    OVERFETCH_FACTOR = 3
    STATION_MEASUREMENT_LIMIT = 20

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        aggregator: Optional[StationAggregator] = None,
    ):
        self.base_url = (base_url or config.openaq_base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else config.openaq_api_key
        self._client = client
        self.timeout = timeout if timeout is not None else config.request_timeout
        self.aggregator = aggregator or StationAggregator()

        if not self._api_key:
            logger.info("No OpenAQ API key configured, requests may be rate limited")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
        return headers

    async def _get(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        """GET an endpoint and return its JSON body, raising UpstreamError on any failure"""
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"Requesting {url} with parameters: {params}")

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=self._headers())
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.error(f"Request to {endpoint} failed: {e!r}")
            logger.error(f"Request URL: {url}")
            raise UpstreamError(f"Error fetching {endpoint}: {e}") from e

        if not response.is_success:
            logger.error(f"{endpoint} returned HTTP {response.status_code}")
            raise UpstreamError(f"Failed to fetch {endpoint}: {response.reason_phrase}", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {endpoint}: {e}", response.status_code) from e

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise UpstreamError(f"Malformed {endpoint} payload: missing 'results'", response.status_code)

        meta = data.get("meta") or {}
        logger.debug(f"{endpoint}: {len(data['results'])} results (found: {meta.get('found', 'unknown')})")
        return data

    async def fetch_stations(
        self,
        center: Coordinates,
        radius_km: float,
        limit: int,
        sort: str = "asc",
        order_by: str = "lastUpdated",
    ) -> List[Station]:
        """Fetch monitoring stations near a point, without measurements"""
        params = {
            "coordinates": f"{center.latitude},{center.longitude}",
            "radius": str(radius_km),
            "limit": str(limit),
            "sort": sort,
            "order_by": order_by,
        }

        logger.info(f"Fetching stations within {radius_km}km of {center.latitude},{center.longitude}")
        data = await self._get("locations", params)

        try:
            stations = [self._parse_location(record) for record in data["results"]]
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed location record: {e}") from e

        for station in stations:
            station.distance_km = round(distance_km(center, station.coordinates), 2)

        return stations[:limit]

    async def fetch_stations_with_measurements(
        self,
        center: Coordinates,
        radius_km: float,
        limit: int,
        pollutants: Optional[Iterable[Pollutant]] = None,
    ) -> List[Station]:
        """Fetch the latest measurements near a point and group them into stations"""
        codes = [Pollutant(p).value for p in (pollutants or DEFAULT_POLLUTANTS)]
        params = {
            "coordinates": f"{center.latitude},{center.longitude}",
            "radius": str(radius_km),
            "limit": str(limit * self.OVERFETCH_FACTOR),
            "sort": "desc",
            "order_by": "datetime",
            "parameter": ",".join(codes),
        }

        logger.info(f"Fetching measurements within {radius_km}km of {center.latitude},{center.longitude}")
        data = await self._get("measurements", params)

        records = self._parse_measurements(data["results"])
        return self._aggregate(records, center, limit)

    async def fetch_station_measurements(
        self,
        station_id: int,
        pollutants: Optional[Iterable[Pollutant]] = None,
        limit: Optional[int] = None,
    ) -> Optional[Station]:
        """Fetch the latest measurements for one station, or None if it has none"""
        params = {
            "location_id": str(station_id),
            "limit": str(limit or self.STATION_MEASUREMENT_LIMIT),
            "sort": "desc",
            "order_by": "datetime",
        }
        if pollutants:
            params["parameter"] = ",".join(Pollutant(p).value for p in pollutants)

        logger.info(f"Fetching measurements for station {station_id}")
        data = await self._get("measurements", params)

        records = self._parse_measurements(data["results"])
        if not records:
            return None

        stations = self._aggregate(records, None)
        return stations[0]

    async def check_status(self) -> ApiStatus:
        """Check that the upstream API answers a minimal locations query"""
        try:
            data = await self._get("locations", {"limit": "1", "country": "ID"})
        except UpstreamError as e:
            return ApiStatus(status="error", message=str(e))

        return ApiStatus(
            status="success",
            message="OpenAQ API is accessible",
            result_count=len(data["results"]),
            meta=data.get("meta"),
        )

    def _aggregate(
        self, records: List[RawMeasurement], center: Optional[Coordinates], limit: Optional[int] = None
    ) -> List[Station]:
        try:
            return self.aggregator.aggregate(records, center, limit=limit)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Inconsistent measurement records: {e}") from e

    def _parse_measurements(self, results: List[Dict[str, Any]]) -> List[RawMeasurement]:
        records = []
        try:
            for result in results:
                record = self._parse_measurement(result)
                if record is not None:
                    records.append(record)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed measurement record: {e}") from e

        logger.debug(f"Parsed {len(records)} of {len(results)} measurement records")
        return records

    @staticmethod
    def _parse_measurement(result: Dict[str, Any]) -> Optional[RawMeasurement]:
        """Map one upstream measurement to a raw record, or None if it is unusable"""
        code = str(result["parameter"]).lower()
        try:
            parameter = Pollutant(code)
        except ValueError:
            logger.debug(f"Skipping unsupported parameter '{code}'")
            return None

        value = float(result["value"])
        if value < 0:
            logger.debug(f"Skipping negative {code} value {value} at location {result.get('locationId')}")
            return None

        coords = result["coordinates"]
        return RawMeasurement(
            station_id=int(result["locationId"]),
            metadata=StationMetadata(
                name=result["location"],
                coordinates=Coordinates(latitude=coords["latitude"], longitude=coords["longitude"]),
                city=result.get("city") or "",
                country=result.get("country") or "",
                is_mobile=bool(result.get("isMobile", False)),
            ),
            reading=PollutantReading(
                parameter=parameter,
                value=value,
                unit=result["unit"],
                observed_at=result["date"]["utc"],
                source_name=result.get("entity"),
            ),
        )

    @staticmethod
    def _parse_location(result: Dict[str, Any]) -> Station:
        coords = result["coordinates"]
        return Station(
            id=int(result["id"]),
            name=result["name"],
            coordinates=Coordinates(latitude=coords["latitude"], longitude=coords["longitude"]),
            city=result.get("city") or "",
            country=result.get("country") or "",
            country_code=result.get("countryCode") or "",
            is_active=bool(result.get("isActive", True)),
            is_mobile=bool(result.get("isMobile", False)),
            last_updated=result["lastUpdated"],
            first_updated=result["firstUpdated"],
            parameters=[p["name"] for p in result.get("parameters") or []],
        )
