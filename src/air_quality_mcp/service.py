import logging
from math import isnan
from typing import List, Optional, Sequence

from air_quality_mcp.config import config
from air_quality_mcp.errors import UpstreamError, ValidationError
from air_quality_mcp.fallback import FallbackSource
from air_quality_mcp.models import Coordinates, FetchOutcome, Pollutant, Station
from air_quality_mcp.remote import DEFAULT_POLLUTANTS, RemoteStationSource
from air_quality_mcp.retry import with_retry

logger = logging.getLogger("air_quality.service")

MAX_RADIUS_KM = 1000


def validate_query(latitude: float, longitude: float, radius_km: float, max_stations: int = 1) -> Coordinates:
    """Check query arguments and return the query center"""
    if isnan(latitude) or not -90 <= latitude <= 90:
        raise ValidationError("latitude", latitude, "between -90 and 90 degrees")
    if isnan(longitude) or not -180 <= longitude <= 180:
        raise ValidationError("longitude", longitude, "between -180 and 180 degrees")
    if isnan(radius_km) or not 0 < radius_km <= MAX_RADIUS_KM:
        raise ValidationError("radius_km", radius_km, f"greater than 0 and at most {MAX_RADIUS_KM} kilometers")
    if max_stations < 1:
        raise ValidationError("max_stations", max_stations, "at least 1")
    return Coordinates(latitude=latitude, longitude=longitude)


def _log_summary(stations: Sequence[Station]) -> None:
    for index, station in enumerate(stations, start=1):
        aqi_status = (
            f"AQI: {station.aqi} ({station.aqi_category.label})"
            if station.aqi is not None and station.aqi_category is not None
            else "AQI: Not available"
        )
        logger.info(f"{index}. {station.name} - {aqi_status} - {station.distance_km:.1f}km away")


class AirQualityService:
    """Looks up nearby stations, substituting synthetic data when the API fails"""

    def __init__(
        self,
        remote: Optional[RemoteStationSource] = None,
        fallback: Optional[FallbackSource] = None,
        pollutants: Sequence[Pollutant] = DEFAULT_POLLUTANTS,
        retry_attempts: Optional[int] = None,
    ):
        self.remote = remote or RemoteStationSource()
        self.fallback = fallback or FallbackSource()
        self.pollutants = tuple(pollutants)
        self.retry_attempts = retry_attempts if retry_attempts is not None else config.retry_attempts

    async def fetch(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = config.default_radius_km,
        max_stations: int = config.default_max_stations,
    ) -> FetchOutcome:
        """Validate the query, try the upstream API, and fall back to synthetic stations"""
        center = validate_query(latitude, longitude, radius_km, max_stations)

        logger.info(f"Searching for air quality stations near ({latitude}, {longitude})")
        logger.info(f"Search radius: {radius_km}km, Max stations: {max_stations}")

        error: Optional[str] = None
        try:
            stations = await self._fetch_remote(center, radius_km, max_stations)
        except UpstreamError as e:
            logger.warning(f"OpenAQ API unavailable, falling back to synthetic data: {e}")
            error = str(e)
        else:
            if stations:
                logger.info(f"Found {len(stations)} monitoring stations from OpenAQ API")
                _log_summary(stations)
                return FetchOutcome(source="remote", stations=stations)
            logger.warning("OpenAQ API returned no stations, falling back to synthetic data")

        stations = self.fallback.synthesize(center, max_stations)
        _log_summary(stations)
        return FetchOutcome(source="fallback", stations=stations, error=error)

    async def _fetch_remote(self, center: Coordinates, radius_km: float, max_stations: int) -> List[Station]:
        async def attempt() -> List[Station]:
            return await self.remote.fetch_stations_with_measurements(
                center, radius_km, max_stations, pollutants=self.pollutants
            )

        if self.retry_attempts > 1:
            return await with_retry(
                attempt,
                max_attempts=self.retry_attempts,
                base_delay=config.retry_base_delay,
                multiplier=config.retry_multiplier,
            )
        return await attempt()

    async def get_air_quality_data(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = config.default_radius_km,
        max_stations: int = config.default_max_stations,
    ) -> List[Station]:
        """Get nearby monitoring stations with AQI, all real or all synthetic"""
        outcome = await self.fetch(latitude, longitude, radius_km, max_stations)
        return outcome.stations


_default_service: Optional[AirQualityService] = None


def get_service() -> AirQualityService:
    global _default_service
    if _default_service is None:
        _default_service = AirQualityService()
    return _default_service


async def get_air_quality_data(
    latitude: float,
    longitude: float,
    radius_km: float = config.default_radius_km,
    max_stations: int = config.default_max_stations,
) -> List[Station]:
    """
    Get nearby air quality monitoring stations with AQI data

    Args:
        latitude: Latitude in degrees (-90 to 90)
        longitude: Longitude in degrees (-180 to 180)
        radius_km: Search radius in kilometers (0 to 1000)
        max_stations: Maximum number of stations to return
    """
    return await get_service().get_air_quality_data(latitude, longitude, radius_km, max_stations)
