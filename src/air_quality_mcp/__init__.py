"""Air quality MCP server package."""

__version__ = "0.1.0"

from air_quality_mcp.aqi import category_for, color_for, concentration_to_aqi
from air_quality_mcp.errors import UpstreamError, ValidationError
from air_quality_mcp.geo import distance_km
from air_quality_mcp.models import AQICategory, Coordinates, Pollutant, PollutantReading, Station
from air_quality_mcp.service import AirQualityService, get_air_quality_data

__all__ = [
    "AQICategory",
    "AirQualityService",
    "Coordinates",
    "Pollutant",
    "PollutantReading",
    "Station",
    "UpstreamError",
    "ValidationError",
    "category_for",
    "color_for",
    "concentration_to_aqi",
    "distance_km",
    "get_air_quality_data",
]
