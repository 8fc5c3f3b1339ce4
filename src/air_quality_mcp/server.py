import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from air_quality_mcp.aqi import category_for
from air_quality_mcp.config import config
from air_quality_mcp.errors import UpstreamError, ValidationError
from air_quality_mcp.service import get_service

load_dotenv()

logger = logging.getLogger("air_quality")


def setup_logging() -> None:
    """Log to logs/air_quality.log and the console"""
    log_dir = Path(config.log_dir)
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "air_quality.log"

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )


mcp = FastMCP(
    "Air Quality",
    instructions="Nearby air quality monitoring stations with AQI, backed by OpenAQ",
    dependencies=["httpx", "pydantic", "pydantic-settings", "python-dotenv", "tenacity"],
    debug=False,
    log_level="INFO",
    port=config.port,
)


# Tools
@mcp.tool()
async def get_air_quality(
    latitude: float,
    longitude: float,
    radius_km: float = config.default_radius_km,
    max_stations: int = config.default_max_stations,
) -> Union[Dict[str, Any], str]:
    """
    Get air quality monitoring stations near a point, nearest first

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        radius_km: Search radius in kilometers (max 1000)
        max_stations: Maximum number of stations to return
    """
    logger.info(f"Starting air quality request for ({latitude}, {longitude})")

    try:
        outcome = await get_service().fetch(latitude, longitude, radius_km, max_stations)
    except ValidationError as e:
        logger.error(f"Invalid air quality request: {e}")
        return f"Error: {e}"

    return outcome.model_dump(mode="json")


@mcp.tool()
async def get_station(station_id: int) -> Union[Dict[str, Any], str]:
    """
    Get the latest measurements and AQI for one monitoring station

    Args:
        station_id: OpenAQ location id
    """
    try:
        station = await get_service().remote.fetch_station_measurements(station_id)
    except UpstreamError as e:
        logger.error(f"Error getting station {station_id}: {e}")
        return f"Error: Unable to get measurements for station {station_id}. {e}"

    if station is None:
        return f"No measurements found for station {station_id}"
    return station.model_dump(mode="json")


@mcp.tool()
def get_aqi_category(aqi: int) -> Dict[str, Any]:
    """Describe the health category of an AQI value"""
    return category_for(aqi).model_dump()


@mcp.tool()
def get_aqi_trend(current_aqi: int, hours: int = 24) -> List[Dict[str, Any]]:
    """
    Get an illustrative hourly AQI trend around a current value

    Args:
        current_aqi: AQI the trend is centered on
        hours: Number of hourly points
    """
    history = get_service().fallback.synthesize_history(current_aqi, hours)
    return [point.model_dump(mode="json") for point in history]


@mcp.tool()
async def check_api_status() -> Dict[str, Any]:
    """Check whether the OpenAQ API is reachable"""
    status = await get_service().remote.check_status()
    if status.status == "error":
        logger.warning(f"OpenAQ API check failed: {status.message}")
    return status.model_dump()


def main() -> None:
    setup_logging()
    mcp.run()


if __name__ == "__main__":
    main()
