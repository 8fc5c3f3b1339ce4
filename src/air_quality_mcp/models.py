from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Treat timestamps without an offset as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Coordinates(BaseModel):
    """Geographic coordinates"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Pollutant(str, Enum):
    """Pollutant codes as reported by the upstream API"""

    PM25 = "pm25"
    PM10 = "pm10"
    O3 = "o3"
    NO2 = "no2"
    SO2 = "so2"
    CO = "co"
    PM1 = "pm1"
    BC = "bc"  # Black carbon
    NO = "no"
    NOX = "nox"


class PollutantReading(BaseModel):
    """One concentration sample for one pollutant at one station"""

    model_config = ConfigDict(frozen=True)

    parameter: Pollutant
    value: float = Field(..., ge=0)
    unit: str
    observed_at: datetime
    source_name: Optional[str] = None

    @field_validator("observed_at")
    @classmethod
    def observed_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AQICategory(BaseModel):
    """Health category for an AQI value"""

    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1, le=6)
    label: str
    color: str
    description: str


class StationMetadata(BaseModel):
    """Station attributes carried by every raw measurement record"""

    name: str
    coordinates: Coordinates
    city: str = ""
    country: str = ""
    country_code: str = ""
    is_mobile: bool = False


class RawMeasurement(BaseModel):
    """A single measurement record before it is grouped into a station"""

    station_id: int
    metadata: StationMetadata
    reading: PollutantReading


class Station(BaseModel):
    """Air quality monitoring station"""

    id: int
    name: str
    coordinates: Coordinates
    city: str = ""
    country: str = ""
    country_code: str = ""
    is_active: bool = True
    is_mobile: bool = False
    last_updated: datetime
    first_updated: datetime
    parameters: List[str] = Field(default_factory=list)
    readings: List[PollutantReading] = Field(default_factory=list)
    aqi: Optional[int] = None
    aqi_category: Optional[AQICategory] = None
    distance_km: Optional[float] = Field(default=None, ge=0)

    @field_validator("last_updated", "first_updated")
    @classmethod
    def timestamps_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_synthetic(self) -> bool:
        return self.id >= 1000


class FetchOutcome(BaseModel):
    """Result of one lookup, tagged with where the stations came from"""

    source: Literal["remote", "fallback"]
    stations: List[Station]
    error: Optional[str] = None


class ApiStatus(BaseModel):
    """Upstream API connectivity check result"""

    status: Literal["success", "error"]
    message: str
    result_count: int = 0
    meta: Optional[Dict[str, Any]] = None


class AQIHistoryPoint(BaseModel):
    """Hourly AQI value for trend charts"""

    observed_at: datetime
    aqi: int
    category: AQICategory
