"""
Synthetic station data for when the upstream API is unavailable.

Stations come from a fixed catalogue of Jakarta-area locations. Each one gets a
baseline AQI from a fixed list, PM2.5/PM10/O3 concentrations derived from that
baseline with a little random jitter, and then goes through the same
aggregation and AQI derivation as real measurements. Synthetic station ids
start at 1000.
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from air_quality_mcp.aggregator import StationAggregator
from air_quality_mcp.aqi import category_for, round_half_up
from air_quality_mcp.models import (
    AQIHistoryPoint,
    Coordinates,
    Pollutant,
    PollutantReading,
    RawMeasurement,
    Station,
    StationMetadata,
)

logger = logging.getLogger("air_quality.fallback")

SYNTHETIC_ID_OFFSET = 1000
SOURCE_NAME = "Mock Data"
UNIT = "µg/m³"


class CatalogueEntry(NamedTuple):
    name: str
    latitude: float
    longitude: float


JAKARTA_CATALOGUE: Tuple[CatalogueEntry, ...] = (
    CatalogueEntry("Monas Jakarta Pusat", -6.1754, 106.8272),
    CatalogueEntry("Balai Kota DKI Jakarta", -6.1612, 106.8246),
    CatalogueEntry("UI Depok", -6.3621, 106.8270),
    CatalogueEntry("RSUPN Cipto Mangunkusumo", -6.1867, 106.8312),
    CatalogueEntry("Grand Indonesia", -6.1944, 106.8231),
    CatalogueEntry("Taman Mini Indonesia", -6.3025, 106.8951),
    CatalogueEntry("Mall Taman Anggrek", -6.1785, 106.7925),
    CatalogueEntry("Bandara Soekarno-Hatta", -6.1275, 106.6537),
)

# Mostly moderate to unhealthy, as is typical for Indonesian cities
BASELINE_AQI: Tuple[int, ...] = (45, 65, 85, 110, 125, 95, 75, 135)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FallbackSource:
    """Generates plausible stations around the Jakarta catalogue"""

    def __init__(
        self,
        catalogue: Sequence[CatalogueEntry] = JAKARTA_CATALOGUE,
        baseline_aqi: Sequence[int] = BASELINE_AQI,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
        aggregator: Optional[StationAggregator] = None,
    ):
        self.catalogue = tuple(catalogue)
        self.baseline_aqi = tuple(baseline_aqi)
        self.rng = rng or random.Random()
        self.clock = clock
        self.aggregator = aggregator or StationAggregator()

    def synthesize(self, center: Coordinates, count: int) -> List[Station]:
        """Generate up to ``count`` stations sorted by distance from ``center``"""
        now = self.clock()
        records: List[RawMeasurement] = []

        for index, entry in enumerate(self.catalogue[: max(0, count)]):
            metadata = StationMetadata(
                name=entry.name,
                coordinates=Coordinates(latitude=entry.latitude, longitude=entry.longitude),
                city="Jakarta",
                country="Indonesia",
                country_code="ID",
            )
            for parameter, value in self._concentrations(self._baseline(index)):
                records.append(
                    RawMeasurement(
                        station_id=SYNTHETIC_ID_OFFSET + index,
                        metadata=metadata,
                        reading=PollutantReading(
                            parameter=parameter,
                            value=value,
                            unit=UNIT,
                            observed_at=now,
                            source_name=SOURCE_NAME,
                        ),
                    )
                )

        stations = self.aggregator.aggregate(records, center)
        for station in stations:
            station.first_updated = now - timedelta(days=365)

        logger.info(f"Generated {len(stations)} synthetic stations")
        return stations

    def _baseline(self, index: int) -> int:
        if index < len(self.baseline_aqi):
            return self.baseline_aqi[index]
        return self.rng.randrange(30, 130)

    def _concentrations(self, aqi: int) -> List[Tuple[Pollutant, float]]:
        pm25 = max(5.0, aqi * 0.4 + self.rng.random() * 10)
        pm10 = max(10.0, pm25 * 1.5 + self.rng.random() * 15)
        o3 = max(20.0, aqi * 0.6 + self.rng.random() * 20)
        return [
            (Pollutant.PM25, round(pm25, 1)),
            (Pollutant.PM10, round(pm10, 1)),
            (Pollutant.O3, round(o3, 1)),
        ]

    def synthesize_history(self, current_aqi: int, hours: int = 24) -> List[AQIHistoryPoint]:
        """Generate an hourly AQI trend ending at the current hour, oldest first"""
        now = self.clock()
        points = []

        for i in range(hours - 1, -1, -1):
            variation = (self.rng.random() - 0.5) * 40
            aqi = max(0, round_half_up(current_aqi + variation))

            # Traffic-heavy hours
            if i > 12:
                aqi = round_half_up(aqi * 1.1)
            elif i < 6:
                aqi = round_half_up(aqi * 1.15)

            aqi = min(500, max(0, aqi))
            points.append(
                AQIHistoryPoint(
                    observed_at=now - timedelta(hours=i),
                    aqi=aqi,
                    category=category_for(aqi),
                )
            )

        return points
