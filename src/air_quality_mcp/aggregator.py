import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from air_quality_mcp.aqi import category_for, concentration_to_aqi
from air_quality_mcp.config import config
from air_quality_mcp.geo import distance_km
from air_quality_mcp.models import Coordinates, Pollutant, PollutantReading, RawMeasurement, Station

logger = logging.getLogger("air_quality.aggregator")

# Pollutants that can represent a station's AQI, in order of preference
AQI_PRIORITY: Tuple[Pollutant, ...] = (Pollutant.PM25, Pollutant.PM10, Pollutant.O3)


def select_representative(readings: Sequence[PollutantReading]) -> Optional[PollutantReading]:
    """Pick the reading that determines a station's AQI.

    PM2.5 wins over PM10, which wins over O3. Other pollutants never set the
    AQI. Readings are expected most-recent-first, so the first match is the
    latest one.
    """
    for pollutant in AQI_PRIORITY:
        for reading in readings:
            if reading.parameter == pollutant:
                return reading
    return None


class StationAggregator:
    """Groups raw measurement records into stations with a derived AQI"""

    def __init__(self, max_readings: Optional[int] = None):
        self.max_readings = max_readings if max_readings is not None else config.max_readings_per_station

    def aggregate(
        self,
        raw_measurements: Iterable[RawMeasurement],
        center: Optional[Coordinates],
        limit: Optional[int] = None,
    ) -> List[Station]:
        """
        Merge measurement records into stations

        Args:
            raw_measurements: Records in upstream order
            center: Query point used for distances, or None to skip them
            limit: Maximum number of stations to return after sorting
        """
        stations: Dict[int, Station] = {}
        seen: Dict[int, Set[Tuple[Pollutant, datetime]]] = {}
        duplicates = 0

        for record in raw_measurements:
            reading = record.reading
            station = stations.get(record.station_id)

            if station is None:
                meta = record.metadata
                station = Station(
                    id=record.station_id,
                    name=meta.name,
                    coordinates=meta.coordinates,
                    city=meta.city,
                    country=meta.country,
                    country_code=meta.country_code,
                    is_mobile=meta.is_mobile,
                    is_active=True,
                    last_updated=reading.observed_at,
                    first_updated=reading.observed_at,
                )
                stations[record.station_id] = station
                seen[record.station_id] = set()

            key = (reading.parameter, reading.observed_at)
            if key in seen[record.station_id]:
                duplicates += 1
                continue
            seen[record.station_id].add(key)

            station.readings.append(reading)
            if reading.parameter.value not in station.parameters:
                station.parameters.append(reading.parameter.value)
            if reading.observed_at > station.last_updated:
                station.last_updated = reading.observed_at
            if reading.observed_at < station.first_updated:
                station.first_updated = reading.observed_at

        if duplicates:
            logger.debug(f"Dropped {duplicates} duplicate measurement records")

        result = [self._finalize(station, center) for station in stations.values()]

        if center is not None:
            # sorted() is stable, so ties keep discovery order
            result = sorted(result, key=lambda s: s.distance_km)

        if limit is not None:
            result = result[: max(0, limit)]

        logger.debug(f"Aggregated {len(stations)} stations, returning {len(result)}")
        return result

    def _finalize(self, station: Station, center: Optional[Coordinates]) -> Station:
        """Order and cap readings, then attach AQI and distance"""
        station.readings.sort(key=lambda r: r.observed_at, reverse=True)
        del station.readings[self.max_readings :]

        reading = select_representative(station.readings)
        if reading is not None:
            station.aqi = concentration_to_aqi(reading.value, reading.parameter)
            station.aqi_category = category_for(station.aqi)

        if center is not None:
            station.distance_km = round(distance_km(center, station.coordinates), 2)

        return station
