"""
AQI calculation from pollutant concentrations.

Each supported pollutant has a simplified single-table breakpoint scale.
A concentration is placed in the first segment whose upper bound it does not
exceed and interpolated linearly inside that segment. Concentrations above the
last segment are extrapolated along the last segment's slope, so there is no
upper ceiling.

Pollutants without a table use ``concentration / 10`` as a rough approximation.
This is not a real standard and only exists so every reading maps to some value.
"""

from math import floor
from types import MappingProxyType
from typing import Mapping, NamedTuple, Tuple, Union

from air_quality_mcp.models import AQICategory, Pollutant


class Breakpoint(NamedTuple):
    """One concentration segment of an AQI scale"""

    c_low: float
    c_high: float
    aqi_low: int
    aqi_high: int


BreakpointTable = Tuple[Breakpoint, ...]

# Concentrations in µg/m³
PM25_BREAKPOINTS: BreakpointTable = (
    Breakpoint(0.0, 12.0, 0, 50),
    Breakpoint(12.1, 35.4, 51, 100),
    Breakpoint(35.5, 55.4, 101, 150),
    Breakpoint(55.5, 150.4, 151, 200),
    Breakpoint(150.5, 250.4, 201, 300),
    Breakpoint(250.5, 500.4, 301, 500),
)

PM10_BREAKPOINTS: BreakpointTable = (
    Breakpoint(0, 54, 0, 50),
    Breakpoint(55, 154, 51, 100),
    Breakpoint(155, 254, 101, 150),
    Breakpoint(255, 354, 151, 200),
    Breakpoint(355, 424, 201, 300),
    Breakpoint(425, 605, 301, 500),
)

# Single table, not split into 8-hour and 1-hour averages
O3_BREAKPOINTS: BreakpointTable = (
    Breakpoint(0, 108, 0, 50),
    Breakpoint(109, 140, 51, 100),
    Breakpoint(141, 180, 101, 150),
    Breakpoint(181, 240, 151, 200),
    Breakpoint(241, 700, 201, 300),
    Breakpoint(701, 1001, 301, 500),
)

BREAKPOINT_TABLES: Mapping[Pollutant, BreakpointTable] = MappingProxyType(
    {
        Pollutant.PM25: PM25_BREAKPOINTS,
        Pollutant.PM10: PM10_BREAKPOINTS,
        Pollutant.O3: O3_BREAKPOINTS,
    }
)

# Upper AQI bound (inclusive) of each category; the last one is open-ended
AQI_CATEGORIES: Tuple[Tuple[float, AQICategory], ...] = (
    (
        50,
        AQICategory(
            level=1,
            label="Baik",
            color="#00E400",
            description="Kualitas udara baik dan tidak berbahaya",
        ),
    ),
    (
        100,
        AQICategory(
            level=2,
            label="Sedang",
            color="#FFFF00",
            description="Kualitas udara dapat diterima untuk sebagian besar orang",
        ),
    ),
    (
        150,
        AQICategory(
            level=3,
            label="Tidak Sehat untuk Kelompok Sensitif",
            color="#FF7E00",
            description="Anggota kelompok sensitif mungkin mengalami masalah kesehatan",
        ),
    ),
    (
        200,
        AQICategory(
            level=4,
            label="Tidak Sehat",
            color="#FF0000",
            description="Setiap orang mungkin mulai mengalami masalah kesehatan",
        ),
    ),
    (
        300,
        AQICategory(
            level=5,
            label="Sangat Tidak Sehat",
            color="#8F3F97",
            description="Peringatan kesehatan kondisi darurat",
        ),
    ),
    (
        float("inf"),
        AQICategory(
            level=6,
            label="Berbahaya",
            color="#7E0023",
            description="Peringatan kesehatan: setiap orang mungkin mengalami efek kesehatan serius",
        ),
    ),
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)"""
    return int(floor(value + 0.5))


def interpolate(concentration: float, table: BreakpointTable) -> float:
    """Linear interpolation of a concentration over a breakpoint table"""
    segment = table[-1]
    for candidate in table:
        if concentration <= candidate.c_high:
            segment = candidate
            break

    slope = (segment.aqi_high - segment.aqi_low) / (segment.c_high - segment.c_low)
    return segment.aqi_low + slope * (concentration - segment.c_low)


def concentration_to_aqi(
    concentration: float,
    pollutant: Union[Pollutant, str],
    tables: Mapping[Pollutant, BreakpointTable] = BREAKPOINT_TABLES,
) -> int:
    """
    Convert a pollutant concentration to an AQI value

    Args:
        concentration: Concentration in the table's unit (µg/m³), must be >= 0
        pollutant: Pollutant code
        tables: Breakpoint tables to use instead of the built-in ones
    """
    # Enum members hash by name, so match by value to accept plain codes like "pm25"
    table = next((t for p, t in tables.items() if p == pollutant), None)
    if table is None:
        return round_half_up(concentration / 10)

    return round_half_up(interpolate(concentration, table))


def category_for(aqi: float) -> AQICategory:
    """Get the health category for an AQI value"""
    for upper, category in AQI_CATEGORIES:
        if aqi <= upper:
            return category
    return AQI_CATEGORIES[-1][1]


def color_for(aqi: float) -> str:
    """Get the display color for an AQI value"""
    return category_for(aqi).color
