"""
Unit conversion for distances and angles.

Projection kernels work in a native unit: degrees for geographic kernels and
meters for projected ones. Everything else (declared output units, tie point
and pixel scale units found in persisted state, snapping grid spacing) is
converted through this module.

Supported units:
    - Linear: meters, millimeters, kilometers, feet, US survey feet, miles,
      nautical miles
    - Angular: degrees, minutes (of arc), seconds (of arc), radians
    - UNKNOWN: pass-through, the value is assumed to be in the native unit

Converting between a linear and an angular unit needs a meters-per-degree
factor, which depends on where on the ellipsoid the conversion happens. The
caller supplies it (usually computed at the projection origin); the default is
the WGS84 meridional degree at the equator.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from mapproj.types import Meters

logger = logging.getLogger(__name__)

# WGS84 defining constants
_WGS84_A = 6378137.0
_WGS84_F = 1.0 / 298.257223563
_WGS84_E2 = _WGS84_F * (2.0 - _WGS84_F)

# Length of one degree of latitude at the equator on WGS84 (meridional radius of curvature)
DEFAULT_METERS_PER_DEGREE: Meters = Meters(math.pi / 180.0 * _WGS84_A * (1.0 - _WGS84_E2))

US_SURVEY_FOOT_M = 1200.0 / 3937.0
INTERNATIONAL_FOOT_M = 0.3048


class UnitType(Enum):
    """Units understood by the engine. Values are the persisted unit tags."""

    UNKNOWN = "unknown"
    METERS = "meters"
    MILLIMETERS = "millimeters"
    KILOMETERS = "kilometers"
    FEET = "feet"
    US_SURVEY_FEET = "us_survey_feet"
    MILES = "miles"
    NAUTICAL_MILES = "nautical_miles"
    DEGREES = "degrees"
    MINUTES = "minutes"
    SECONDS = "seconds"
    RADIANS = "radians"


# Size of one unit expressed in meters
_METERS_PER_UNIT = {
    UnitType.METERS: 1.0,
    UnitType.MILLIMETERS: 0.001,
    UnitType.KILOMETERS: 1000.0,
    UnitType.FEET: INTERNATIONAL_FOOT_M,
    UnitType.US_SURVEY_FEET: US_SURVEY_FOOT_M,
    UnitType.MILES: 1609.344,
    UnitType.NAUTICAL_MILES: 1852.0,
}

# Size of one unit expressed in degrees
_DEGREES_PER_UNIT = {
    UnitType.DEGREES: 1.0,
    UnitType.MINUTES: 1.0 / 60.0,
    UnitType.SECONDS: 1.0 / 3600.0,
    UnitType.RADIANS: 180.0 / math.pi,
}

# Alternate spellings accepted when parsing unit tags
_ALIASES = {
    "m": UnitType.METERS,
    "meter": UnitType.METERS,
    "metre": UnitType.METERS,
    "metres": UnitType.METERS,
    "mm": UnitType.MILLIMETERS,
    "km": UnitType.KILOMETERS,
    "ft": UnitType.FEET,
    "foot": UnitType.FEET,
    "us_ft": UnitType.US_SURVEY_FEET,
    "us-ft": UnitType.US_SURVEY_FEET,
    "us_survey_foot": UnitType.US_SURVEY_FEET,
    "mi": UnitType.MILES,
    "nmi": UnitType.NAUTICAL_MILES,
    "deg": UnitType.DEGREES,
    "degree": UnitType.DEGREES,
    "decimal_degrees": UnitType.DEGREES,
    "arc_minutes": UnitType.MINUTES,
    "arc_seconds": UnitType.SECONDS,
    "rad": UnitType.RADIANS,
    "radian": UnitType.RADIANS,
}


def is_linear(unit: UnitType) -> bool:
    """Return True if unit measures distance."""
    return unit in _METERS_PER_UNIT


def is_angular(unit: UnitType) -> bool:
    """Return True if unit measures an angle."""
    return unit in _DEGREES_PER_UNIT


def parse_unit(text: str | None) -> UnitType:
    """
    Parse a persisted unit tag into a UnitType.

    Unrecognized tags are logged and mapped to UnitType.UNKNOWN so that the
    associated value passes through unconverted.

    Args:
        text: Unit tag such as "meters", "us_survey_feet" or "degrees"

    Returns:
        Matching UnitType, UNKNOWN when text is empty or unrecognized
    """
    if text is None:
        return UnitType.UNKNOWN

    key = str(text).strip().lower().replace(" ", "_")
    if not key:
        return UnitType.UNKNOWN

    try:
        return UnitType(key)
    except ValueError:
        pass

    if key in _ALIASES:
        return _ALIASES[key]

    logger.warning(f"Unrecognized unit tag '{text}', treating value as native units")
    return UnitType.UNKNOWN


class UnitConverter:
    """
    Converts scalar distances and angles between units.

    Conversions inside one family (linear or angular) are exact scale factors.
    Conversions across families go through degrees <-> meters using the
    meters_per_degree factor given at construction.

    Usage:
        >>> converter = UnitConverter()
        >>> round(converter.convert(100.0, UnitType.METERS, UnitType.FEET), 3)
        328.084
        >>> converter.convert(1.0, UnitType.DEGREES, UnitType.MINUTES)
        60.0
    """

    def __init__(self, meters_per_degree: float = DEFAULT_METERS_PER_DEGREE):
        """
        Initialize the converter.

        Args:
            meters_per_degree: Ground length of one degree at the reference point,
                used only when converting between linear and angular units.
        """
        self.meters_per_degree = meters_per_degree

    def to_meters(self, value: float, unit: UnitType) -> float:
        """Convert value expressed in unit to meters."""
        return self.convert(value, unit, UnitType.METERS)

    def to_degrees(self, value: float, unit: UnitType) -> float:
        """Convert value expressed in unit to decimal degrees."""
        return self.convert(value, unit, UnitType.DEGREES)

    def convert(self, value: float, from_unit: UnitType, to_unit: UnitType) -> float:
        """
        Convert value from one unit to another.

        Args:
            value: Value expressed in from_unit
            from_unit: Unit of the input value
            to_unit: Desired output unit

        Returns:
            Converted value. Unchanged when either unit is UNKNOWN or both are
            equal. NaN input yields NaN.
        """
        if from_unit == to_unit:
            return value
        if from_unit is UnitType.UNKNOWN or to_unit is UnitType.UNKNOWN:
            return value

        if is_linear(from_unit):
            meters = value * _METERS_PER_UNIT[from_unit]
            if is_linear(to_unit):
                return meters / _METERS_PER_UNIT[to_unit]
            degrees = meters / self.meters_per_degree
            return degrees / _DEGREES_PER_UNIT[to_unit]

        degrees = value * _DEGREES_PER_UNIT[from_unit]
        if is_angular(to_unit):
            return degrees / _DEGREES_PER_UNIT[to_unit]
        meters = degrees * self.meters_per_degree
        return meters / _METERS_PER_UNIT[to_unit]


def convert(value: float, from_unit: UnitType, to_unit: UnitType,
            meters_per_degree: float = DEFAULT_METERS_PER_DEGREE) -> float:
    """Convert value between units with a one-off UnitConverter."""
    return UnitConverter(meters_per_degree).convert(value, from_unit, to_unit)
