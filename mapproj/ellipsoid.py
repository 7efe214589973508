"""
Reference ellipsoid value type.

Ellipsoid constants for named ellipsoids come from PROJ through pyproj's Geod,
so the engine never carries its own table of axis lengths.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from pyproj import Geod

from mapproj.compare import CompareMode, values_equal
from mapproj.points import ProjectedPoint
from mapproj.types import Degrees, Meters


@dataclass(frozen=True)
class Ellipsoid:
    """An oblate reference ellipsoid.

    Attributes:
        a: Semi-major axis in meters.
        b: Semi-minor axis in meters.
        code: PROJ ellipsoid identifier (e.g. "WGS84", "GRS80"), empty when custom.
        name: Human readable name.
    """

    a: Meters
    b: Meters
    code: str = ""
    name: str = ""

    @classmethod
    def from_proj(cls, code: str) -> Ellipsoid:
        """
        Build a named ellipsoid from the PROJ ellipsoid table.

        Args:
            code: PROJ ellipsoid name such as "WGS84", "GRS80", "clrk66", "intl"

        Returns:
            Ellipsoid instance (cached, so repeated calls return the same object)

        Raises:
            ValueError: If PROJ does not know the ellipsoid
        """
        return _named_ellipsoid(code)

    @classmethod
    def from_flattening(cls, a: float, inverse_flattening: float, code: str = "", name: str = "") -> Ellipsoid:
        """Build an ellipsoid from its semi-major axis and inverse flattening."""
        b = a * (1.0 - 1.0 / inverse_flattening)
        return cls(Meters(a), Meters(b), code, name)

    @property
    def flattening(self) -> float:
        """Flattening f = (a - b) / a."""
        return (self.a - self.b) / self.a

    @property
    def eccentricity_squared(self) -> float:
        """First eccentricity squared e² = f (2 - f)."""
        f = self.flattening
        return f * (2.0 - f)

    def with_axes(self, a: float, b: float) -> Ellipsoid:
        """Return a custom ellipsoid with new axes (the code no longer applies)."""
        return Ellipsoid(Meters(a), Meters(b))

    def meters_per_degree(self, latitude: Degrees = Degrees(0.0)) -> ProjectedPoint:
        """
        Ground length of one degree at a latitude.

        Uses the meridional radius of curvature M for the north axis and the
        prime-vertical radius of curvature N (times cos φ) for the east axis:

            M = a (1 - e²) / (1 - e² sin²φ)^(3/2)
            N = a / (1 - e² sin²φ)^(1/2)

        Args:
            latitude: Latitude in decimal degrees

        Returns:
            ProjectedPoint with x = meters per degree of longitude,
            y = meters per degree of latitude
        """
        phi = math.radians(latitude)
        e2 = self.eccentricity_squared
        w = 1.0 - e2 * math.sin(phi) ** 2
        m = self.a * (1.0 - e2) / w ** 1.5
        n = self.a / math.sqrt(w)
        per_radian = math.pi / 180.0
        return ProjectedPoint(per_radian * n * math.cos(phi), per_radian * m)

    def is_equal_to(self, other: Ellipsoid, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """Compare axis lengths."""
        return values_equal(self.a, other.a, mode) and values_equal(self.b, other.b, mode)


@lru_cache(maxsize=None)
def _named_ellipsoid(code: str) -> Ellipsoid:
    try:
        geod = Geod(ellps=code)
    except Exception as e:
        raise ValueError(f"Unknown ellipsoid '{code}': {e}") from e
    return Ellipsoid(Meters(geod.a), Meters(geod.b), code, code)


def wgs84_ellipsoid() -> Ellipsoid:
    """Return the WGS84 ellipsoid."""
    return Ellipsoid.from_proj("WGS84")
