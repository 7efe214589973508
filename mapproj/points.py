"""
Point value types for the three coordinate spaces.

    - GeodeticPoint: latitude / longitude / height on a datum
    - ProjectedPoint: (x, y) in model space (easting / northing, or degrees for
      geographic kernels). Also used for paired per-axis values such as pixel
      scale, where x is the east (longitude) axis and y the north (latitude) axis.
    - PixelPoint: (x, y) = (sample, line) in raster space, line grows downward

All types are immutable. Unset or degenerate coordinates are represented by NaN
and propagate through every transform; callers test with has_nans() before use.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from mapproj.compare import CompareMode, values_equal

if TYPE_CHECKING:
    from mapproj.datum import Datum


@dataclass(frozen=True)
class GeodeticPoint:
    """A geodetic position.

    Attributes:
        lat: Latitude in decimal degrees (positive north).
        lon: Longitude in decimal degrees (positive east).
        height: Height above the ellipsoid in meters, NaN when unknown.
        datum: Datum the coordinates are expressed on (None = unspecified).
    """

    lat: float
    lon: float
    height: float = math.nan
    datum: Datum | None = None

    @classmethod
    def nan(cls, datum: Datum | None = None) -> GeodeticPoint:
        """Return a point with every coordinate unset."""
        return cls(math.nan, math.nan, math.nan, datum)

    def is_lat_lon_nan(self) -> bool:
        """Return True if latitude or longitude is unset."""
        return math.isnan(self.lat) or math.isnan(self.lon)

    def with_datum(self, datum: Datum | None) -> GeodeticPoint:
        """Tag the point with datum without shifting its coordinates."""
        return replace(self, datum=datum)

    def change_datum(self, datum: Datum | None) -> GeodeticPoint:
        """
        Re-express this point on another datum.

        The coordinates are shifted by the source datum's shift_to() when both
        datums are known and differ; otherwise the point is only re-tagged.
        Unset coordinates stay unset.

        Args:
            datum: Target datum

        Returns:
            Equivalent point expressed on datum
        """
        if datum is None or self.datum is None or self.datum == datum:
            return self.with_datum(datum)
        if self.is_lat_lon_nan():
            return self.with_datum(datum)
        return self.datum.shift_to(self, datum)

    def is_equal_to(self, other: GeodeticPoint, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """Compare coordinates (NaN-aware) and, in strict mode, datums by value."""
        if not (values_equal(self.lat, other.lat, mode)
                and values_equal(self.lon, other.lon, mode)
                and values_equal(self.height, other.height, mode)):
            return False
        if mode is CompareMode.STRICT:
            return self.datum == other.datum
        return True

    def __str__(self) -> str:
        datum_code = self.datum.code if self.datum is not None else "unknown"
        return f"(lat={self.lat:.9f}, lon={self.lon:.9f}, height={self.height}, datum={datum_code})"


@dataclass(frozen=True)
class ProjectedPoint:
    """A point in model space.

    Attributes:
        x: Easting (or longitude for geographic kernels).
        y: Northing (or latitude for geographic kernels).
    """

    x: float
    y: float

    @classmethod
    def nan(cls) -> ProjectedPoint:
        """Return a point with both coordinates unset."""
        return cls(math.nan, math.nan)

    def has_nans(self) -> bool:
        """Return True if either coordinate is unset."""
        return math.isnan(self.x) or math.isnan(self.y)

    def distance_to(self, other: ProjectedPoint) -> float:
        """Euclidean distance to other."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def is_equal_to(self, other: ProjectedPoint, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """Compare both coordinates (NaN-aware)."""
        return values_equal(self.x, other.x, mode) and values_equal(self.y, other.y, mode)

    def __str__(self) -> str:
        return f"({self.x!r}, {self.y!r})"


@dataclass(frozen=True)
class PixelPoint:
    """Pixel coordinates in a raster image.

    Attributes:
        x: Sample (column), grows to the right.
        y: Line (row), grows downward.
    """

    x: float
    y: float

    @classmethod
    def nan(cls) -> PixelPoint:
        """Return a pixel with both coordinates unset."""
        return cls(math.nan, math.nan)

    @property
    def sample(self) -> float:
        """Horizontal image coordinate."""
        return self.x

    @property
    def line(self) -> float:
        """Vertical image coordinate."""
        return self.y

    def has_nans(self) -> bool:
        """Return True if either coordinate is unset."""
        return math.isnan(self.x) or math.isnan(self.y)
