"""
Read-only services a MapProjection consults: EPSG code lookup and elevation.

Both are protocols so a projection can be handed fakes in tests. The defaults
are:
    - CrsCodeRegistry: asks pyproj to identify the kernel's CRS in the EPSG database
    - no elevation source (heights stay NaN); ConstantElevationSource and
      GridElevationSource are provided for callers that have terrain data
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import numpy as np

from mapproj.datum import get_datum_factory
from mapproj.geotransform import apply_geotransform, invert_geotransform
from mapproj.points import GeodeticPoint

if TYPE_CHECKING:
    from mapproj.projection import MapProjection

logger = logging.getLogger(__name__)

# Minimum pyproj identification confidence accepted as an EPSG match
DEFAULT_MIN_CONFIDENCE = 70


class ProjectionCodeRegistry(Protocol):
    """Protocol for EPSG projection code lookup."""

    def find_projection_code(self, projection: MapProjection) -> int:
        """Return the EPSG code equivalent to projection, 0 if none."""
        ...


class ElevationSource(Protocol):
    """Protocol for height-above-ellipsoid lookup."""

    def height_above_ellipsoid(self, point: GeodeticPoint) -> float:
        """Return the ellipsoid height at point in meters, NaN if unknown."""
        ...


class CrsCodeRegistry:
    """EPSG lookup through pyproj's CRS identification."""

    def __init__(self, min_confidence: int = DEFAULT_MIN_CONFIDENCE):
        """
        Args:
            min_confidence: Minimum match confidence (0-100) for an EPSG hit
        """
        self.min_confidence = min_confidence

    def find_projection_code(self, projection: MapProjection) -> int:
        crs = projection.kernel.crs
        if crs is None:
            return 0
        code = crs.to_epsg(min_confidence=self.min_confidence)
        logger.debug(f"EPSG lookup for {projection.kernel.name}: {code}")
        return int(code) if code else 0


class ConstantElevationSource:
    """Reports the same ellipsoid height everywhere."""

    def __init__(self, height: float):
        self.height = height

    def height_above_ellipsoid(self, point: GeodeticPoint) -> float:
        if point.is_lat_lon_nan():
            return math.nan
        return self.height


class GridElevationSource:
    """
    Ellipsoid heights sampled on a regular lon/lat grid.

    The grid is addressed with a GDAL geotransform mapping (column, row) to
    (longitude, latitude). Heights are interpolated bilinearly between the four
    surrounding posts; positions outside the grid, or next to a NaN post, give NaN.

    Usage:
        >>> heights = np.array([[10.0, 20.0], [30.0, 40.0]])
        >>> source = GridElevationSource(heights, [0.0, 1.0, 0.0, 1.0, 0.0, -1.0])
        >>> source.height_above_ellipsoid(GeodeticPoint(0.5, 0.5))
        25.0
    """

    def __init__(self, heights: np.ndarray, geotransform: Sequence[float],
                 datum_code: Optional[str] = None):
        """
        Initialize the grid.

        Args:
            heights: 2-D array of ellipsoid heights (rows = lines, cols = samples)
            geotransform: GDAL geotransform of the grid posts (post centres)
            datum_code: Datum of the grid coordinates; points on other datums are
                shifted before lookup when the point's datum is known

        Raises:
            ValueError: If heights is not 2-D or geotransform is invalid
        """
        grid = np.asarray(heights, dtype=float)
        if grid.ndim != 2:
            raise ValueError(f"Elevation grid must be 2-D, got {grid.ndim} dimensions")
        self._heights = grid
        self._geotransform = list(geotransform)
        self._inverse = invert_geotransform(self._geotransform)
        self.datum_code = datum_code

    @property
    def shape(self) -> tuple[int, int]:
        """Grid shape (rows, cols)."""
        return self._heights.shape

    def post_position(self, row: int, col: int) -> GeodeticPoint:
        """Geodetic position of a grid post."""
        lon, lat = apply_geotransform(col, row, self._geotransform)
        return GeodeticPoint(lat, lon)

    def height_above_ellipsoid(self, point: GeodeticPoint) -> float:
        if point.is_lat_lon_nan():
            return math.nan
        if (self.datum_code is not None and point.datum is not None
                and point.datum.code != self.datum_code):
            grid_datum = get_datum_factory().create(self.datum_code)
            if grid_datum is not None:
                logger.debug(f"Shifting lookup point from {point.datum.code} to {self.datum_code}")
                point = point.change_datum(grid_datum)

        col, row = apply_geotransform(point.lon, point.lat, self._inverse)
        rows, cols = self._heights.shape
        if not (0.0 <= row <= rows - 1 and 0.0 <= col <= cols - 1):
            return math.nan

        r0 = min(int(math.floor(row)), max(rows - 2, 0))
        c0 = min(int(math.floor(col)), max(cols - 2, 0))
        r1 = min(r0 + 1, rows - 1)
        c1 = min(c0 + 1, cols - 1)
        fr = row - r0
        fc = col - c0

        h = self._heights
        top = h[r0, c0] * (1.0 - fc) + h[r0, c1] * fc
        bottom = h[r1, c0] * (1.0 - fc) + h[r1, c1] * fc
        return float(top * (1.0 - fr) + bottom * fr)
