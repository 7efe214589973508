#!/usr/bin/env python3
"""Tests for the EPSG registry and elevation sources."""

import math
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mapproj.datum import get_datum_factory
from mapproj.kernels import GeographicKernel
from mapproj.points import GeodeticPoint
from mapproj.projection import MapProjection
from mapproj.services import ConstantElevationSource, CrsCodeRegistry, GridElevationSource

GRID_GT = [0.0, 1.0, 0.0, 1.0, 0.0, -1.0]


@pytest.fixture
def grid_source():
    heights = np.array([[10.0, 20.0, 30.0],
                        [40.0, 50.0, 60.0]])
    return GridElevationSource(heights, GRID_GT)


class TestGridElevationSource:
    """Test bilinear grid lookup."""

    def test_post_values(self, grid_source):
        assert grid_source.height_above_ellipsoid(GeodeticPoint(1.0, 0.0)) == pytest.approx(10.0)
        assert grid_source.height_above_ellipsoid(GeodeticPoint(0.0, 2.0)) == pytest.approx(60.0)

    def test_interpolates(self, grid_source):
        assert grid_source.height_above_ellipsoid(GeodeticPoint(0.5, 0.5)) == pytest.approx(30.0)
        assert grid_source.height_above_ellipsoid(GeodeticPoint(1.0, 1.5)) == pytest.approx(25.0)

    @pytest.mark.parametrize(
        "lat,lon",
        [(2.0, 0.5), (-0.5, 0.5), (0.5, -0.1), (0.5, 2.5)],
        ids=["north", "south", "west", "east"],
    )
    def test_outside_grid_is_nan(self, grid_source, lat, lon):
        assert math.isnan(grid_source.height_above_ellipsoid(GeodeticPoint(lat, lon)))

    def test_nan_point(self, grid_source):
        assert math.isnan(grid_source.height_above_ellipsoid(GeodeticPoint.nan()))

    def test_shape_and_posts(self, grid_source):
        assert grid_source.shape == (2, 3)
        post = grid_source.post_position(1, 2)
        assert (post.lat, post.lon) == (0.0, 2.0)

    def test_rejects_non_2d(self):
        with pytest.raises(ValueError, match="2-D"):
            GridElevationSource(np.zeros(4), GRID_GT)


class TestConstantElevationSource:
    """Test the constant source."""

    def test_constant(self):
        source = ConstantElevationSource(120.0)
        assert source.height_above_ellipsoid(GeodeticPoint(45.0, 7.0)) == 120.0
        assert math.isnan(source.height_above_ellipsoid(GeodeticPoint.nan()))


class TestCrsCodeRegistry:
    """Test EPSG identification."""

    def test_geographic_wgs84(self):
        projection = MapProjection(GeographicKernel(), datum=get_datum_factory().wgs84())
        assert CrsCodeRegistry().find_projection_code(projection) == 4326

    def test_no_crs_gives_zero(self):
        class _NoCrsKernel(GeographicKernel):
            @property
            def crs(self):
                return None

        projection = MapProjection(_NoCrsKernel())
        assert CrsCodeRegistry().find_projection_code(projection) == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
