#!/usr/bin/env python3
"""
Test suite for the GDAL 6-parameter geotransform helpers.

The GDAL GeoTransform standard defines pixel-to-coordinate transformation as:
    Xgeo = GT[0] + P*GT[1] + L*GT[2]
    Ygeo = GT[3] + P*GT[4] + L*GT[5]
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mapproj.geotransform import apply_geotransform, invert_geotransform


class TestApplyGeotransform:
    """Test the apply_geotransform utility function."""

    def test_north_up_raster_origin(self):
        """Pixel (0, 0) maps to the upper-left corner."""
        gt = [737575.05, 0.15, 0, 4391595.45, 0, -0.15]

        easting, northing = apply_geotransform(0, 0, gt)

        assert easting == pytest.approx(737575.05, abs=0.01)
        assert northing == pytest.approx(4391595.45, abs=0.01)

    def test_north_up_raster_offset_pixel(self):
        """Expected easting = GT0 + 10*0.15, northing = GT3 - 20*0.15."""
        gt = [737575.05, 0.15, 0, 4391595.45, 0, -0.15]

        easting, northing = apply_geotransform(10, 20, gt)

        assert easting == pytest.approx(737576.55, abs=0.01)
        assert northing == pytest.approx(4391592.45, abs=0.01)

    def test_rotated_raster(self):
        """Rotation terms mix sample and line offsets."""
        gt = [500000, 0.1387, 0.0574, 4400000, 0.0574, -0.1387]

        easting, northing = apply_geotransform(100, 0, gt)
        assert easting == pytest.approx(500013.87, abs=0.01)
        assert northing == pytest.approx(4400005.74, abs=0.01)

        easting, northing = apply_geotransform(0, 100, gt)
        assert easting == pytest.approx(500005.74, abs=0.01)
        assert northing == pytest.approx(4399986.13, abs=0.01)

    def test_half_pixel_center_offset(self):
        """Pixel centre is half a pixel east and south of the corner."""
        gt = [737575.05, 0.15, 0, 4391595.45, 0, -0.15]

        corner_e, corner_n = apply_geotransform(0, 0, gt)
        center_e, center_n = apply_geotransform(0.5, 0.5, gt)

        assert center_e == pytest.approx(corner_e + 0.075, abs=0.001)
        assert center_n == pytest.approx(corner_n - 0.075, abs=0.001)

    @pytest.mark.parametrize(
        "gt",
        [[0.0, 1.0, 0.0], [0.0] * 7],
        ids=["too_short", "too_long"],
    )
    def test_wrong_length_raises(self, gt):
        with pytest.raises(ValueError, match="exactly 6 elements"):
            apply_geotransform(0, 0, gt)


class TestInvertGeotransform:
    """Test the inverse geotransform."""

    @pytest.mark.parametrize(
        "gt",
        [
            [737575.05, 0.15, 0.0, 4391595.45, 0.0, -0.15],
            [500000.0, 0.1387, 0.0574, 4400000.0, 0.0574, -0.1387],
            [-10.0, 0.001, 0.0, 50.0, 0.0, -0.002],
        ],
        ids=["north_up", "rotated", "geographic"],
    )
    def test_inverse_round_trip(self, gt):
        inverse = invert_geotransform(gt)

        for px, py in [(0, 0), (10, 20), (123.25, 456.5), (-5, 7)]:
            x, y = apply_geotransform(px, py, gt)
            back_px, back_py = apply_geotransform(x, y, inverse)
            assert back_px == pytest.approx(px, abs=1e-6)
            assert back_py == pytest.approx(py, abs=1e-6)

    def test_singular_raises(self):
        with pytest.raises(ValueError, match="singular"):
            invert_geotransform([0.0, 1.0, 2.0, 0.0, 2.0, 4.0])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
