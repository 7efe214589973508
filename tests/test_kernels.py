#!/usr/bin/env python3
"""Tests for projection kernels."""

import logging
import math
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mapproj.datum import get_datum_factory
from mapproj.kernels import (
    CoordinateSpace,
    GeographicKernel,
    KernelParameters,
    PyprojKernel,
    create_kernel,
    polar_stereographic,
    transverse_mercator,
)
from mapproj.points import GeodeticPoint, ProjectedPoint


def _utm33_kernel():
    kernel = transverse_mercator()
    kernel.configure(KernelParameters(
        origin=GeodeticPoint(0.0, 15.0),
        datum=get_datum_factory().wgs84(),
        false_easting_northing=ProjectedPoint(500000.0, 0.0),
    ))
    return kernel


class TestGeographicKernel:
    """Test the lat/lon plate kernel."""

    def test_forward_swaps_axes(self):
        kernel = GeographicKernel()
        assert kernel.forward(GeodeticPoint(10.0, 20.0)) == ProjectedPoint(20.0, 10.0)

    def test_inverse_tags_datum(self):
        wgs84 = get_datum_factory().wgs84()
        kernel = GeographicKernel()
        kernel.configure(KernelParameters(datum=wgs84))
        gpt = kernel.inverse(ProjectedPoint(20.0, 10.0))
        assert (gpt.lat, gpt.lon) == (10.0, 20.0)
        assert math.isnan(gpt.height)
        assert gpt.datum is wgs84

    def test_space(self):
        kernel = GeographicKernel()
        assert kernel.coordinate_space is CoordinateSpace.GEOGRAPHIC
        assert kernel.is_geographic()

    def test_crs_follows_datum(self):
        kernel = GeographicKernel()
        assert kernel.crs is None
        kernel.configure(KernelParameters(datum=get_datum_factory().wgs84()))
        assert kernel.crs.to_epsg() == 4326


class TestPyprojKernel:
    """Test the PROJ-backed kernel."""

    def test_origin_maps_to_false_easting(self):
        kernel = _utm33_kernel()
        p = kernel.forward(GeodeticPoint(0.0, 15.0))
        assert p.x == pytest.approx(500000.0, abs=1e-6)
        assert p.y == pytest.approx(0.0, abs=1e-6)

    def test_round_trip(self):
        kernel = _utm33_kernel()
        gpt = GeodeticPoint(45.5, 16.25)
        back = kernel.inverse(kernel.forward(gpt))
        assert back.lat == pytest.approx(gpt.lat, abs=1e-9)
        assert back.lon == pytest.approx(gpt.lon, abs=1e-9)

    def test_unconfigured_raises(self):
        with pytest.raises(RuntimeError, match="not configured"):
            transverse_mercator().forward(GeodeticPoint(0.0, 0.0))

    def test_nan_in_nan_out(self):
        kernel = _utm33_kernel()
        assert kernel.forward(GeodeticPoint.nan()).has_nans()
        assert kernel.inverse(ProjectedPoint.nan()).is_lat_lon_nan()

    def test_rejected_definition(self):
        kernel = PyprojKernel("definitely_not_a_projection")
        with pytest.raises(ValueError, match="PROJ rejected"):
            kernel.configure(KernelParameters())

    def test_geographic_name_rejected(self):
        with pytest.raises(ValueError):
            PyprojKernel("geographic")

    def test_polar_stereographic_pole(self):
        kernel = polar_stereographic()
        kernel.configure(KernelParameters())
        p = kernel.forward(GeodeticPoint(90.0, 0.0))
        assert p.x == pytest.approx(0.0, abs=1e-6)
        assert p.y == pytest.approx(0.0, abs=1e-6)


class TestKernelIdentity:
    """Test kernel kind comparison, cloning and creation by name."""

    def test_same_kind(self):
        assert transverse_mercator().same_kind_as(transverse_mercator())
        assert not transverse_mercator().same_kind_as(transverse_mercator(1.0))
        assert not transverse_mercator().same_kind_as(GeographicKernel())

    def test_clone_is_unconfigured_same_kind(self):
        kernel = _utm33_kernel()
        clone = kernel.clone()
        assert clone.same_kind_as(kernel)
        assert clone.crs is None

    def test_create_kernel(self):
        assert isinstance(create_kernel("geographic"), GeographicKernel)
        kernel = create_kernel("tmerc", {"k_0": 0.9996})
        assert kernel.same_kind_as(transverse_mercator())

    def test_geographic_ignores_parameters(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mapproj.kernels"):
            create_kernel("geographic", {"k_0": 1.0})
        assert "Ignoring parameters" in caplog.text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
