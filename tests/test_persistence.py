#!/usr/bin/env python3
"""Tests for keyword-list persistence of projection state."""

import logging
import math
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mapproj.affine import ModelTransform
from mapproj.compare import CompareMode
from mapproj.kernels import GeographicKernel, transverse_mercator
from mapproj.persistence import (
    format_kernel_parameters,
    format_point,
    parse_bool,
    parse_point,
    read_kernel_parameters,
)
from mapproj.points import GeodeticPoint, PixelPoint, ProjectedPoint
from mapproj.projection import MapProjection
from mapproj.units import UnitType


class FixedRegistry:
    def __init__(self, code=0):
        self.code = code

    def find_projection_code(self, projection):
        return self.code


REGISTRY = FixedRegistry()


def _utm33():
    proj = MapProjection(transverse_mercator(), origin=GeodeticPoint(0.0, 15.0), code_registry=REGISTRY)
    proj.set_false_easting_northing(ProjectedPoint(500000.0, 0.0))
    proj.set_meters_per_pixel(ProjectedPoint(30.0, 30.0))
    proj.set_ul_easting_northing(ProjectedPoint(499980.0, 5000010.0))
    return proj


def _geographic():
    proj = MapProjection(GeographicKernel(), code_registry=REGISTRY)
    proj.set_decimal_degrees_per_pixel(ProjectedPoint(0.001, 0.001))
    proj.set_ul_geodetic(GeodeticPoint(10.0, 20.0))
    return proj


class TestValueFormats:
    """Test the string forms used in keyword lists."""

    def test_point_round_trip(self):
        p = ProjectedPoint(0.1, -12345.678901234567)
        assert parse_point(format_point(p)) == p

    @pytest.mark.parametrize("text", ["(1, 2)", "1,2", "1 2", " ( 1.0 , 2.0 ) "],
                             ids=["parens", "comma", "space", "padded"])
    def test_parse_point_forms(self, text):
        assert parse_point(text) == ProjectedPoint(1.0, 2.0)

    def test_parse_point_rejects(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mapproj.persistence"):
            assert parse_point("(1, 2, 3)") is None
            assert parse_point("north") is None
        assert "Expected a point" in caplog.text

    @pytest.mark.parametrize("text,expected", [("true", True), ("1", True), ("Yes", True),
                                               ("false", False), ("0", False), ("", False)])
    def test_parse_bool(self, text, expected):
        assert parse_bool(text) is expected

    def test_kernel_parameters(self):
        text = format_kernel_parameters({"k_0": 0.9996, "zone": 33, "south": True, "ellps": "intl"})
        assert text == "k_0=0.9996 zone=33 south ellps=intl"
        assert read_kernel_parameters({"projection_parameters": text}) == {
            "k_0": 0.9996, "zone": 33, "south": True, "ellps": "intl",
        }


class TestSaveState:
    """Test the written keyword list."""

    def test_projected_keywords(self):
        kwl = _utm33().save_state()
        assert kwl["type"] == "tmerc"
        assert kwl["projection_parameters"] == "k_0=0.9996"
        assert kwl["central_meridian"] == "15.0"
        assert kwl["datum"] == "WGE"
        assert kwl["tie_point_xy"] == "(499980.0, 5000010.0)"
        assert kwl["tie_point_units"] == "meters"
        assert kwl["pixel_scale_xy"] == "(30.0, 30.0)"
        assert kwl["false_easting_northing"] == "(500000.0, 0.0)"
        assert kwl["elevation_lookup_flag"] == "false"
        assert kwl["pcs_code"] == "0"
        assert "srs_name" not in kwl
        assert len(kwl["image_model_transform_matrix"].split()) == 16
        assert kwl["original_map_units"] == "meters"

    def test_geographic_tie_is_lon_lat(self):
        kwl = _geographic().save_state()
        assert kwl["tie_point_xy"] == "(20.0, 10.0)"
        assert kwl["tie_point_units"] == "degrees"
        assert kwl["pixel_scale_units"] == "degrees"

    def test_srs_name_with_code(self):
        proj = _utm33()
        proj.set_pcs_code(32633)
        kwl = proj.save_state()
        assert kwl["srs_name"] == "EPSG:32633"
        assert kwl["pcs_code"] == "32633"

    def test_save_does_not_look_up_code(self):
        class FailingRegistry:
            def find_projection_code(self, projection):
                raise AssertionError("registry queried while saving")

        proj = MapProjection(transverse_mercator(), origin=GeodeticPoint(0.0, 15.0), code_registry=FailingRegistry())
        kwl = proj.save_state()
        assert kwl["pcs_code"] == "0"
        assert "srs_name" not in kwl

    def test_save_writes_resolved_code(self):
        proj = MapProjection(transverse_mercator(), origin=GeodeticPoint(0.0, 15.0),
                             code_registry=FixedRegistry(32633))
        assert proj.pcs_code == 32633
        assert proj.save_state()["srs_name"] == "EPSG:32633"

    def test_prefix(self):
        kwl = _utm33().save_state("image0.")
        assert all(key.startswith("image0.") for key in kwl)
        assert kwl["image0.type"] == "tmerc"


class TestRoundTrip:
    """Test save_state -> from_state."""

    @pytest.mark.parametrize("factory", [_utm33, _geographic], ids=["projected", "geographic"])
    def test_round_trip_is_tolerant_equal(self, factory):
        proj = factory()
        restored = MapProjection.from_state(proj.save_state(), code_registry=REGISTRY)
        assert restored.is_equal_to(proj, CompareMode.TOLERANT)
        assert restored.same_map_as(proj)

    def test_round_trip_with_prefix(self):
        proj = _utm33()
        restored = MapProjection.from_state(proj.save_state("a."), "a.", code_registry=REGISTRY)
        assert restored.is_equal_to(proj)

    def test_rotation_survives(self):
        proj = _utm33()
        proj.apply_rotation(30.0)
        restored = MapProjection.from_state(proj.save_state(), code_registry=REGISTRY)
        assert restored.image_to_model_azimuth == pytest.approx(30.0)
        model = restored.pixel_to_model(PixelPoint(100.0, 50.0))
        expected = proj.pixel_to_model(PixelPoint(100.0, 50.0))
        assert model.x == pytest.approx(expected.x, abs=1e-6)
        assert model.y == pytest.approx(expected.y, abs=1e-6)

    def test_declared_units_and_flag(self):
        proj = _utm33()
        proj.set_projection_units(UnitType.FEET)
        proj.set_elevation_lookup_flag(True)
        restored = MapProjection.from_state(proj.save_state(), code_registry=REGISTRY)
        assert restored.projection_units is UnitType.FEET
        assert restored.elevation_lookup_flag

    def test_missing_type(self):
        with pytest.raises(ValueError, match="no 'type' entry"):
            MapProjection.from_state({"datum": "WGE"})


class TestLoadState:
    """Test reading hand-written and legacy keyword lists."""

    def test_legacy_keys(self):
        kwl = {
            "type": "tmerc",
            "projection_parameters": "k_0=0.9996",
            "origin_latitude": "0.0",
            "central_meridian": "15.0",
            "datum": "WGE",
            "false_easting": "500000.0",
            "meters_per_pixel_x": "-30.0",
            "meters_per_pixel_y": "30.0",
            "tie_point_easting": "499980.0",
            "tie_point_northing": "5000010.0",
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.meters_per_pixel == ProjectedPoint(30.0, 30.0)
        assert proj.false_easting_northing == ProjectedPoint(500000.0, 0.0)
        assert proj.ul_easting_northing == ProjectedPoint(499980.0, 5000010.0)

    def test_legacy_degrees(self):
        kwl = {
            "type": "geographic",
            "decimal_degrees_per_pixel_lat": "0.002",
            "decimal_degrees_per_pixel_lon": "0.001",
            "tie_point_lat": "10.0",
            "tie_point_lon": "20.0",
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.decimal_degrees_per_pixel == ProjectedPoint(0.001, 0.002)
        assert (proj.ul_geodetic.lat, proj.ul_geodetic.lon) == (10.0, 20.0)

    def test_tie_point_unit_conversion(self):
        kwl = {
            "type": "tmerc",
            "central_meridian": "15.0",
            "tie_point_xy": "(1.0, 2.0)",
            "tie_point_units": "kilometers",
            "pixel_scale_xy": "(100.0, 100.0)",
            "pixel_scale_units": "feet",
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.ul_easting_northing == ProjectedPoint(1000.0, 2000.0)
        assert proj.meters_per_pixel.x == pytest.approx(30.48)

    def test_angular_tie_on_projected(self):
        kwl = {
            "type": "tmerc",
            "central_meridian": "15.0",
            "tie_point_xy": "(15.0, 0.0)",
            "tie_point_units": "degrees",
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.ul_easting_northing.x == pytest.approx(0.0, abs=1e-6)
        assert proj.ul_easting_northing.y == pytest.approx(0.0, abs=1e-6)

    def test_pixel_is_area(self):
        kwl = _utm33().save_state()
        del kwl["image_model_transform_matrix"]
        kwl["pixel_type"] = "pixel_is_area"
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.ul_easting_northing == ProjectedPoint(499995.0, 4999995.0)

    def test_bad_matrix_is_ignored(self, caplog):
        kwl = _utm33().save_state()
        kwl["image_model_transform_matrix"] = "1 2 3"
        with caplog.at_level(logging.WARNING, logger="mapproj.persistence"):
            proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert "16 numeric elements" in caplog.text
        assert proj.pixel_to_model(PixelPoint(0.0, 0.0)) == ProjectedPoint(499980.0, 5000010.0)

    def test_matrix_overrides_scale(self):
        kwl = _utm33().save_state()
        override = ModelTransform.from_parameters(ProjectedPoint(10.0, 10.0), 0.0, ProjectedPoint(1000.0, 2000.0))
        kwl["image_model_transform_matrix"] = " ".join(repr(v) for v in override.to_elements())
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.model_transform == override
        assert proj.meters_per_pixel.x == pytest.approx(10.0)
        assert proj.ul_easting_northing == ProjectedPoint(1000.0, 2000.0)

    def test_origin_falls_back_to_matrix(self):
        override = ModelTransform.from_parameters(ProjectedPoint(0.001, 0.001), 0.0, ProjectedPoint(20.0, 10.0))
        kwl = {
            "type": "geographic",
            "origin_latitude": "nan",
            "central_meridian": "nan",
            "image_model_transform_matrix": " ".join(repr(v) for v in override.to_elements()),
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert (proj.origin.lat, proj.origin.lon) == (10.0, 20.0)

    def test_missing_datum_is_wgs84(self):
        proj = MapProjection.from_state({"type": "geographic"}, code_registry=REGISTRY)
        assert proj.datum.code == "WGE"

    def test_axes_override_ellipsoid(self):
        kwl = {"type": "geographic", "major_axis": "6378000.0", "minor_axis": "6357000.0"}
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert (proj.a, proj.b) == (6378000.0, 6357000.0)

    def test_srs_name_gives_code(self):
        kwl = {"type": "geographic", "srs_name": "EPSG:4326"}
        proj = MapProjection.from_state(kwl, code_registry=FixedRegistry(0))
        assert proj.pcs_code == 4326

    def test_unknown_units_warn(self, caplog):
        kwl = {"type": "tmerc", "tie_point_xy": "(10.0, 20.0)", "tie_point_units": "furlongs"}
        with caplog.at_level(logging.WARNING):
            proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert "furlongs" in caplog.text
        assert proj.ul_easting_northing == ProjectedPoint(10.0, 20.0)

    def test_linear_tie_on_geographic_is_converted_to_degrees(self):
        kwl = {
            "type": "geographic",
            "origin_latitude": "0.0",
            "central_meridian": "0.0",
            "tie_point_xy": "(2226389.8, 1118889.97)",
            "tie_point_units": "meters",
            "pixel_scale_xy": "(0.001, 0.001)",
            "pixel_scale_units": "degrees",
        }
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        meters_per_degree = proj.ellipsoid.meters_per_degree(0.0).y
        assert abs(proj.ul_geodetic.lat) <= 90.0
        assert proj.ul_geodetic.lat == pytest.approx(1118889.97 / meters_per_degree)
        assert proj.ul_geodetic.lon == pytest.approx(2226389.8 / meters_per_degree)
        assert proj.ul_easting_northing == ProjectedPoint(proj.ul_geodetic.lon, proj.ul_geodetic.lat)

    def test_feet_tie_on_geographic(self):
        kwl = {"type": "geographic", "tie_point_xy": "(0.0, 328084.0)", "tie_point_units": "feet"}
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        meters_per_degree = proj.ellipsoid.meters_per_degree(0.0).y
        assert proj.ul_geodetic.lat == pytest.approx(100000.0 / meters_per_degree, rel=1e-6)
        assert proj.ul_geodetic.lon == pytest.approx(0.0)

    def test_legacy_easting_on_geographic(self):
        kwl = {"type": "geographic", "tie_point_easting": "0.0", "tie_point_northing": "-221148.5"}
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert -3.0 < proj.ul_geodetic.lat < -1.0

    def test_nan_tie_propagates(self):
        kwl = {"type": "geographic", "tie_point_xy": "(nan, nan)", "tie_point_units": "degrees"}
        proj = MapProjection.from_state(kwl, code_registry=REGISTRY)
        assert proj.ul_geodetic.is_lat_lon_nan()
        assert math.isnan(proj.pixel_to_world(PixelPoint(0.0, 0.0)).lat)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
