#!/usr/bin/env python3
"""Tests for YAML projection configuration and the mapproj CLI."""

import json
import os
import sys
from textwrap import dedent

import pytest
from typer.testing import CliRunner

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mapproj.cli import app
from mapproj.compare import CompareMode
from mapproj.config import (
    ProjectionConfig,
    get_default_config,
    load_projection_yaml,
    save_projection_yaml,
)
from mapproj.points import PixelPoint, ProjectedPoint

GEOGRAPHIC_YAML = dedent("""\
    projection:
      type: geographic
      datum: WGE
      pixel_scale: [0.001, 0.001]
      pixel_scale_units: degrees
      tie_point: [20.0, 10.0]
      tie_point_units: degrees
    """)

UTM33_YAML = dedent("""\
    projection:
      type: tmerc
      parameters: {k_0: 0.9996}
      datum: WGE
      origin: {latitude: 0.0, longitude: 15.0}
      false_easting_northing: [500000.0, 0.0]
      pixel_scale: [30.0, 30.0]
      tie_point: [499983.0, 5000017.0]
    """)


class FixedRegistry:
    def find_projection_code(self, projection):
        return 0


@pytest.fixture
def geographic_file(tmp_path):
    path = tmp_path / "geographic.yaml"
    path.write_text(GEOGRAPHIC_YAML)
    return path


@pytest.fixture
def utm33_file(tmp_path):
    path = tmp_path / "utm33.yaml"
    path.write_text(UTM33_YAML)
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestProjectionConfigLoading:
    """Test reading configuration files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProjectionConfig.from_yaml(str(tmp_path / "absent.yaml"))

    @pytest.mark.parametrize(
        "content,message",
        [
            ("", "empty"),
            ("camera: {}\n", "missing 'projection'"),
            ("projection: [unclosed\n", "Failed to parse"),
            ("projection:\n  datum: XYZ\n", "Unknown datum"),
            ("projection:\n  pixel_scale: [1.0]\n", "two numbers"),
            ("projection:\n  units: furlongs\n", "unrecognized unit"),
            ("projection:\n  parameters: [k_0]\n", "'parameters' must be a mapping"),
        ],
        ids=["empty", "no_section", "bad_yaml", "bad_datum", "bad_pair", "bad_unit", "bad_parameters"],
    )
    def test_invalid_files(self, tmp_path, content, message):
        path = tmp_path / "bad.yaml"
        path.write_text(content)
        with pytest.raises(ValueError, match=message):
            ProjectionConfig.from_yaml(str(path))

    def test_fields(self, utm33_file):
        config = ProjectionConfig.from_yaml(str(utm33_file))
        assert config.kernel == "tmerc"
        assert config.kernel_parameters == {"k_0": 0.9996}
        assert config.origin == [0.0, 15.0]
        assert config.pixel_scale == [30.0, 30.0]
        assert config.tie_point_units == "meters"

    def test_dict_round_trip(self, utm33_file):
        config = ProjectionConfig.from_yaml(str(utm33_file))
        assert ProjectionConfig.from_dict(config.to_dict()) == config


class TestProjectionConfigBuild:
    """Test building projections from configuration."""

    def test_geographic(self, geographic_file):
        proj = load_projection_yaml(str(geographic_file), code_registry=FixedRegistry())
        assert proj.is_geographic()
        assert proj.decimal_degrees_per_pixel == ProjectedPoint(0.001, 0.001)
        assert (proj.ul_geodetic.lat, proj.ul_geodetic.lon) == (10.0, 20.0)

    def test_projected(self, utm33_file):
        proj = load_projection_yaml(str(utm33_file), code_registry=FixedRegistry())
        assert proj.projection_name == "tmerc"
        assert proj.false_easting == 500000.0
        assert proj.pixel_to_model(PixelPoint(0.0, 0.0)) == ProjectedPoint(499983.0, 5000017.0)

    def test_scale_in_feet(self):
        config = ProjectionConfig.from_dict({
            "type": "tmerc",
            "origin": [0.0, 15.0],
            "pixel_scale": [100.0, 100.0],
            "pixel_scale_units": "feet",
        })
        proj = config.build(code_registry=FixedRegistry())
        assert proj.meters_per_pixel.x == pytest.approx(30.48)

    def test_linear_tie_on_geographic(self):
        config = ProjectionConfig.from_dict({
            "type": "geographic",
            "pixel_scale": [0.001, 0.001],
            "pixel_scale_units": "degrees",
            "tie_point": [2226389.8, 1118889.97],
            "tie_point_units": "meters",
        })
        proj = config.build(code_registry=FixedRegistry())
        meters_per_degree = proj.ellipsoid.meters_per_degree(0.0).y
        assert abs(proj.ul_geodetic.lat) <= 90.0
        assert proj.ul_geodetic.lat == pytest.approx(1118889.97 / meters_per_degree)
        assert proj.ul_geodetic.lon == pytest.approx(2226389.8 / meters_per_degree)

    def test_rotation_and_flags(self):
        config = ProjectionConfig.from_dict({
            "type": "geographic",
            "rotation": 90.0,
            "elevation_lookup": True,
            "units": "meters",
        })
        proj = config.build(code_registry=FixedRegistry())
        assert proj.image_to_model_azimuth == pytest.approx(90.0)
        assert proj.elevation_lookup_flag
        assert proj.projection_units.value == "meters"

    def test_default_config(self):
        proj = get_default_config().build(code_registry=FixedRegistry())
        assert proj.is_geographic()
        assert proj.datum.code == "WGE"
        assert (proj.origin.lat, proj.origin.lon) == (0.0, 0.0)

    def test_saved_state_reloads(self, utm33_file, tmp_path):
        registry = FixedRegistry()
        proj = load_projection_yaml(str(utm33_file), code_registry=registry)
        proj.apply_rotation(12.5)
        saved = tmp_path / "nested" / "saved.yaml"

        save_projection_yaml(proj, str(saved))
        restored = load_projection_yaml(str(saved), code_registry=registry)

        assert restored.is_equal_to(proj, CompareMode.TOLERANT)
        assert ProjectionConfig.from_yaml(str(saved)).state["type"] == "tmerc"


class TestCli:
    """Test the typer application."""

    def test_describe(self, runner, utm33_file):
        result = runner.invoke(app, ["state", "describe", str(utm33_file)])
        assert result.exit_code == 0
        assert "type: tmerc" in result.stdout

    def test_describe_json(self, runner, utm33_file):
        result = runner.invoke(app, ["state", "describe", str(utm33_file), "--format", "json"])
        assert result.exit_code == 0
        kwl = json.loads(result.stdout)
        assert kwl["type"] == "tmerc"
        assert kwl["tie_point_xy"] == "(499983.0, 5000017.0)"

    def test_world_to_pixel(self, runner, geographic_file):
        result = runner.invoke(app, [
            "transform", "world-to-pixel", str(geographic_file), "--lat", "9.999", "--lon", "20.001", "-f", "json",
        ])
        assert result.exit_code == 0
        values = json.loads(result.stdout)
        assert values["sample"] == pytest.approx(1.0, abs=1e-6)
        assert values["line"] == pytest.approx(1.0, abs=1e-6)

    def test_world_to_pixel_unknown_datum(self, runner, geographic_file):
        result = runner.invoke(app, [
            "transform", "world-to-pixel", str(geographic_file), "--lat", "10", "--lon", "20", "--datum", "XYZ",
        ])
        assert result.exit_code == 1

    def test_pixel_to_world(self, runner, geographic_file):
        result = runner.invoke(app, [
            "transform", "pixel-to-world", str(geographic_file), "--sample", "1", "--line", "1", "-f", "json",
        ])
        assert result.exit_code == 0
        values = json.loads(result.stdout)
        assert values["lat"] == pytest.approx(9.999)
        assert values["lon"] == pytest.approx(20.001)
        assert values["height"] is None
        assert values["datum"] == "WGE"

    def test_pixel_to_model(self, runner, utm33_file):
        result = runner.invoke(app, [
            "transform", "pixel-to-model", str(utm33_file), "--sample", "1", "--line", "1", "-f", "yaml",
        ])
        assert result.exit_code == 0
        assert "x: 500013.0" in result.stdout
        assert "units: meters" in result.stdout

    def test_snap_and_save(self, runner, utm33_file, tmp_path):
        output = tmp_path / "snapped.yaml"
        result = runner.invoke(app, [
            "state", "snap", str(utm33_file), "--multiple", "10", "--units", "meters", "--output", str(output),
        ])
        assert result.exit_code == 0
        assert output.exists()
        snapped = load_projection_yaml(str(output), code_registry=FixedRegistry())
        assert snapped.ul_easting_northing == ProjectedPoint(499980.0, 5000020.0)

    def test_snap_bad_unit(self, runner, utm33_file):
        result = runner.invoke(app, ["state", "snap", str(utm33_file), "--multiple", "10", "--units", "furlongs"])
        assert result.exit_code == 1

    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(app, ["state", "describe", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 1

    def test_bad_log_level(self, runner, utm33_file):
        result = runner.invoke(app, ["--log-level", "chatty", "state", "describe", str(utm33_file)])
        assert result.exit_code == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
