"""
YAML configuration files describing a map projection.

A configuration file holds a single 'projection' section, either as explicit
parameters:

    projection:
      type: tmerc
      parameters: {k_0: 0.9996}
      datum: WGE
      origin: {latitude: 0.0, longitude: 15.0}
      false_easting_northing: [500000.0, 0.0]
      units: meters
      pixel_scale: [30.0, 30.0]
      pixel_scale_units: meters
      tie_point: [499980.0, 4500000.0]
      tie_point_units: meters
      rotation: 0.0
      elevation_lookup: false

or as a persisted keyword list (what save_projection_yaml() writes):

    projection:
      state:
        type: geographic
        tie_point_xy: (20.0, 10.0)
        ...

Pairs are (x, y); for angular tie points that is (longitude, latitude).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from mapproj.datum import get_datum_factory
from mapproj.kernels import GEOGRAPHIC_KERNEL_NAME, create_kernel
from mapproj.points import GeodeticPoint, ProjectedPoint
from mapproj.projection import MapProjection
from mapproj.units import UnitType, is_angular, parse_unit

logger = logging.getLogger(__name__)


@dataclass
class ProjectionConfig:
    """Parameters of a map projection as found in a configuration file.

    Attributes:
        kernel: Kernel type, "geographic" or a PROJ projection name
        kernel_parameters: Extra PROJ parameters for PROJ kernels
        datum: Datum code (e.g. "WGE", "NAR-C", "EPSG:4267")
        origin: (latitude, longitude) of the projection origin
        false_easting_northing: (easting, northing) offset in meters
        units: Declared unit of model coordinates, None for the native unit
        pixel_scale: (x, y) pixel size, None to use the engine default
        pixel_scale_units: Unit of pixel_scale
        tie_point: (x, y) position of the upper-left pixel, None for the origin
        tie_point_units: Unit of tie_point; angular units give (lon, lat). On a
            geographic projection linear values are converted to degrees
        rotation: Image-to-model rotation in degrees
        elevation_lookup: Fill heights from the elevation source in pixel_to_world
        state: Persisted keyword list; when set, it replaces every other field
    """
    kernel: str = GEOGRAPHIC_KERNEL_NAME
    kernel_parameters: Dict[str, Any] = field(default_factory=dict)
    datum: str = "WGE"
    origin: List[float] = field(default_factory=lambda: [0.0, 0.0])
    false_easting_northing: List[float] = field(default_factory=lambda: [0.0, 0.0])
    units: Optional[str] = None
    pixel_scale: Optional[List[float]] = None
    pixel_scale_units: str = "meters"
    tie_point: Optional[List[float]] = None
    tie_point_units: str = "meters"
    rotation: float = 0.0
    elevation_lookup: bool = False
    state: Optional[Dict[str, str]] = None

    @classmethod
    def from_yaml(cls, path: str) -> 'ProjectionConfig':
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            ProjectionConfig loaded from file

        Raises:
            FileNotFoundError: If configuration file does not exist
            ValueError: If configuration file is malformed or contains invalid values
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                f"Please create a configuration file or use get_default_config()"
            )

        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(
                f"Configuration file is empty: {path}\n"
                f"Expected a 'projection' section"
            )

        if not isinstance(data, dict) or 'projection' not in data:
            raise ValueError(
                f"Configuration file missing 'projection' section: {path}\n"
                f"Expected structure: projection:\n  type: ...\n  ..."
            )

        return cls.from_dict(data['projection'])

    @classmethod
    def from_dict(cls, config: dict) -> 'ProjectionConfig':
        """Create configuration from a dictionary (the 'projection' section).

        Raises:
            ValueError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        if 'state' in config:
            state = config['state']
            if not isinstance(state, dict):
                raise ValueError(f"'state' must be a mapping of keywords, got {type(state)}")
            return cls(state={str(k): str(v) for k, v in state.items()})

        kernel = str(config.get('type', GEOGRAPHIC_KERNEL_NAME))
        kernel_parameters = config.get('parameters') or {}
        if not isinstance(kernel_parameters, dict):
            raise ValueError(f"'parameters' must be a mapping, got {type(kernel_parameters)}")

        datum = str(config.get('datum', 'WGE'))
        if get_datum_factory().create(datum) is None:
            raise ValueError(
                f"Unknown datum '{datum}'. Known datums: {', '.join(get_datum_factory().codes())}"
            )

        origin_config = config.get('origin', {})
        if isinstance(origin_config, dict):
            origin = [
                float(origin_config.get('latitude', 0.0)),
                float(origin_config.get('longitude', 0.0)),
            ]
        else:
            origin = cls._parse_pair('origin', origin_config)

        false_en = cls._parse_pair('false_easting_northing', config.get('false_easting_northing', [0.0, 0.0]))
        pixel_scale = config.get('pixel_scale')
        tie_point = config.get('tie_point')

        units = config.get('units')
        for key in ('units', 'pixel_scale_units', 'tie_point_units'):
            value = config.get(key)
            if value is not None and parse_unit(str(value)) is UnitType.UNKNOWN:
                raise ValueError(f"'{key}' has unrecognized unit '{value}'")

        return cls(
            kernel=kernel,
            kernel_parameters=dict(kernel_parameters),
            datum=datum,
            origin=origin,
            false_easting_northing=false_en,
            units=None if units is None else str(units),
            pixel_scale=None if pixel_scale is None else cls._parse_pair('pixel_scale', pixel_scale),
            pixel_scale_units=str(config.get('pixel_scale_units', 'meters')),
            tie_point=None if tie_point is None else cls._parse_pair('tie_point', tie_point),
            tie_point_units=str(config.get('tie_point_units', 'meters')),
            rotation=float(config.get('rotation', 0.0)),
            elevation_lookup=bool(config.get('elevation_lookup', False)),
        )

    @staticmethod
    def _parse_pair(name: str, value: Any) -> List[float]:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"'{name}' must be a list of two numbers, got {value!r}")
        try:
            return [float(value[0]), float(value[1])]
        except (TypeError, ValueError) as e:
            raise ValueError(f"'{name}' must be a list of two numbers, got {value!r}") from e

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary suitable for YAML serialization."""
        if self.state is not None:
            return {'state': dict(self.state)}

        result: Dict[str, Any] = {
            'type': self.kernel,
            'datum': self.datum,
            'origin': {'latitude': self.origin[0], 'longitude': self.origin[1]},
            'false_easting_northing': list(self.false_easting_northing),
            'rotation': self.rotation,
            'elevation_lookup': self.elevation_lookup,
        }
        if self.kernel_parameters:
            result['parameters'] = dict(self.kernel_parameters)
        if self.units is not None:
            result['units'] = self.units
        if self.pixel_scale is not None:
            result['pixel_scale'] = list(self.pixel_scale)
            result['pixel_scale_units'] = self.pixel_scale_units
        if self.tie_point is not None:
            result['tie_point'] = list(self.tie_point)
            result['tie_point_units'] = self.tie_point_units
        return result

    def save_to_yaml(self, path: str) -> None:
        """Save configuration to a YAML file.

        Raises:
            IOError: If file cannot be written
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        output = {'projection': self.to_dict()}

        try:
            with open(config_path, 'w') as f:
                yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)
        except IOError as e:
            raise IOError(f"Failed to write configuration file: {e}") from e

    def build(self, **services) -> MapProjection:
        """Create the configured MapProjection.

        Args:
            **services: code_registry / elevation_source / datum_factory passed
                to MapProjection

        Raises:
            ValueError: If PROJ rejects the kernel definition
        """
        if self.state is not None:
            return MapProjection.from_state(self.state, **services)

        factory = services.get('datum_factory') or get_datum_factory()
        datum = factory.create(self.datum)
        kernel = create_kernel(self.kernel, self.kernel_parameters)
        projection = MapProjection(
            kernel,
            datum=datum,
            origin=GeodeticPoint(self.origin[0], self.origin[1], datum=datum),
            **services,
        )

        if self.false_easting_northing != [0.0, 0.0]:
            projection.set_false_easting_northing(ProjectedPoint(*self.false_easting_northing))
        if self.units is not None:
            projection.set_projection_units(self.units)

        if self.pixel_scale is not None:
            unit = parse_unit(self.pixel_scale_units)
            scale = _in_family(projection, self.pixel_scale, unit)
            if is_angular(unit):
                projection.set_decimal_degrees_per_pixel(scale)
            else:
                projection.set_meters_per_pixel(scale)

        if self.tie_point is not None:
            unit = parse_unit(self.tie_point_units)
            # Geographic model space is degrees, so a linear tie point is converted to degrees
            geodetic = is_angular(unit) or projection.is_geographic()
            tie = _in_family(projection, self.tie_point, unit, UnitType.DEGREES if geodetic else None)
            if geodetic:
                projection.set_ul_geodetic(GeodeticPoint(tie.y, tie.x, datum=datum))
            else:
                projection.set_ul_easting_northing(tie)

        if self.rotation:
            projection.apply_rotation(self.rotation)
        projection.set_elevation_lookup_flag(self.elevation_lookup)

        logger.info(f"Built {self.kernel} projection on datum {self.datum}")
        return projection


def _in_family(projection: MapProjection, pair: List[float], unit: UnitType,
               target: Optional[UnitType] = None) -> ProjectedPoint:
    """Convert a pair to target, by default degrees (angular unit) or meters (linear unit)."""
    if target is None:
        target = UnitType.DEGREES if is_angular(unit) else UnitType.METERS
    converter = projection.unit_converter()
    return ProjectedPoint(converter.convert(pair[0], unit, target), converter.convert(pair[1], unit, target))


def load_projection_yaml(path: str, **services) -> MapProjection:
    """Load a projection configuration file and build the projection."""
    return ProjectionConfig.from_yaml(path).build(**services)


def save_projection_yaml(projection: MapProjection, path: str) -> None:
    """Write a projection's persisted state as a configuration file."""
    ProjectionConfig(state=projection.save_state()).save_to_yaml(path)


def get_default_config() -> ProjectionConfig:
    """Return the default configuration: a WGS84 geographic projection at (0, 0).

    Pixel scale and tie point are left to the engine defaults (one meter
    equivalent per pixel, tie point at the origin).
    """
    return ProjectionConfig(
        kernel=GEOGRAPHIC_KERNEL_NAME,
        datum="WGE",
        origin=[0.0, 0.0],
    )
