"""
MapProjection: map projection state and the image <-> model <-> world transforms.

A MapProjection owns a projection kernel plus everything needed to georeference
a raster with it:

    - origin, datum and ellipsoid snapshot, false easting/northing
    - upper-left tie point, kept in geodetic AND model form
    - pixel scale, kept in degrees/pixel AND meters/pixel
    - image-to-model azimuth and the affine ModelTransform built from the above
    - declared output unit, elevation-lookup flag, lazily resolved EPSG code

Callers may supply any subset of the mutually derivable values. Every setter
re-resolves the missing half through the kernel (update()) before returning, so
the affine transform is never stale. Whichever form of the scale or tie point
was set last is authoritative; the other is derived from it.

Coordinate spaces:
    - world: GeodeticPoint (lat, lon, height) on a datum
    - model: ProjectedPoint in the declared unit (native kernel unit by default)
    - pixel: PixelPoint (sample, line), line grows downward

Usage:
    >>> from mapproj.kernels import GeographicKernel
    >>> proj = MapProjection(GeographicKernel())
    >>> proj.set_decimal_degrees_per_pixel(ProjectedPoint(0.001, 0.001))
    >>> proj.set_ul_geodetic(GeodeticPoint(10.0, 20.0))
    >>> proj.world_to_pixel(GeodeticPoint(10.0, 20.0))
    PixelPoint(x=0.0, y=0.0)
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from functools import lru_cache
from typing import Mapping, Optional

from pyproj import Geod

from mapproj import persistence
from mapproj.affine import ModelTransform
from mapproj.compare import CompareMode
from mapproj.datum import Datum, DatumFactory, get_datum_factory
from mapproj.ellipsoid import Ellipsoid
from mapproj.kernels import KernelParameters, ProjectionKernel, create_kernel
from mapproj.points import GeodeticPoint, PixelPoint, ProjectedPoint
from mapproj.services import CrsCodeRegistry, ElevationSource, ProjectionCodeRegistry
from mapproj.units import UnitConverter, UnitType, parse_unit

logger = logging.getLogger(__name__)

# EPSG "user-defined" code: the projection was looked up and has no EPSG equivalent
USER_DEFINED_PCS_CODE = 32767


class ScaleAuthority(Enum):
    """Which pixel scale form was set last."""

    ANGULAR = "angular"
    LINEAR = "linear"


class TieAuthority(Enum):
    """Which tie point form was set last."""

    GEODETIC = "geodetic"
    MODEL = "model"


@lru_cache(maxsize=16)
def _geod(a: float, b: float) -> Geod:
    return Geod(a=a, b=b)


def _round_half_away(value: float) -> float:
    """Round to the nearest integer, halves away from zero."""
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _snap(value: float, reference: float, spacing: float) -> float:
    return reference + _round_half_away((value - reference) / spacing) * spacing


class MapProjection:
    """
    Map projection with a synchronized image-to-model affine transform.

    Attributes are read through properties; all mutation goes through the
    set_* methods, apply_scale() and apply_rotation(), which keep the derived
    values and the transform consistent.
    """

    def __init__(
        self,
        kernel: ProjectionKernel,
        datum: Optional[Datum] = None,
        origin: Optional[GeodeticPoint] = None,
        code_registry: Optional[ProjectionCodeRegistry] = None,
        elevation_source: Optional[ElevationSource] = None,
        datum_factory: Optional[DatumFactory] = None,
    ):
        """
        Initialize the projection and resolve its defaults.

        Args:
            kernel: Projection equations (geographic or PROJ backed)
            datum: Projection datum; defaults to the origin's datum, then WGS84
            origin: Projection origin (latitude of origin, central meridian);
                defaults to (0, 0)
            code_registry: EPSG lookup service; defaults to CrsCodeRegistry
            elevation_source: Height lookup used by pixel_to_world when the
                elevation-lookup flag is set
            datum_factory: Datum registry used when loading persisted state
        """
        self._kernel = kernel
        self._datum_factory = datum_factory if datum_factory is not None else get_datum_factory()
        self._code_registry = code_registry if code_registry is not None else CrsCodeRegistry()
        self._elevation_source = elevation_source

        if datum is None:
            datum = origin.datum if origin is not None and origin.datum is not None else self._datum_factory.wgs84()
        self._datum: Datum = datum
        self._ellipsoid: Ellipsoid = datum.ellipsoid

        if origin is None:
            origin = GeodeticPoint(0.0, 0.0)
        self._origin = self._on_datum(origin)
        self._false_easting_northing = ProjectedPoint(0.0, 0.0)

        self._ul_gpt: Optional[GeodeticPoint] = None
        self._ul_easting_northing: Optional[ProjectedPoint] = None
        self._tie_authority: Optional[TieAuthority] = None
        self._degrees_per_pixel: Optional[ProjectedPoint] = None
        self._meters_per_pixel: Optional[ProjectedPoint] = None
        self._scale_authority: Optional[ScaleAuthority] = None

        self._azimuth = 0.0
        self._pcs_code: Optional[int] = None
        self._elevation_lookup = False
        self._units = self._native_unit()
        self._transform = ModelTransform.identity()

        self._configure_kernel()
        self.update()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def kernel(self) -> ProjectionKernel:
        return self._kernel

    @property
    def projection_name(self) -> str:
        return self._kernel.name

    @property
    def code_registry(self) -> ProjectionCodeRegistry:
        return self._code_registry

    @property
    def elevation_source(self) -> Optional[ElevationSource]:
        return self._elevation_source

    @property
    def datum_factory(self) -> DatumFactory:
        return self._datum_factory

    @property
    def datum(self) -> Datum:
        return self._datum

    @property
    def ellipsoid(self) -> Ellipsoid:
        return self._ellipsoid

    @property
    def a(self) -> float:
        """Semi-major axis of the projection ellipsoid in meters."""
        return self._ellipsoid.a

    @property
    def b(self) -> float:
        """Semi-minor axis of the projection ellipsoid in meters."""
        return self._ellipsoid.b

    @property
    def f(self) -> float:
        """Flattening of the projection ellipsoid."""
        return self._ellipsoid.flattening

    @property
    def origin(self) -> GeodeticPoint:
        return self._origin

    @property
    def false_easting_northing(self) -> ProjectedPoint:
        return self._false_easting_northing

    @property
    def false_easting(self) -> float:
        return self._false_easting_northing.x

    @property
    def false_northing(self) -> float:
        return self._false_easting_northing.y

    @property
    def ul_geodetic(self) -> GeodeticPoint:
        """Geodetic position of pixel (0, 0)."""
        return self._ul_gpt

    @property
    def ul_easting_northing(self) -> ProjectedPoint:
        """Native model position of pixel (0, 0)."""
        return self._ul_easting_northing

    @property
    def meters_per_pixel(self) -> ProjectedPoint:
        return self._meters_per_pixel

    @property
    def decimal_degrees_per_pixel(self) -> ProjectedPoint:
        """Degrees per pixel, x along longitude and y along latitude."""
        return self._degrees_per_pixel

    @property
    def scale_authority(self) -> Optional[ScaleAuthority]:
        return self._scale_authority

    @property
    def tie_authority(self) -> Optional[TieAuthority]:
        return self._tie_authority

    @property
    def image_to_model_azimuth(self) -> float:
        """Accumulated image-to-model rotation in degrees, in [0, 360)."""
        return self._azimuth

    @property
    def model_transform(self) -> ModelTransform:
        return self._transform

    @property
    def geotransform(self) -> list[float]:
        """The model transform as a GDAL 6-parameter geotransform (native units)."""
        return self._transform.to_geotransform()

    @property
    def elevation_lookup_flag(self) -> bool:
        return self._elevation_lookup

    @property
    def projection_units(self) -> UnitType:
        """Declared unit of model coordinates handed to and returned by callers."""
        return self._units

    @property
    def pcs_code(self) -> int:
        """
        EPSG code of the equivalent projected (or geographic) CRS, 0 if none.

        The code is looked up through the code registry on first read and
        memoized until a parameter that defines the projection changes.
        """
        if self._pcs_code is None:
            code = self._code_registry.find_projection_code(self)
            self._pcs_code = code if code else USER_DEFINED_PCS_CODE
            logger.debug(f"Resolved PCS code for {self._kernel.name}: {self._pcs_code}")
        if self._pcs_code == USER_DEFINED_PCS_CODE:
            return 0
        return self._pcs_code

    @property
    def memoized_pcs_code(self) -> int:
        """PCS code already known to this projection, 0 if not looked up or unmatched; never queries the registry."""
        if self._pcs_code is None or self._pcs_code == USER_DEFINED_PCS_CODE:
            return 0
        return self._pcs_code

    def is_geographic(self) -> bool:
        return self._kernel.is_geographic()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_origin(self, origin: GeodeticPoint) -> None:
        """Move the projection origin; the point is re-expressed on the projection datum."""
        self._origin = self._on_datum(origin)
        self._invalidate_pcs_code()
        self._configure_kernel()
        self.update()

    def set_datum(self, datum: Optional[Datum]) -> None:
        """
        Change the projection datum.

        The origin and geodetic tie point are re-expressed on the new datum, the
        ellipsoid is replaced by the datum's, and everything derived is
        re-resolved. None or an equal datum is ignored.
        """
        if datum is None or datum == self._datum:
            return
        logger.debug(f"Changing datum {self._datum.code} -> {datum.code}")
        self._datum = datum
        self._ellipsoid = datum.ellipsoid
        self._origin = self._on_datum(self._origin)
        if self._ul_gpt is not None:
            self._ul_gpt = self._on_datum(self._ul_gpt)
        self._invalidate_pcs_code()
        self._configure_kernel()
        self.update()

    def set_ellipsoid(self, ellipsoid: Ellipsoid) -> None:
        self._ellipsoid = ellipsoid
        self._invalidate_pcs_code()
        self._configure_kernel()
        self.update()

    def set_ab(self, a: float, b: float) -> None:
        """Replace the ellipsoid with one of the given semi-axes."""
        self.set_ellipsoid(self._ellipsoid.with_axes(a, b))

    def set_false_easting_northing(self, false_easting_northing: ProjectedPoint) -> None:
        """Set the false easting/northing in meters."""
        self._false_easting_northing = false_easting_northing
        self._invalidate_pcs_code()
        self._configure_kernel()
        self.update()

    def set_meters_per_pixel(self, meters_per_pixel: ProjectedPoint) -> None:
        """Set the linear pixel scale; degrees per pixel is re-derived."""
        self._meters_per_pixel = meters_per_pixel
        self._scale_authority = ScaleAuthority.LINEAR
        self._resolve_scale()
        self.update_transform()

    def set_decimal_degrees_per_pixel(self, degrees_per_pixel: ProjectedPoint) -> None:
        """Set the angular pixel scale; meters per pixel is re-derived."""
        self._degrees_per_pixel = degrees_per_pixel
        self._scale_authority = ScaleAuthority.ANGULAR
        self._resolve_scale()
        self.update_transform()

    def set_ul_geodetic(self, ul_gpt: GeodeticPoint) -> None:
        """Set the tie point from its geodetic form (shifted to the projection datum)."""
        self._ul_gpt = self._on_datum(ul_gpt)
        self._tie_authority = TieAuthority.GEODETIC
        self._resolve_tie_point()
        self.update_transform()

    def set_ul_easting_northing(self, ul_easting_northing: ProjectedPoint) -> None:
        """Set the tie point from its native model form."""
        self._ul_easting_northing = ul_easting_northing
        self._tie_authority = TieAuthority.MODEL
        self._resolve_tie_point()
        self.update_transform()

    def set_ul_tie_point(self, tie_point: GeodeticPoint | ProjectedPoint) -> None:
        """Set the tie point from either form."""
        if isinstance(tie_point, GeodeticPoint):
            self.set_ul_geodetic(tie_point)
        else:
            self.set_ul_easting_northing(tie_point)

    def set_pcs_code(self, code: int) -> None:
        """Record a known EPSG code; 0 marks it unresolved."""
        self._pcs_code = int(code) if code else None

    def set_elevation_lookup_flag(self, flag: bool) -> None:
        self._elevation_lookup = bool(flag)

    def set_projection_units(self, units: UnitType | str) -> None:
        """Declare the unit of caller-facing model coordinates."""
        if not isinstance(units, UnitType):
            units = parse_unit(units)
        self._units = units

    def set_model_transform(self, transform: ModelTransform) -> None:
        """
        Install an explicit image-to-model transform.

        Scale, azimuth and tie point are back-derived from the matrix. The
        matrix is kept as given until the next re-resolution.
        """
        self._transform = transform
        self.update_from_transform()

    def set_geotransform(self, geotransform: list[float]) -> None:
        """Install a GDAL 6-parameter geotransform (native model units) as the model transform."""
        self.set_model_transform(ModelTransform.from_geotransform(geotransform))

    # ------------------------------------------------------------------
    # Parameter resolution
    # ------------------------------------------------------------------

    def update(self) -> None:
        """
        Resolve every derived value and rebuild the transform.

        Fills in the non-authoritative scale form by sampling the kernel around
        the origin, resolves the tie point (defaulting it to the origin), applies
        a 1-native-unit-per-pixel default scale when none is set, then rebuilds
        the affine transform. Idempotent; kernel NaN results propagate.
        """
        self._resolve_scale()
        self._resolve_tie_point()
        self.update_transform()

    def update_transform(self) -> None:
        """Rebuild the affine transform from native scale, azimuth and tie point."""
        scale = self._native_scale()
        tie = self._ul_easting_northing
        if scale is None or tie is None:
            self.update()
            return
        self._transform = ModelTransform.from_parameters(scale, self._azimuth, tie)

    def update_from_transform(self) -> None:
        """Back-derive native scale, azimuth and tie point from the current transform."""
        scale, azimuth, translation = self._transform.decompose()
        self._azimuth = azimuth
        if self.is_geographic():
            self._degrees_per_pixel = scale
            self._scale_authority = ScaleAuthority.ANGULAR
        else:
            self._meters_per_pixel = scale
            self._scale_authority = ScaleAuthority.LINEAR
        self._ul_easting_northing = translation
        self._tie_authority = TieAuthority.MODEL
        self._resolve_scale()
        self._resolve_tie_point()

    def _resolve_scale(self) -> None:
        if self._degrees_per_pixel is None and self._meters_per_pixel is None:
            self._apply_default_scale()

        if self._scale_authority is None:
            self._scale_authority = (
                ScaleAuthority.ANGULAR if self._meters_per_pixel is None else ScaleAuthority.LINEAR
            )

        if self._scale_authority is ScaleAuthority.ANGULAR:
            self._meters_per_pixel = self._compute_meters_per_pixel(self._degrees_per_pixel)
        else:
            self._degrees_per_pixel = self._compute_degrees_per_pixel(self._meters_per_pixel)

    def _apply_default_scale(self) -> None:
        if self.is_geographic():
            mpd = self._ellipsoid.meters_per_degree(0.0)
            self._degrees_per_pixel = ProjectedPoint(1.0 / mpd.x, 1.0 / mpd.y)
            self._scale_authority = ScaleAuthority.ANGULAR
        else:
            self._meters_per_pixel = ProjectedPoint(1.0, 1.0)
            self._scale_authority = ScaleAuthority.LINEAR
        logger.debug(f"No pixel scale set, defaulting to 1 native unit per pixel ({self._kernel.name})")

    def _resolve_tie_point(self) -> None:
        if self._ul_gpt is None and self._ul_easting_northing is None:
            self._ul_gpt = self._origin
            self._tie_authority = TieAuthority.GEODETIC

        if self._tie_authority is None:
            self._tie_authority = TieAuthority.GEODETIC if self._ul_gpt is not None else TieAuthority.MODEL

        if self._tie_authority is TieAuthority.GEODETIC:
            self._ul_gpt = self._ul_gpt.with_datum(self._datum)
            self._ul_easting_northing = self._kernel.forward(self._ul_gpt)
        else:
            gpt = self._kernel.inverse(self._ul_easting_northing)
            self._ul_gpt = GeodeticPoint(gpt.lat, gpt.lon, math.nan, self._datum)

    def _compute_meters_per_pixel(self, degrees_per_pixel: ProjectedPoint) -> ProjectedPoint:
        """Ground size of a pixel, sampled one pixel east and one pixel south of the origin."""
        origin = self._origin
        if origin.is_lat_lon_nan() or degrees_per_pixel.has_nans():
            return ProjectedPoint.nan()

        east = GeodeticPoint(origin.lat, origin.lon + degrees_per_pixel.x, math.nan, self._datum)
        south = GeodeticPoint(origin.lat - degrees_per_pixel.y, origin.lon, math.nan, self._datum)

        if self.is_geographic():
            geod = _geod(self._ellipsoid.a, self._ellipsoid.b)
            _, _, dx = geod.inv(origin.lon, origin.lat, east.lon, east.lat)
            _, _, dy = geod.inv(origin.lon, origin.lat, south.lon, south.lat)
            return ProjectedPoint(float(dx), float(dy))

        center = self._kernel.forward(origin)
        return ProjectedPoint(
            center.distance_to(self._kernel.forward(east)),
            center.distance_to(self._kernel.forward(south)),
        )

    def _compute_degrees_per_pixel(self, meters_per_pixel: ProjectedPoint) -> ProjectedPoint:
        """Angular size of a pixel, sampled one pixel east and one pixel south of the origin."""
        origin = self._origin
        if origin.is_lat_lon_nan() or meters_per_pixel.has_nans():
            return ProjectedPoint.nan()

        if self.is_geographic():
            geod = _geod(self._ellipsoid.a, self._ellipsoid.b)
            east_lon, east_lat, _ = geod.fwd(origin.lon, origin.lat, 90.0, meters_per_pixel.x)
            south_lon, south_lat, _ = geod.fwd(origin.lon, origin.lat, 180.0, meters_per_pixel.y)
            east = GeodeticPoint(float(east_lat), float(east_lon))
            south = GeodeticPoint(float(south_lat), float(south_lon))
        else:
            center = self._kernel.forward(origin)
            east = self._kernel.inverse(ProjectedPoint(center.x + meters_per_pixel.x, center.y))
            south = self._kernel.inverse(ProjectedPoint(center.x, center.y - meters_per_pixel.y))

        return ProjectedPoint(
            math.hypot(east.lon - origin.lon, east.lat - origin.lat),
            math.hypot(south.lon - origin.lon, south.lat - origin.lat),
        )

    # ------------------------------------------------------------------
    # Scale and rotation
    # ------------------------------------------------------------------

    def apply_scale(self, scale: ProjectedPoint, recenter_tie_point: bool = False) -> None:
        """
        Multiply both pixel scale forms by scale.

        Args:
            scale: Factor along x (sample) and y (line)
            recenter_tie_point: Keep the centre of the upper-left pixel's footprint
                fixed instead of its upper-left corner. The tie point is moved out
                by half the old pixel before scaling and back in by half the new one.
        """
        dpp = self._degrees_per_pixel
        mpp = self._meters_per_pixel

        if self.is_geographic():
            gpt = self._ul_gpt
            lat, lon = gpt.lat, gpt.lon
            if recenter_tie_point:
                lat += dpp.y / 2.0
                lon -= dpp.x / 2.0
            dpp = ProjectedPoint(dpp.x * scale.x, dpp.y * scale.y)
            if recenter_tie_point:
                lat -= dpp.y / 2.0
                lon += dpp.x / 2.0
            self._degrees_per_pixel = dpp
            self._meters_per_pixel = ProjectedPoint(mpp.x * scale.x, mpp.y * scale.y)
            self.set_ul_geodetic(GeodeticPoint(lat, lon, gpt.height, self._datum))
        else:
            en = self._ul_easting_northing
            x, y = en.x, en.y
            if recenter_tie_point:
                x -= mpp.x / 2.0
                y += mpp.y / 2.0
            mpp = ProjectedPoint(mpp.x * scale.x, mpp.y * scale.y)
            if recenter_tie_point:
                x += mpp.x / 2.0
                y -= mpp.y / 2.0
            self._meters_per_pixel = mpp
            self._degrees_per_pixel = ProjectedPoint(dpp.x * scale.x, dpp.y * scale.y)
            self.set_ul_easting_northing(ProjectedPoint(x, y))

    def apply_rotation(self, azimuth_deg: float) -> None:
        """Rotate the image-to-model transform by azimuth_deg; the tie point stays fixed."""
        self._transform = self._transform.rotated(azimuth_deg)
        self._azimuth = (self._azimuth + azimuth_deg) % 360.0

    # ------------------------------------------------------------------
    # Tie point snapping
    # ------------------------------------------------------------------

    def snap_tie_point_to(self, multiple: float, unit: UnitType | str = UnitType.UNKNOWN) -> None:
        """
        Round the tie point to the nearest multiple of a grid spacing.

        In projected mode the grid is anchored at the false easting/northing.

        Args:
            multiple: Grid spacing, must be positive
            unit: Unit of multiple; UNKNOWN means the native model unit
        """
        if not isinstance(unit, UnitType):
            unit = parse_unit(unit)
        if not multiple > 0.0:
            logger.warning(f"Ignoring tie point snap to non-positive multiple {multiple}")
            return

        converter = self.unit_converter()
        if self.is_geographic():
            step = converter.convert(multiple, unit, UnitType.DEGREES)
            gpt = self._ul_gpt
            self.set_ul_geodetic(
                GeodeticPoint(_snap(gpt.lat, 0.0, step), _snap(gpt.lon, 0.0, step), gpt.height, self._datum)
            )
        else:
            step = converter.convert(multiple, unit, UnitType.METERS)
            en = self._ul_easting_northing
            fen = self._false_easting_northing
            self.set_ul_easting_northing(ProjectedPoint(_snap(en.x, fen.x, step), _snap(en.y, fen.y, step)))

    def snap_tie_point_to_origin(self) -> None:
        """Align the tie point to whole pixels counted from the origin's model position."""
        if self.is_geographic():
            gpt = self._ul_gpt
            dpp = self._degrees_per_pixel
            self.set_ul_geodetic(GeodeticPoint(
                _snap(gpt.lat, self._origin.lat, dpp.y),
                _snap(gpt.lon, self._origin.lon, dpp.x),
                gpt.height,
                self._datum,
            ))
        else:
            en = self._ul_easting_northing
            mpp = self._meters_per_pixel
            fen = self._false_easting_northing
            self.set_ul_easting_northing(ProjectedPoint(_snap(en.x, fen.x, mpp.x), _snap(en.y, fen.y, mpp.y)))

    # ------------------------------------------------------------------
    # Coordinate API
    # ------------------------------------------------------------------

    def world_to_pixel(self, world: GeodeticPoint) -> PixelPoint:
        """Project a geodetic point into the image."""
        if world.is_lat_lon_nan():
            return PixelPoint.nan()
        native = self._kernel.forward(self._on_datum(world))
        return self._transform.model_to_image(native)

    def pixel_height_to_world(self, pixel: PixelPoint, height: float) -> GeodeticPoint:
        """Geodetic position of a pixel, reported at the given ellipsoid height."""
        if pixel.has_nans():
            return GeodeticPoint.nan(self._datum)
        gpt = self._kernel.inverse(self._transform.image_to_model(pixel))
        return GeodeticPoint(gpt.lat, gpt.lon, height, self._datum)

    def pixel_to_world(self, pixel: PixelPoint) -> GeodeticPoint:
        """
        Geodetic position of a pixel.

        When the elevation-lookup flag is set and an elevation source is
        available, the height is filled from it (one lookup per call).
        """
        gpt = self.pixel_height_to_world(pixel, math.nan)
        if self._elevation_lookup and self._elevation_source is not None and not gpt.is_lat_lon_nan():
            height = self._elevation_source.height_above_ellipsoid(gpt)
            gpt = GeodeticPoint(gpt.lat, gpt.lon, height, gpt.datum)
        return gpt

    def world_to_model(self, world: GeodeticPoint) -> ProjectedPoint:
        """Model coordinates (declared unit) of a geodetic point on any datum."""
        if world.is_lat_lon_nan():
            return ProjectedPoint.nan()
        return self._native_to_declared(self._kernel.forward(self._on_datum(world)))

    def model_to_world(self, model: ProjectedPoint) -> GeodeticPoint:
        """Geodetic point (projection datum) of model coordinates in the declared unit."""
        if model.has_nans():
            return GeodeticPoint.nan(self._datum)
        gpt = self._kernel.inverse(self._declared_to_native(model))
        return GeodeticPoint(gpt.lat, gpt.lon, math.nan, self._datum)

    def pixel_to_model(self, pixel: PixelPoint) -> ProjectedPoint:
        """Apply the affine transform, then convert native -> declared unit."""
        if pixel.has_nans():
            return ProjectedPoint.nan()
        return self._native_to_declared(self._transform.image_to_model(pixel))

    def model_to_pixel(self, model: ProjectedPoint) -> PixelPoint:
        """Convert declared -> native unit, then apply the inverse affine transform."""
        if model.has_nans():
            return PixelPoint.nan()
        return self._transform.model_to_image(self._declared_to_native(model))

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def same_map_as(self, other: object) -> bool:
        """
        Return True if other describes the same map, ignoring image geometry.

        Matching EPSG codes are sufficient. Otherwise datum, origin, false
        easting/northing, declared unit (which must be known) and the model
        transform must all match exactly.
        """
        if not isinstance(other, MapProjection):
            return False
        if not self._kernel.same_kind_as(other._kernel):
            return False

        code = self.pcs_code
        if code and code == other.pcs_code:
            return True

        if self._datum != other._datum:
            return False
        if not self._origin.is_equal_to(other._origin, CompareMode.STRICT):
            return False
        if not self._false_easting_northing.is_equal_to(other._false_easting_northing, CompareMode.STRICT):
            return False
        if self._units is UnitType.UNKNOWN or self._units is not other._units:
            return False
        return self._transform == other._transform

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MapProjection):
            return NotImplemented
        return self.same_map_as(other)

    def is_equal_to(self, other: object, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """
        Full-state comparison including image geometry.

        Args:
            other: Projection to compare against
            mode: TOLERANT compares numbers within tolerance and datums by
                identity; STRICT compares exactly and datums by value
        """
        if not isinstance(other, MapProjection):
            return False
        if not self._kernel.same_kind_as(other._kernel):
            return False

        if mode is CompareMode.STRICT:
            datum_match = self._datum == other._datum
        else:
            datum_match = self._datum is other._datum

        return (
            datum_match
            and self._ellipsoid.is_equal_to(other._ellipsoid, mode)
            and self._origin.is_equal_to(other._origin, mode)
            and self._degrees_per_pixel.is_equal_to(other._degrees_per_pixel, mode)
            and self._meters_per_pixel.is_equal_to(other._meters_per_pixel, mode)
            and self._ul_gpt.is_equal_to(other._ul_gpt, mode)
            and self._ul_easting_northing.is_equal_to(other._ul_easting_northing, mode)
            and self._false_easting_northing.is_equal_to(other._false_easting_northing, mode)
            and self.pcs_code == other.pcs_code
            and self._elevation_lookup == other._elevation_lookup
            and self._units is other._units
            and self._transform.is_equal_to(other._transform, mode)
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def save_state(self, prefix: str = "") -> dict[str, str]:
        """Return the persisted keyword list of this projection."""
        return persistence.save_state(self, prefix)

    def load_state(self, kwl: Mapping[str, str], prefix: str = "") -> None:
        """
        Restore state from a keyword list.

        Missing grouped keys fall back to legacy keys, then to defaults. A
        16-element image_model_transform_matrix overrides the transform built
        from scale and tie point, which are then back-derived from it. On a
        geographic projection a tie point read in meters becomes degrees.
        """
        state = persistence.read_state(kwl, prefix, self.is_geographic(), self._datum_factory)

        self._datum = state.datum if state.datum is not None else self._datum_factory.wgs84()
        self._ellipsoid = self._datum.ellipsoid
        if state.major_axis is not None and state.minor_axis is not None:
            if (state.major_axis, state.minor_axis) != (self._ellipsoid.a, self._ellipsoid.b):
                self._ellipsoid = self._ellipsoid.with_axes(state.major_axis, state.minor_axis)

        lat = state.origin_latitude if state.origin_latitude is not None else self._origin.lat
        lon = state.central_meridian if state.central_meridian is not None else self._origin.lon
        if (math.isnan(lat) or math.isnan(lon)) and state.transform is not None:
            # Origin falls back to the transform translation
            lon, lat = state.transform.matrix[0, 3], state.transform.matrix[1, 3]
        self._origin = GeodeticPoint(float(lat), float(lon), math.nan, self._datum)
        self._false_easting_northing = state.false_easting_northing

        self._degrees_per_pixel = state.degrees_per_pixel
        self._meters_per_pixel = state.meters_per_pixel
        self._scale_authority = None
        if self._degrees_per_pixel is not None and self._meters_per_pixel is not None:
            self._scale_authority = ScaleAuthority.ANGULAR if self.is_geographic() else ScaleAuthority.LINEAR

        self._ul_gpt = state.ul_geodetic.with_datum(self._datum) if state.ul_geodetic is not None else None
        self._ul_easting_northing = state.ul_easting_northing
        if self.is_geographic() and self._ul_easting_northing is not None:
            # Geographic model space is degrees, a tie point read in meters is converted
            if self._ul_gpt is None:
                self._ul_gpt = self._meters_to_geodetic(self._ul_easting_northing)
            self._ul_easting_northing = None
        self._tie_authority = None
        if self._ul_gpt is not None and self._ul_easting_northing is not None:
            self._tie_authority = TieAuthority.GEODETIC if self.is_geographic() else TieAuthority.MODEL

        if state.units is not None:
            self._units = state.units
        if state.elevation_lookup is not None:
            self._elevation_lookup = state.elevation_lookup
        self._azimuth = 0.0

        self._configure_kernel()
        self._pcs_code = state.pcs_code if state.pcs_code else None

        self.update()
        if state.transform is not None:
            self._transform = state.transform
            self.update_from_transform()

    @classmethod
    def from_state(cls, kwl: Mapping[str, str], prefix: str = "", **services) -> MapProjection:
        """
        Build a projection from a keyword list, choosing the kernel from its "type" key.

        Args:
            kwl: Persisted keyword list
            prefix: Key prefix
            **services: code_registry / elevation_source / datum_factory

        Raises:
            ValueError: If the type key is missing or names an unusable kernel
        """
        kernel_type = kwl.get(prefix + persistence.TYPE_KW)
        if not kernel_type:
            raise ValueError(f"Keyword list has no '{prefix}{persistence.TYPE_KW}' entry")
        kernel = create_kernel(kernel_type, persistence.read_kernel_parameters(kwl, prefix))
        projection = cls(kernel, **services)
        projection.load_state(kwl, prefix)
        return projection

    def assign(self, other: MapProjection) -> None:
        """Copy other's persisted state into this projection."""
        if other is self:
            return
        kwl = other.save_state()
        if not self._kernel.same_kind_as(other._kernel):
            logger.warning(f"Assigning {other._kernel.name} state to a {self._kernel.name} projection")
            # Matrix and code describe the other kernel's model space; rebuild them here
            for key in (persistence.IMAGE_MODEL_TRANSFORM_MATRIX_KW, persistence.PCS_CODE_KW,
                        persistence.SRS_NAME_KW):
                kwl.pop(key, None)
        self.load_state(kwl)

    def copy(self) -> MapProjection:
        """Independent projection with the same kernel kind, services and state."""
        duplicate = MapProjection(
            self._kernel.clone(),
            datum=self._datum,
            origin=self._origin,
            code_registry=self._code_registry,
            elevation_source=self._elevation_source,
            datum_factory=self._datum_factory,
        )
        duplicate.assign(self)
        return duplicate

    def describe(self) -> str:
        """Multi-line human readable summary."""
        lines = [
            f"type: {self._kernel.name}",
            f"major_axis: {self.a:.15f}",
            f"minor_axis: {self.b:.15f}",
            f"datum: {self._datum.code}",
            f"origin: {self._origin}",
            f"false_easting_northing: {self._false_easting_northing}",
            f"ul_geodetic: {self._ul_gpt}",
            f"ul_easting_northing: {self._ul_easting_northing}",
            f"decimal_degrees_per_pixel: {self._degrees_per_pixel}",
            f"meters_per_pixel: {self._meters_per_pixel}",
            f"image_to_model_azimuth: {self._azimuth}",
            f"pcs_code: {self.pcs_code}",
            f"projection_units: {self._units.value}",
            f"elevation_lookup_flag: {self._elevation_lookup}",
        ]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_datum(self, point: GeodeticPoint) -> GeodeticPoint:
        """Re-express point on the projection datum, dropping its height."""
        shifted = point.change_datum(self._datum)
        return GeodeticPoint(shifted.lat, shifted.lon, math.nan, self._datum)

    def _configure_kernel(self) -> None:
        self._kernel.configure(KernelParameters(
            origin=self._origin,
            ellipsoid=self._ellipsoid,
            datum=self._datum,
            false_easting_northing=self._false_easting_northing,
        ))

    def _invalidate_pcs_code(self) -> None:
        self._pcs_code = None

    def _native_unit(self) -> UnitType:
        return UnitType.DEGREES if self.is_geographic() else UnitType.METERS

    def _native_scale(self) -> Optional[ProjectedPoint]:
        return self._degrees_per_pixel if self.is_geographic() else self._meters_per_pixel

    def unit_converter(self) -> UnitConverter:
        """Unit converter using the meters-per-degree of latitude at the origin."""
        latitude = 0.0 if math.isnan(self._origin.lat) else self._origin.lat
        return UnitConverter(self._ellipsoid.meters_per_degree(latitude).y)

    def _meters_to_geodetic(self, model: ProjectedPoint) -> GeodeticPoint:
        """Read an (x, y) pair in meters as (lon, lat) degrees on the projection datum."""
        converter = self.unit_converter()
        return GeodeticPoint(
            converter.convert(model.y, UnitType.METERS, UnitType.DEGREES),
            converter.convert(model.x, UnitType.METERS, UnitType.DEGREES),
            math.nan,
            self._datum,
        )

    def _native_to_declared(self, point: ProjectedPoint) -> ProjectedPoint:
        native = self._native_unit()
        if self._units is native or self._units is UnitType.UNKNOWN:
            return point
        converter = self.unit_converter()
        return ProjectedPoint(
            converter.convert(point.x, native, self._units),
            converter.convert(point.y, native, self._units),
        )

    def _declared_to_native(self, point: ProjectedPoint) -> ProjectedPoint:
        native = self._native_unit()
        if self._units is native or self._units is UnitType.UNKNOWN:
            return point
        converter = self.unit_converter()
        return ProjectedPoint(
            converter.convert(point.x, self._units, native),
            converter.convert(point.y, self._units, native),
        )
