"""
Projection kernels: the forward/inverse map equations behind a MapProjection.

A kernel converts geodetic points to model points (forward) and back (inverse)
in its native unit: degrees for geographic kernels, meters for projected ones.
The engine never implements projection equations; kernels either are the
identity lat/lon plate (GeographicKernel) or delegate to PROJ (PyprojKernel).

Kernel Contract:
    - forward(GeodeticPoint) -> ProjectedPoint
    - inverse(ProjectedPoint) -> GeodeticPoint
    - coordinate_space / is_geographic()
    - configure(KernelParameters): called by the owning projection whenever
      origin, ellipsoid, datum or false easting/northing change
    - crs: pyproj CRS equivalent to the configured kernel, used for EPSG lookup

Degenerate inputs and points PROJ cannot project come back as NaN, never as
exceptions.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from mapproj.datum import Datum
from mapproj.ellipsoid import Ellipsoid, wgs84_ellipsoid
from mapproj.points import GeodeticPoint, ProjectedPoint
from mapproj.types import Degrees, Unitless

logger = logging.getLogger(__name__)

GEOGRAPHIC_KERNEL_NAME = "geographic"


class CoordinateSpace(Enum):
    """Kind of model space a kernel produces."""

    GEOGRAPHIC = "geographic"
    """Model coordinates are (longitude, latitude) in degrees."""

    PROJECTED = "projected"
    """Model coordinates are (easting, northing) in meters."""


@dataclass(frozen=True)
class KernelParameters:
    """Projection parameters a kernel is configured from.

    Attributes:
        origin: Projection origin (latitude of origin, central meridian).
        ellipsoid: Ellipsoid the equations run on.
        datum: Datum of the projection, None if unspecified.
        false_easting_northing: Model offset added to every forward result (meters).
    """

    origin: GeodeticPoint = field(default_factory=lambda: GeodeticPoint(0.0, 0.0))
    ellipsoid: Ellipsoid = field(default_factory=wgs84_ellipsoid)
    datum: Optional[Datum] = None
    false_easting_northing: ProjectedPoint = field(default_factory=lambda: ProjectedPoint(0.0, 0.0))


class ProjectionKernel(ABC):
    """Abstract base class for projection kernels."""

    def __init__(self):
        self._parameters = KernelParameters()

    @property
    @abstractmethod
    def name(self) -> str:
        """Kernel type name, persisted as the projection "type"."""

    @property
    @abstractmethod
    def coordinate_space(self) -> CoordinateSpace:
        """Model space this kernel produces."""

    @property
    def options(self) -> dict[str, Any]:
        """Constructor options that identify this concrete kernel (besides its name)."""
        return {}

    @property
    def parameters(self) -> KernelParameters:
        """Parameters from the most recent configure() call."""
        return self._parameters

    @property
    def crs(self) -> CRS | None:
        """Equivalent pyproj CRS, None when no CRS can be formed."""
        return None

    def is_geographic(self) -> bool:
        """Return True if model coordinates are degrees."""
        return self.coordinate_space is CoordinateSpace.GEOGRAPHIC

    def configure(self, parameters: KernelParameters) -> None:
        """Adopt new projection parameters."""
        self._parameters = parameters

    def same_kind_as(self, other: ProjectionKernel) -> bool:
        """Return True if other is the same concrete kernel with the same options."""
        return type(self) is type(other) and self.name == other.name and self.options == other.options

    def clone(self) -> ProjectionKernel:
        """Return an unconfigured copy of this kernel."""
        return type(self)(**self.options)

    @abstractmethod
    def forward(self, point: GeodeticPoint) -> ProjectedPoint:
        """Project a geodetic point to model coordinates."""

    @abstractmethod
    def inverse(self, point: ProjectedPoint) -> GeodeticPoint:
        """Unproject model coordinates to a geodetic point on the kernel's datum."""


class GeographicKernel(ProjectionKernel):
    """
    Plain latitude/longitude plate: model x is longitude, model y is latitude.

    Usage:
        >>> kernel = GeographicKernel()
        >>> kernel.forward(GeodeticPoint(10.0, 20.0))
        ProjectedPoint(x=20.0, y=10.0)
    """

    @property
    def name(self) -> str:
        return GEOGRAPHIC_KERNEL_NAME

    @property
    def coordinate_space(self) -> CoordinateSpace:
        return CoordinateSpace.GEOGRAPHIC

    @property
    def crs(self) -> CRS | None:
        datum = self._parameters.datum
        if datum is None or datum.epsg is None:
            return None
        return CRS.from_epsg(datum.epsg)

    def forward(self, point: GeodeticPoint) -> ProjectedPoint:
        return ProjectedPoint(point.lon, point.lat)

    def inverse(self, point: ProjectedPoint) -> GeodeticPoint:
        return GeodeticPoint(point.y, point.x, math.nan, self._parameters.datum)


class PyprojKernel(ProjectionKernel):
    """
    Kernel delegating the projection equations to PROJ.

    The PROJ definition is assembled from the projection name, the configured
    origin (lat_0 / lon_0), false easting/northing (x_0 / y_0) and ellipsoid
    (or named datum). Entries in `parameters` take precedence, which is how
    projection-specific values such as a scale factor or a fixed lat_0 are given.

    Usage:
        >>> kernel = PyprojKernel("tmerc", {"k_0": 0.9996})
        >>> kernel.configure(KernelParameters(origin=GeodeticPoint(0.0, -3.0),
        ...                                   false_easting_northing=ProjectedPoint(500000.0, 0.0)))
        >>> round(kernel.forward(GeodeticPoint(0.0, -3.0)).x, 3)
        500000.0
    """

    def __init__(self, projection: str, parameters: dict[str, Any] | None = None):
        """
        Initialize the kernel.

        Args:
            projection: PROJ projection name, e.g. "tmerc", "stere", "lcc", "merc"
            parameters: Extra PROJ parameters (e.g. {"k_0": 0.9996})
        """
        super().__init__()
        if projection == GEOGRAPHIC_KERNEL_NAME:
            raise ValueError("Use GeographicKernel for geographic model space")
        self._projection = projection
        self._extra = dict(parameters or {})
        self._crs: CRS | None = None
        self._to_model: Transformer | None = None
        self._to_geodetic: Transformer | None = None

    @property
    def name(self) -> str:
        return self._projection

    @property
    def coordinate_space(self) -> CoordinateSpace:
        return CoordinateSpace.PROJECTED

    @property
    def options(self) -> dict[str, Any]:
        return {"projection": self._projection, "parameters": dict(self._extra)}

    @property
    def crs(self) -> CRS | None:
        return self._crs

    def configure(self, parameters: KernelParameters) -> None:
        """
        Rebuild the PROJ transformers for new parameters.

        Raises:
            ValueError: If PROJ rejects the resulting definition
        """
        super().configure(parameters)

        shape = _ellipsoid_definition(parameters.ellipsoid, parameters.datum)
        definition: dict[str, Any] = {"proj": self._projection}
        origin = parameters.origin
        if not math.isnan(origin.lat):
            definition["lat_0"] = origin.lat
        if not math.isnan(origin.lon):
            definition["lon_0"] = origin.lon
        definition["x_0"] = parameters.false_easting_northing.x
        definition["y_0"] = parameters.false_easting_northing.y
        definition.update(shape)
        definition["units"] = "m"
        definition.update(self._extra)

        try:
            crs = CRS.from_dict(definition)
            geographic = CRS.from_dict({"proj": "longlat", **shape})
        except CRSError as e:
            raise ValueError(f"PROJ rejected projection definition {definition}: {e}") from e

        self._crs = crs
        self._to_model = Transformer.from_crs(geographic, crs, always_xy=True)
        self._to_geodetic = Transformer.from_crs(crs, geographic, always_xy=True)
        logger.debug(f"Configured {self._projection} kernel: {crs.srs}")

    def forward(self, point: GeodeticPoint) -> ProjectedPoint:
        if self._to_model is None:
            raise RuntimeError("Kernel not configured. Call configure() first.")
        if point.is_lat_lon_nan():
            return ProjectedPoint.nan()
        x, y = self._to_model.transform(point.lon, point.lat)
        if not (math.isfinite(x) and math.isfinite(y)):
            return ProjectedPoint.nan()
        return ProjectedPoint(x, y)

    def inverse(self, point: ProjectedPoint) -> GeodeticPoint:
        if self._to_geodetic is None:
            raise RuntimeError("Kernel not configured. Call configure() first.")
        datum = self._parameters.datum
        if point.has_nans():
            return GeodeticPoint.nan(datum)
        lon, lat = self._to_geodetic.transform(point.x, point.y)
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return GeodeticPoint.nan(datum)
        return GeodeticPoint(lat, lon, math.nan, datum)


def _ellipsoid_definition(ellipsoid: Ellipsoid, datum: Datum | None) -> dict[str, Any]:
    """PROJ shape keys: a named datum when it matches the ellipsoid, explicit axes otherwise."""
    if datum is not None and datum.proj_datum and datum.ellipsoid == ellipsoid:
        return {"datum": datum.proj_datum}
    return {"a": ellipsoid.a, "b": ellipsoid.b}


def transverse_mercator(scale_factor: Unitless = Unitless(0.9996)) -> PyprojKernel:
    """Transverse Mercator kernel; the central meridian is the projection origin longitude."""
    return PyprojKernel("tmerc", {"k_0": scale_factor})


def polar_stereographic(latitude_of_true_scale: Degrees = Degrees(71.0), north: bool = True) -> PyprojKernel:
    """Polar stereographic kernel centred on the north (or south) pole."""
    return PyprojKernel("stere", {"lat_0": 90.0 if north else -90.0, "lat_ts": latitude_of_true_scale})


def create_kernel(name: str, parameters: dict[str, Any] | None = None) -> ProjectionKernel:
    """
    Build a kernel from its persisted type name.

    Args:
        name: "geographic" or a PROJ projection name
        parameters: Extra PROJ parameters for PROJ kernels

    Returns:
        Unconfigured kernel
    """
    if name == GEOGRAPHIC_KERNEL_NAME:
        if parameters:
            logger.warning(f"Ignoring parameters for geographic kernel: {parameters}")
        return GeographicKernel()
    return PyprojKernel(name, parameters)
