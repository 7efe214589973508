"""
Map Projection Package.

This package keeps the georeferencing of a raster consistent: a map projection
(origin, datum, false easting/northing), the image geometry (tie point and
pixel scale, each in geodetic and model form) and the affine image-to-model
transform that ties them together.

Coordinates move between three spaces:
    - world: latitude / longitude / height on a datum
    - model: easting / northing (or lon / lat for geographic projections)
    - pixel: sample / line, line growing downward

Projection equations and datum shifts are delegated to PROJ through pyproj.

Example Usage:
    >>> from mapproj import MapProjection, GeodeticPoint, ProjectedPoint, PixelPoint
    >>> from mapproj.kernels import transverse_mercator
    >>>
    >>> proj = MapProjection(transverse_mercator(), origin=GeodeticPoint(0.0, 15.0))
    >>> proj.set_false_easting_northing(ProjectedPoint(500000.0, 0.0))
    >>> proj.set_meters_per_pixel(ProjectedPoint(30.0, 30.0))
    >>> proj.set_ul_easting_northing(ProjectedPoint(499980.0, 5000010.0))
    >>> gpt = proj.pixel_to_world(PixelPoint(100.5, 200.5))

Available Classes:
    Core:
        - MapProjection: Projection state and coordinate API
        - ModelTransform: Affine pixel <-> model transform
        - GeodeticPoint, ProjectedPoint, PixelPoint: Point value types
        - CompareMode: Strict or tolerant state comparison

    Collaborators:
        - ProjectionKernel, GeographicKernel, PyprojKernel: Projection equations
        - Datum, DatumFactory, Ellipsoid: Geodetic reference frames
        - CrsCodeRegistry, GridElevationSource, ConstantElevationSource: Services

    Configuration:
        - ProjectionConfig: YAML projection configuration
"""

# Core types
from mapproj.affine import ModelTransform
from mapproj.compare import CompareMode
from mapproj.points import GeodeticPoint, PixelPoint, ProjectedPoint
from mapproj.projection import MapProjection
from mapproj.units import UnitConverter, UnitType

# Collaborators
from mapproj.datum import Datum, DatumFactory, get_datum_factory
from mapproj.ellipsoid import Ellipsoid
from mapproj.kernels import (
    CoordinateSpace,
    GeographicKernel,
    ProjectionKernel,
    PyprojKernel,
    create_kernel,
)
from mapproj.services import ConstantElevationSource, CrsCodeRegistry, GridElevationSource

# Configuration
from mapproj.config import ProjectionConfig, get_default_config

# Define public API
__all__ = [
    # Core
    'MapProjection',
    'ModelTransform',
    'GeodeticPoint',
    'ProjectedPoint',
    'PixelPoint',
    'CompareMode',
    'UnitType',
    'UnitConverter',

    # Collaborators
    'ProjectionKernel',
    'GeographicKernel',
    'PyprojKernel',
    'CoordinateSpace',
    'create_kernel',
    'Datum',
    'DatumFactory',
    'Ellipsoid',
    'get_datum_factory',
    'CrsCodeRegistry',
    'ConstantElevationSource',
    'GridElevationSource',

    # Configuration
    'ProjectionConfig',
    'get_default_config',
]

# Package metadata
__version__ = '0.1.0'
__description__ = 'Map projection state and image/model/world coordinate transforms'
