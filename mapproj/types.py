"""
Unit type annotations for map-projection parameters.

NewType aliases documenting the unit a float is expressed in. They cost nothing
at runtime and let static checkers catch a degrees value handed to a meters
parameter.

Usage Example:
    >>> from mapproj.types import Degrees, Meters
    >>>
    >>> def meters_per_degree(latitude: Degrees) -> Meters:
    ...     pass
"""

from typing import NewType

# Angular units
Degrees = NewType('Degrees', float)
"""Angle in decimal degrees (latitude, longitude, azimuth, degrees per pixel)"""

# Distance units
Meters = NewType('Meters', float)
"""Distance in meters (easting, northing, meters per pixel, ellipsoid axes)"""

# Dimensionless quantities
Unitless = NewType('Unitless', float)
"""Dimensionless scalar (scale factors, flattening)"""
