#!/usr/bin/env python3
"""
Utility functions for GDAL 6-parameter affine geotransforms.

A GDAL GeoTransform maps raster (pixel, line) to model (x, y):
    Xgeo = GT[0] + P*GT[1] + L*GT[2]
    Ygeo = GT[3] + P*GT[4] + L*GT[5]

The model transform of a map projection is exactly such an affine, so these
helpers are used to export/import it and to address elevation grids.

References:
    - GDAL GeoTransform: https://gdal.org/tutorials/geotransforms_tut.html
"""

from typing import List, Sequence, Tuple


def apply_geotransform(px: float, py: float, gt: Sequence[float]) -> Tuple[float, float]:
    """
    Apply a GDAL 6-parameter geotransform to convert pixel to model coordinates.

    Where:
        GT[0]: X-coordinate of upper-left corner
        GT[1]: Pixel width (model units per pixel in X direction)
        GT[2]: Row rotation (0 for north-up images)
        GT[3]: Y-coordinate of upper-left corner
        GT[4]: Column rotation (0 for north-up images)
        GT[5]: Pixel height (model units per pixel in Y direction, negative for north-up)

    Pixel Origin Convention:
        GDAL GeoTransform references the UPPER-LEFT CORNER of a pixel.
        To get pixel CENTER coordinates, add 0.5 to both px and py before calling.

    Args:
        px: Pixel X coordinate (sample), 0-indexed from left
        py: Pixel Y coordinate (line), 0-indexed from top
        gt: GeoTransform array [GT0, GT1, GT2, GT3, GT4, GT5]

    Returns:
        Tuple of (x, y) in the raster's model coordinate system.

    Raises:
        ValueError: If gt does not have exactly 6 elements

    Examples:
        >>> gt = [737575.05, 0.15, 0, 4391595.45, 0, -0.15]
        >>> easting, northing = apply_geotransform(10, 20, gt)
        >>> print(f"({easting:.2f}, {northing:.2f})")
        (737576.55, 4391592.45)
    """
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")

    x = gt[0] + px * gt[1] + py * gt[2]
    y = gt[3] + px * gt[4] + py * gt[5]
    return x, y


def invert_geotransform(gt: Sequence[float]) -> List[float]:
    """
    Compute the inverse of a GDAL geotransform (model -> pixel).

    The result is itself a 6-parameter geotransform, so apply_geotransform()
    with the inverse maps (x, y) back to (pixel, line).

    Args:
        gt: GeoTransform array [GT0, GT1, GT2, GT3, GT4, GT5]

    Returns:
        Inverse geotransform

    Raises:
        ValueError: If gt does not have 6 elements or is singular
    """
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")

    det = gt[1] * gt[5] - gt[2] * gt[4]
    if det == 0.0:
        raise ValueError("geotransform is singular and cannot be inverted")

    inv_det = 1.0 / det
    a = gt[5] * inv_det
    b = -gt[2] * inv_det
    d = -gt[4] * inv_det
    e = gt[1] * inv_det
    return [
        -gt[0] * a - gt[3] * b, a, b,
        -gt[0] * d - gt[3] * e, d, e,
    ]
