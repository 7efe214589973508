"""
Affine image-to-model transform.

The transform is stored as a 4x4 homogeneous matrix so it can be exchanged with
general 3-D transform representations (persisted state carries all 16 values).
Only the top-left 2x2 block (scale and rotation) and the translation column are
meaningful for a map projection; the remaining cells are identity padding.

Pixel coordinates are (sample, line) with the line axis growing downward, while
model northing grows upward. With linear scale (sx, sy), azimuth θ and the
upper-left model point (tx, ty), the rotation/scale rule

    row0 = [ sx·cosθ ,  sy·sinθ , 0, tx ]
    row1 = [-sx·sinθ ,  sy·cosθ , 0, ty ]

is stated for the pixel-up frame (sample, -line). The stored matrix folds the
line flip into its second column so it multiplies (sample, line, 0, 1) directly:

    row0 = [ sx·cosθ , -sy·sinθ , 0, tx ]
    row1 = [-sx·sinθ , -sy·cosθ , 0, ty ]

The inverse is always numpy's matrix inverse of the forward matrix.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from mapproj.compare import CompareMode, arrays_equal
from mapproj.geotransform import apply_geotransform
from mapproj.points import PixelPoint, ProjectedPoint

logger = logging.getLogger(__name__)

MATRIX_ELEMENT_COUNT = 16


class ModelTransform:
    """
    Immutable pixel <-> model affine transform with a cached inverse.

    Usage:
        >>> t = ModelTransform.from_parameters(
        ...     ProjectedPoint(0.5, 0.5), 0.0, ProjectedPoint(500000.0, 4400000.0))
        >>> t.image_to_model(PixelPoint(10, 20))
        ProjectedPoint(x=500005.0, y=4399990.0)
    """

    def __init__(self, matrix: np.ndarray | None = None):
        """
        Initialize from a 4x4 matrix (identity when omitted).

        Raises:
            ValueError: If matrix is not 4x4
        """
        if matrix is None:
            m = np.identity(4)
        else:
            m = np.array(matrix, dtype=float)
            if m.shape != (4, 4):
                raise ValueError(f"Model transform must be 4x4, got shape {m.shape}")
        m.setflags(write=False)
        self._matrix = m
        self._inverse = _invert(m)

    @classmethod
    def identity(cls) -> ModelTransform:
        """Return the identity transform."""
        return cls()

    @classmethod
    def from_parameters(cls, scale: ProjectedPoint, azimuth_deg: float,
                        translation: ProjectedPoint) -> ModelTransform:
        """
        Build the transform from linear scale, azimuth and upper-left model point.

        Args:
            scale: Model units per pixel along sample (x) and line (y)
            azimuth_deg: Image-to-model rotation in degrees
            translation: Model coordinates of pixel (0, 0)

        Returns:
            New ModelTransform
        """
        cos_az, sin_az = 1.0, 0.0
        if azimuth_deg != 0.0:
            az = math.radians(azimuth_deg)
            cos_az, sin_az = math.cos(az), math.sin(az)

        m = np.identity(4)
        m[0, 0] = scale.x * cos_az
        m[0, 1] = -scale.y * sin_az
        m[1, 0] = -scale.x * sin_az
        m[1, 1] = -scale.y * cos_az
        m[0, 3] = translation.x
        m[1, 3] = translation.y
        return cls(m)

    @classmethod
    def from_elements(cls, elements: Sequence[float]) -> ModelTransform:
        """
        Build the transform from 16 row-major values.

        Raises:
            ValueError: If elements does not hold exactly 16 values
        """
        if len(elements) != MATRIX_ELEMENT_COUNT:
            raise ValueError(
                f"Model transform matrix must have {MATRIX_ELEMENT_COUNT} elements, got {len(elements)}"
            )
        return cls(np.array([float(e) for e in elements]).reshape(4, 4))

    @classmethod
    def from_geotransform(cls, gt: Sequence[float]) -> ModelTransform:
        """Build the transform from a GDAL 6-parameter geotransform."""
        if len(gt) != 6:
            raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")
        m = np.identity(4)
        m[0, 3], m[0, 0], m[0, 1], m[1, 3], m[1, 0], m[1, 1] = (float(v) for v in gt)
        return cls(m)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 4x4 forward matrix."""
        return self._matrix

    @property
    def inverse_matrix(self) -> np.ndarray:
        """Read-only 4x4 inverse matrix."""
        return self._inverse

    def image_to_model(self, pixel: PixelPoint) -> ProjectedPoint:
        """Map (sample, line) to native model coordinates."""
        m = self._matrix
        return ProjectedPoint(
            float(m[0, 0] * pixel.x + m[0, 1] * pixel.y + m[0, 3]),
            float(m[1, 0] * pixel.x + m[1, 1] * pixel.y + m[1, 3]),
        )

    def model_to_image(self, model: ProjectedPoint) -> PixelPoint:
        """Map native model coordinates to (sample, line)."""
        m = self._inverse
        return PixelPoint(
            float(m[0, 0] * model.x + m[0, 1] * model.y + m[0, 3]),
            float(m[1, 0] * model.x + m[1, 1] * model.y + m[1, 3]),
        )

    def rotated(self, delta_deg: float) -> ModelTransform:
        """
        Compose a rotation of delta_deg onto the current scale/rotation basis.

        The translation column is left untouched. All products are taken from a
        snapshot of the pre-rotation matrix.
        """
        az = math.radians(delta_deg)
        cos_az, sin_az = math.cos(az), math.sin(az)

        m = np.array(self._matrix)
        m00, m01 = self._matrix[0, 0], self._matrix[0, 1]
        m10, m11 = self._matrix[1, 0], self._matrix[1, 1]
        m[0, 0] = cos_az * m00 + sin_az * m10
        m[0, 1] = cos_az * m01 + sin_az * m11
        m[1, 0] = -sin_az * m00 + cos_az * m10
        m[1, 1] = -sin_az * m01 + cos_az * m11
        return ModelTransform(m)

    def decompose(self) -> tuple[ProjectedPoint, float, ProjectedPoint]:
        """
        Recover (scale, azimuth_deg, translation) from the matrix.

        Scale comes from the column norms of the 2x2 block, the x and y
        translations from their own cells, and the azimuth from atan2 so the
        full [0, 360) range is recovered.
        """
        m = self._matrix
        sx = math.hypot(m[0, 0], m[1, 0])
        sy = math.hypot(m[0, 1], m[1, 1])
        azimuth = 0.0
        if sx > 0.0:
            azimuth = math.degrees(math.atan2(-m[1, 0], m[0, 0])) % 360.0
        return ProjectedPoint(sx, sy), azimuth, ProjectedPoint(float(m[0, 3]), float(m[1, 3]))

    def to_elements(self) -> list[float]:
        """Return the 16 row-major values."""
        return [float(v) for v in self._matrix.reshape(-1)]

    def to_geotransform(self) -> list[float]:
        """Return the equivalent GDAL 6-parameter geotransform."""
        m = self._matrix
        return [float(m[0, 3]), float(m[0, 0]), float(m[0, 1]),
                float(m[1, 3]), float(m[1, 0]), float(m[1, 1])]

    def apply_geotransform(self, pixel: PixelPoint) -> ProjectedPoint:
        """Map a pixel through the GDAL form of this transform."""
        x, y = apply_geotransform(pixel.x, pixel.y, self.to_geotransform())
        return ProjectedPoint(x, y)

    def is_identity(self) -> bool:
        """Return True if the forward matrix is exactly the identity."""
        return bool(np.array_equal(self._matrix, np.identity(4)))

    def is_equal_to(self, other: ModelTransform, mode: CompareMode = CompareMode.TOLERANT) -> bool:
        """Compare forward matrices."""
        return arrays_equal(self._matrix, other._matrix, mode)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModelTransform):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other._matrix))

    def __repr__(self) -> str:
        return f"ModelTransform({self._matrix.tolist()!r})"


def _invert(matrix: np.ndarray) -> np.ndarray:
    """Invert matrix, yielding an all-NaN matrix for degenerate input."""
    if not np.all(np.isfinite(matrix)):
        inverse = np.full((4, 4), np.nan)
    else:
        try:
            inverse = np.linalg.inv(matrix)
        except np.linalg.LinAlgError:
            logger.warning("Model transform is singular, inverse transform is undefined")
            inverse = np.full((4, 4), np.nan)
    inverse.setflags(write=False)
    return inverse
