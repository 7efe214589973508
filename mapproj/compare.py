"""Strict and tolerant comparison helpers used by the state comparators."""

from __future__ import annotations

import math
from enum import Enum

import numpy as np

# Absolute tolerance for tolerant comparisons (degrees or meters)
ABSOLUTE_TOLERANCE = 1e-9

# Relative tolerance for tolerant comparisons
RELATIVE_TOLERANCE = 1e-9


class CompareMode(Enum):
    """How two values are compared by is_equal_to()."""

    STRICT = "strict"
    """Exact equality; datums compared by value."""

    TOLERANT = "tolerant"
    """Equality within ABSOLUTE_TOLERANCE / RELATIVE_TOLERANCE; datums compared by identity."""


def values_equal(a: float, b: float, mode: CompareMode = CompareMode.TOLERANT) -> bool:
    """
    Compare two scalars.

    Two NaN values are equal (both mean "unset"); NaN never equals a number.
    """
    a_nan = math.isnan(a)
    b_nan = math.isnan(b)
    if a_nan or b_nan:
        return a_nan and b_nan
    if mode is CompareMode.STRICT:
        return a == b
    return math.isclose(a, b, rel_tol=RELATIVE_TOLERANCE, abs_tol=ABSOLUTE_TOLERANCE)


def arrays_equal(a: np.ndarray, b: np.ndarray, mode: CompareMode = CompareMode.TOLERANT) -> bool:
    """Compare two arrays element-wise with the same NaN rules as values_equal()."""
    if a.shape != b.shape:
        return False
    if mode is CompareMode.STRICT:
        return bool(np.array_equal(a, b, equal_nan=True))
    return bool(np.allclose(a, b, rtol=RELATIVE_TOLERANCE, atol=ABSOLUTE_TOLERANCE, equal_nan=True))
