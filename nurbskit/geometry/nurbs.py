"""
NURBS (Non-Uniform Rational B-Spline) geometry base.

NURBS extend B-splines by introducing weights for each control point,
enabling exact representation of conic sections (circles, ellipses, etc.).

A NURBS curve point is computed as:

    C(u) = sum_i (N_i(u) * w_i * P_i) / sum_i (N_i(u) * w_i)

Control points are stored in homogeneous (rational) coordinates

    Pw_i = (w_i * P_i, w_i)

so that evaluation is a plain B-spline sum followed by one division by
the accumulated weight. Derivatives are computed on the homogeneous
curve and converted with the quotient rule.

This module provides:
- NURBSGeometry: Abstract base for NURBS curves and surfaces
- Homogeneous coordinate helpers shared by curves and surfaces

The concrete classes live in curve.py (NURBSCurve) and surface.py
(NURBSSurface).
"""

import numpy as np
from abc import ABC, abstractmethod

from ..numeric import NumericBackend


class NURBSGeometry(ABC):
    """
    Abstract base class for NURBS geometry objects.

    Instances are immutable: every array they hand out is a copy or a
    read-only view, and every modifying operation returns a new object.
    """

    _backend: NumericBackend

    @property
    @abstractmethod
    def n_dim_parametric(self) -> int:
        """Number of parametric dimensions (1=curve, 2=surface)."""

    @property
    @abstractmethod
    def n_dim_physical(self) -> int:
        """Number of physical/spatial dimensions."""

    @property
    @abstractmethod
    def n_control_points(self) -> int:
        """Total number of control points."""

    @property
    @abstractmethod
    def control_points(self) -> np.ndarray:
        """Euclidean control point coordinates."""

    @property
    @abstractmethod
    def weights(self) -> np.ndarray:
        """NURBS weights."""

    @property
    @abstractmethod
    def homogeneous_control_points(self) -> np.ndarray:
        """Control points as (w * P, w) rows."""

    @abstractmethod
    def transformed(self, matrix) -> "NURBSGeometry":
        """Copy with the control point positions mapped by a matrix."""

    @abstractmethod
    def cast(self, dtype) -> "NURBSGeometry":
        """Copy in another floating-point precision."""

    @property
    def backend(self) -> NumericBackend:
        """Numeric backend captured at construction."""
        return self._backend

    @property
    def dtype(self) -> np.dtype:
        return self._backend.dtype

    @property
    def is_rational(self) -> bool:
        """False if all weights are equal (the geometry is a plain B-spline)."""
        w = self.weights
        return not np.allclose(w, w.flat[0], rtol=0.0, atol=self._backend.tolerance)


def to_homogeneous(points: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Convert Euclidean points and weights to homogeneous coordinates.

    Parameters:
        points: Array of shape (..., d)
        weights: Array of shape (...)

    Returns:
        Array of shape (..., d+1) with rows (w * P, w)
    """
    weights = weights[..., np.newaxis]
    return np.concatenate([points * weights, weights], axis=-1)


def from_homogeneous(homogeneous: np.ndarray):
    """
    Split homogeneous coordinates into Euclidean points and weights.

    Returns:
        (points, weights) with shapes (..., d) and (...)
    """
    weights = homogeneous[..., -1]
    points = homogeneous[..., :-1] / weights[..., np.newaxis]
    return points, weights


def validate_weights(weights: np.ndarray, expected_shape) -> None:
    """Check shape and positivity of a weight array."""
    if weights.shape != tuple(expected_shape):
        raise ValueError(
            f"Weights shape {weights.shape} must match control points {tuple(expected_shape)}"
        )
    if not np.all(np.isfinite(weights)):
        raise ValueError("All weights must be finite")
    if np.any(weights <= 0):
        raise ValueError("All weights must be positive")


def apply_matrix(points: np.ndarray, matrix) -> np.ndarray:
    """
    Map Euclidean points by a linear or homogeneous matrix.

    A (d, d) matrix is applied directly. A (d+1, d+1) matrix is applied
    to (P, 1) and the result divided by its last coordinate, so affine
    4x4 (3-D) or 3x3 (2-D) transforms work as expected.

    Parameters:
        points: Array of shape (n, d)
        matrix: (d, d) or (d+1, d+1) matrix

    Returns:
        Transformed points of shape (n, d)
    """
    matrix = np.asarray(matrix, dtype=points.dtype)
    d = points.shape[-1]

    if matrix.shape == (d, d):
        return points @ matrix.T
    if matrix.shape == (d + 1, d + 1):
        ones = np.ones(points.shape[:-1] + (1,), dtype=points.dtype)
        mapped = np.concatenate([points, ones], axis=-1) @ matrix.T
        scale = mapped[..., -1:]
        if np.any(np.abs(scale) <= np.finfo(points.dtype).eps):
            raise ValueError("Projective transform maps a control point to infinity")
        return mapped[..., :-1] / scale
    raise ValueError(
        f"Transform matrix must be ({d}, {d}) or ({d + 1}, {d + 1}), got {matrix.shape}"
    )


def readonly(array: np.ndarray) -> np.ndarray:
    """Mark an array as read-only and return it."""
    array.setflags(write=False)
    return array
