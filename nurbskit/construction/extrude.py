"""
Surface of linear extrusion.

The curve sweeps along a fixed vector. The v direction is linear
(degree 1, V = [0, 0, 1, 1]): row j = 0 holds the curve control points,
row j = 1 the same points translated by the direction. Weights are
copied, so the translation is applied to the Euclidean positions.
"""

import numpy as np

from ..errors import DegenerateDirection
from ..discretization.knot_vector import KnotVector
from ..geometry.curve import NURBSCurve
from ..geometry.surface import NURBSSurface


def extrude(curve: NURBSCurve, direction) -> NURBSSurface:
    """
    Extrude a curve along a direction vector.

    S(u, 0) = C(u) and S(u, 1) = C(u) + direction.

    Parameters:
        curve: Profile curve
        direction: Translation vector of the curve's dimension

    Returns:
        NURBSSurface with degrees (curve.degree, 1)

    Raises:
        DegenerateDirection: If the direction has zero length
        ValueError: If the direction dimension differs from the curve's
    """
    backend = curve.backend
    direction = backend.asarray(direction)
    if direction.shape != (curve.n_dim_physical,):
        raise ValueError(
            f"Direction shape {direction.shape} must match curve dimension ({curve.n_dim_physical},)"
        )
    if not np.all(np.isfinite(direction)):
        raise ValueError("Direction must be finite")
    if np.linalg.norm(direction) <= backend.eps:
        raise DegenerateDirection("Extrusion direction has zero length")

    H = curve.homogeneous_control_points
    top = H.copy()
    top[:, :-1] += H[:, -1:] * direction

    kv_v = KnotVector(np.array([0.0, 0.0, 1.0, 1.0]), 1, dtype=backend.dtype)
    return NURBSSurface.from_homogeneous(
        curve.knot_vector, kv_v, np.stack([H, top], axis=1), backend
    )
