"""
Frenet frames along 3-D curves.

    T = C' / |C'|
    B = (C' x C'') / |C' x C''|
    N = B x T

Where the curvature vanishes (straight segments, inflection points) the
binormal is undefined; a vector perpendicular to T is used instead so the
frame stays orthonormal.
"""

import numpy as np
from typing import NamedTuple


class FrenetFrame(NamedTuple):
    """Orthonormal moving frame at a curve point."""
    position: np.ndarray
    tangent: np.ndarray
    normal: np.ndarray
    binormal: np.ndarray


def _perpendicular(t: np.ndarray) -> np.ndarray:
    """Unit vector perpendicular to the unit vector t."""
    axis = np.zeros_like(t)
    axis[int(np.argmin(np.abs(t)))] = 1.0
    v = np.cross(t, axis)
    return v / np.linalg.norm(v)


def compute_frenet_frame(curve, u: float) -> FrenetFrame:
    """
    Frenet frame of a 3-D NURBS curve at parameter u.

    Parameters:
        curve: NURBSCurve with n_dim_physical == 3
        u: Parameter value

    Returns:
        FrenetFrame

    Raises:
        ValueError: If the tangent vanishes at u
    """
    ders = curve.derivatives(u, 2)
    position, d1, d2 = ders[0], ders[1], ders[2]
    eps = curve.backend.tolerance

    speed = np.linalg.norm(d1)
    if speed <= eps:
        raise ValueError(f"Curve tangent vanishes at u={u}")
    tangent = d1 / speed

    b = np.cross(d1, d2)
    b_norm = np.linalg.norm(b)
    if b_norm <= eps * speed * max(1.0, float(np.linalg.norm(d2))):
        binormal = _perpendicular(tangent)
    else:
        binormal = b / b_norm

    normal = np.cross(binormal, tangent)
    return FrenetFrame(position, tangent, normal, binormal)
