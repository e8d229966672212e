"""
Primitive geometry factory functions.

Exact NURBS representations of common shapes:
- Unit square and rectangles (planar surfaces)
- Circles and circular arcs (rational quadratic curves)

These are the building blocks for extrusion, lofting and tests.
"""

import numpy as np
from typing import Optional, Tuple

from ..numeric import NumericBackend
from ..discretization.knot_vector import KnotVector, make_open_knot_vector
from .curve import NURBSCurve
from .surface import NURBSSurface


def make_nurbs_unit_square(p: int = 2, n_elem_u: int = 4, n_elem_v: int = 4,
                           physical_dim: int = 3,
                           backend: Optional[NumericBackend] = None) -> NURBSSurface:
    """
    Create a NURBS surface representing the unit square [0,1]².

    The mapping is the identity: parametric coordinates equal physical
    coordinates (control points at the Greville abscissae).

    Parameters:
        p: Polynomial degree in both directions
        n_elem_u: Number of knot spans in u
        n_elem_v: Number of knot spans in v
        physical_dim: 2 for a planar domain, 3 for a surface in 3D (z=0)
        backend: Numeric backend

    Returns:
        NURBSSurface representing the unit square
    """
    if physical_dim not in (2, 3):
        raise ValueError("physical_dim must be 2 or 3")

    n_basis_u = n_elem_u + p
    n_basis_v = n_elem_v + p

    kv_u = make_open_knot_vector(n_basis_u, p, domain=(0.0, 1.0))
    kv_v = make_open_knot_vector(n_basis_v, p, domain=(0.0, 1.0))

    gu, gv = np.meshgrid(kv_u.greville_abscissae(), kv_v.greville_abscissae(), indexing="ij")
    control_points = np.zeros((n_basis_u, n_basis_v, physical_dim))
    control_points[..., 0] = gu
    control_points[..., 1] = gv

    return NURBSSurface(kv_u, kv_v, control_points, backend=backend)


def make_nurbs_rectangle(x_range: Tuple[float, float] = (0.0, 1.0),
                         y_range: Tuple[float, float] = (0.0, 1.0),
                         p: int = 2,
                         n_elem_u: int = 4,
                         n_elem_v: int = 4,
                         backend: Optional[NumericBackend] = None) -> NURBSSurface:
    """
    Create a NURBS surface representing an axis-aligned rectangle in z=0.

    Parameters:
        x_range: (x_min, x_max)
        y_range: (y_min, y_max)
        p: Polynomial degree
        n_elem_u: Number of knot spans in u
        n_elem_v: Number of knot spans in v
        backend: Numeric backend

    Returns:
        NURBSSurface representing the rectangle
    """
    x_min, x_max = x_range
    y_min, y_max = y_range
    scale = np.diag([x_max - x_min, y_max - y_min, 1.0, 1.0])
    scale[0, 3] = x_min
    scale[1, 3] = y_min

    return make_nurbs_unit_square(p, n_elem_u, n_elem_v, 3, backend).transformed(scale)


def make_nurbs_circle(radius: float = 1.0,
                      center: Tuple[float, ...] = (0.0, 0.0),
                      backend: Optional[NumericBackend] = None) -> NURBSCurve:
    """
    Create a NURBS curve representing a full circle.

    Uses the standard 9-control-point representation with degree 2.
    The circle is parameterized from 0 to 1, counterclockwise, starting
    from the positive x-axis. A 3-D center places the circle in the
    plane z = center[2].

    Parameters:
        radius: Circle radius
        center: Center coordinates (x, y) or (x, y, z)
        backend: Numeric backend

    Returns:
        NURBSCurve representing the circle
    """
    knots = np.array([0, 0, 0, 0.25, 0.25, 0.5, 0.5, 0.75, 0.75, 1, 1, 1], dtype=float)
    kv = KnotVector(knots, 2)

    # Corner points (45 degree positions) lie at radius * sqrt(2)
    w = 1.0 / np.sqrt(2.0)
    angles = np.arange(9) * np.pi / 4
    distances = np.where(np.arange(9) % 2 == 1, radius * np.sqrt(2.0), radius)
    weights = np.where(np.arange(9) % 2 == 1, w, 1.0)

    center = np.asarray(center, dtype=float)
    control_points = np.tile(center, (9, 1))
    control_points[:, 0] += distances * np.cos(angles)
    control_points[:, 1] += distances * np.sin(angles)

    return NURBSCurve(kv, control_points, weights, backend=backend)


def make_nurbs_arc(radius: float = 1.0,
                   center: Tuple[float, ...] = (0.0, 0.0),
                   start_angle: float = 0.0,
                   end_angle: float = np.pi / 2,
                   backend: Optional[NumericBackend] = None) -> NURBSCurve:
    """
    Create a NURBS curve representing a circular arc.

    Uses degree 2 with 3 control points for arcs up to 90 degrees.

    Parameters:
        radius: Arc radius
        center: Center coordinates (x, y) or (x, y, z)
        start_angle: Starting angle in radians
        end_angle: Ending angle in radians (must be within 90 degrees of start)
        backend: Numeric backend

    Returns:
        NURBSCurve representing the arc
    """
    sweep = end_angle - start_angle
    if abs(sweep) > np.pi / 2 + 1e-10:
        raise ValueError("Arc sweep must be <= 90 degrees. Use make_nurbs_circle for larger arcs.")

    kv = KnotVector(np.array([0, 0, 0, 1, 1, 1], dtype=float), 2)

    # Middle control point: intersection of the end tangents
    mid_angle = 0.5 * (start_angle + end_angle)
    d = radius / np.cos(sweep / 2)
    angles = np.array([start_angle, mid_angle, end_angle])
    distances = np.array([radius, d, radius])
    weights = np.array([1.0, np.cos(sweep / 2), 1.0])

    center = np.asarray(center, dtype=float)
    control_points = np.tile(center, (3, 1))
    control_points[:, 0] += distances * np.cos(angles)
    control_points[:, 1] += distances * np.sin(angles)

    return NURBSCurve(kv, control_points, weights, backend=backend)
