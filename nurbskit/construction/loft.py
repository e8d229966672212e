"""
Lofted (skinned) surfaces through a sequence of section curves.

Skinning (The NURBS Book, section 10.3):

1. Make the sections compatible: clamped ends (closed sections are
   clamped at their seam), same degree (degree elevation to the highest
   one) and same knot vector (refinement onto the union of all knot
   vectors).
2. Choose one v parameter per section and an averaged v knot vector.
3. For each control point index i, interpolate the column of homogeneous
   control points H_{i,0..m} along v. Interpolating homogeneous rows keeps
   rational sections exact.

The surface passes through every section: S(u, v_k) = C_k(u).
"""

import numpy as np
from functools import reduce
from typing import List, Optional, Sequence

from loguru import logger

from ..config import Defaults
from ..errors import DegenerateInterpolation, IncompatibleCurves, InvalidDegree
from ..geometry.curve import NURBSCurve
from ..geometry.surface import NURBSSurface
from ..fitting.interpolation import (
    KnotStyle, averaged_knot_vector, solve_interpolation,
)


def unify_curves(curves: Sequence[NURBSCurve]) -> List[NURBSCurve]:
    """
    Make curves compatible: common dtype, degree and knot vector.

    Parameters:
        curves: At least two curves of equal dimension and domain

    Returns:
        List of curves (same shapes) sharing one degree and one knot vector

    Raises:
        IncompatibleCurves: If fewer than two curves are given, or their
            dimensions or domains differ, or a degree cannot be raised
    """
    curves = list(curves)
    if len(curves) < 2:
        raise IncompatibleCurves(f"Lofting needs at least two curves, got {len(curves)}")

    first = curves[0]
    dtype = first.dtype
    curves = [c if c.dtype == dtype else c.cast(dtype) for c in curves]

    for k, c in enumerate(curves[1:], start=1):
        if c.n_dim_physical != first.n_dim_physical:
            raise IncompatibleCurves(
                f"Curve {k} has dimension {c.n_dim_physical}, expected {first.n_dim_physical}"
            )
        tol = max(first.knot_vector.tolerance, c.knot_vector.tolerance)
        if not np.allclose(c.domain, first.domain, rtol=0.0, atol=tol):
            raise IncompatibleCurves(
                f"Curve {k} has domain {c.domain}, expected {first.domain}"
            )

    unclamped = [k for k, c in enumerate(curves) if not c.knot_vector.is_clamped]
    if unclamped:
        logger.debug(f"Loft: clamping section curves {unclamped}")
        curves = [c.clamped() for c in curves]

    degree = max(c.degree for c in curves)
    if any(c.degree != degree for c in curves):
        logger.warning(f"Loft: elevating section curves to degree {degree}")
        try:
            curves = [c.elevate_degree(degree - c.degree) for c in curves]
        except ValueError as exc:
            raise IncompatibleCurves(f"Cannot reconcile curve degrees: {exc}") from exc

    try:
        common = reduce(lambda a, b: a.unify(b), [c.knot_vector for c in curves])
        return [c.refine(c.knot_vector.missing_knots(common)) for c in curves]
    except ValueError as exc:
        raise IncompatibleCurves(f"Cannot unify knot vectors: {exc}") from exc


def loft_parameters(curves: Sequence[NURBSCurve],
                    knot_style: KnotStyle = KnotStyle.UNIFORM) -> np.ndarray:
    """
    v parameters of the sections.

    UNIFORM spaces the sections evenly. CHORDAL and CENTRIPETAL average,
    over all control point columns, the normalized distances between
    consecutive sections (columns of zero length are skipped).

    Parameters:
        curves: Compatible curves (see unify_curves)
        knot_style: Spacing rule

    Returns:
        Strictly increasing parameters in [0, 1], one per curve
    """
    m = len(curves) - 1
    backend = curves[0].backend
    dtype = backend.dtype
    style = KnotStyle(knot_style)
    if style is KnotStyle.UNIFORM:
        return np.linspace(0.0, 1.0, m + 1).astype(dtype)

    points = np.stack([c.control_points for c in curves], axis=1)
    params = np.zeros(m + 1, dtype=np.float64)
    n_columns = 0
    for column in points:
        steps = np.linalg.norm(np.diff(column, axis=0), axis=1)
        if style is KnotStyle.CENTRIPETAL:
            steps = backend.sqrt(steps)
        total = np.sum(steps)
        if total > 0.0:
            params[1:] += np.cumsum(steps) / total
            n_columns += 1

    if n_columns == 0:
        raise DegenerateInterpolation("All section curves coincide")
    params /= n_columns
    params[-1] = 1.0
    if np.any(np.diff(params) <= 0.0):
        raise DegenerateInterpolation("Consecutive section curves coincide")
    return params.astype(dtype)


def try_loft(curves: Sequence[NURBSCurve],
             v_degree: int = Defaults.LOFT_V_DEGREE,
             knot_style: KnotStyle = KnotStyle.UNIFORM) -> NURBSSurface:
    """
    Surface through a sequence of section curves.

    Parameters:
        curves: At least two curves of equal dimension and domain
        v_degree: Degree across the sections, capped at len(curves) - 1
        knot_style: Spacing of the sections along v

    Returns:
        NURBSSurface with S(u, v_k) = curves[k](u); v runs over [0, 1]

    Raises:
        IncompatibleCurves: See unify_curves
        InvalidDegree: If v_degree < 1
        DegenerateInterpolation: Singular fit or non-positive interpolated weights
    """
    if v_degree < 1:
        raise InvalidDegree(f"Loft degree must be at least 1, got {v_degree}")

    sections = unify_curves(curves)
    backend = sections[0].backend
    m = len(sections) - 1
    q = min(v_degree, m)
    if q < v_degree:
        logger.warning(f"Loft: v degree {v_degree} capped at {q} for {m + 1} sections")

    params = loft_parameters(sections, knot_style)
    kv_v = averaged_knot_vector(params, q)

    H = np.stack([c.homogeneous_control_points for c in sections], axis=0)
    n_sections, n_u, D = H.shape
    logger.debug(f"Loft: {n_sections} sections, {n_u} control points each, v degree {q}")

    columns = solve_interpolation(H.reshape(n_sections, n_u * D), params, kv_v, backend)
    grid = columns.reshape(n_sections, n_u, D).transpose(1, 0, 2)
    if np.any(grid[..., -1] <= backend.solver_tolerance):
        raise DegenerateInterpolation("Lofted surface has non-positive weights")

    return NURBSSurface.from_homogeneous(sections[0].knot_vector, kv_v, grid, backend)
