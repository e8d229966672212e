"""
Global curve interpolation.

Given points Q_0..Q_n, find a degree-p B-spline curve C with C(u_k) = Q_k:

1. Assign a parameter u_k to each point (uniform, chord length or
   centripetal spacing), normalized to [0, 1].
2. Build a clamped knot vector by averaging p consecutive parameters
   (The NURBS Book, eq. 9.8).
3. Solve the collocation system A P = Q with A[k, j] = N_{j,p}(u_k);
   one coefficient matrix, one right-hand side column per coordinate.

Optional end tangents add one control point and one first-derivative
row per constraint. Closed (periodic) curves use an unclamped knot vector
and wrap the first p control points onto the last p.
"""

import numpy as np
from enum import Enum
from typing import Optional, Tuple

from loguru import logger

from ..config import Defaults, resolve_backend
from ..errors import DegenerateInterpolation, InvalidDegree
from ..numeric import NumericBackend
from ..discretization.knot_vector import (
    KnotVector, make_periodic_knot_vector,
)
from ..geometry.bspline import BSplineBasis
from ..geometry.curve import NURBSCurve


class KnotStyle(Enum):
    """Parameterization of the data points."""
    UNIFORM = "uniform"
    CHORDAL = "chordal"
    CENTRIPETAL = "centripetal"


def compute_parameters(points, knot_style: KnotStyle = KnotStyle.CHORDAL,
                       closed: bool = False,
                       backend: Optional[NumericBackend] = None) -> np.ndarray:
    """
    Normalized parameters for a sequence of points.

    Parameters:
        points: Array of shape (n+1, d)
        knot_style: Spacing rule
        closed: Include the chord from the last point back to the first
        backend: Numeric backend (precision of the result)

    Returns:
        Strictly increasing parameters in [0, 1]; n+1 values, or n+2 when
        closed (the last one belongs to the repeated first point)

    Raises:
        DegenerateInterpolation: If two consecutive points coincide
    """
    backend = resolve_backend(backend)
    points = backend.asarray(points)
    if closed:
        points = np.vstack([points, points[:1]])

    chords = backend.sqrt(np.sum(np.diff(points, axis=0) ** 2, axis=1))
    if np.any(chords <= backend.eps * max(1.0, float(np.max(np.abs(points))))):
        raise DegenerateInterpolation("Consecutive interpolation points coincide")

    style = KnotStyle(knot_style)
    if style is KnotStyle.UNIFORM:
        steps = np.ones_like(chords)
    elif style is KnotStyle.CENTRIPETAL:
        steps = backend.sqrt(chords)
    else:
        steps = chords

    params = np.concatenate([[0.0], np.cumsum(steps)])
    params /= params[-1]
    params[-1] = 1.0
    return params.astype(backend.dtype)


def averaged_knot_vector(parameters, degree: int) -> KnotVector:
    """
    Clamped knot vector by averaging (The NURBS Book, eq. 9.8).

    Interior knot j (j = 1..n-p) is the mean of parameters j..j+p-1.

    Parameters:
        parameters: n+1 non-decreasing parameters
        degree: Polynomial degree p (n >= p)

    Returns:
        KnotVector with n+1 basis functions over [u_0, u_n]
    """
    u = np.asarray(parameters)
    p = degree
    n = len(u) - 1
    if n < p:
        raise DegenerateInterpolation(f"Need at least {p + 1} parameters for degree {p}")

    interior = [np.mean(u[j:j + p]) for j in range(1, n - p + 1)]
    knots = np.concatenate([np.full(p + 1, u[0]), interior, np.full(p + 1, u[-1])])
    return KnotVector(knots, p, dtype=u.dtype)


def solve_interpolation(points, parameters, knot_vector: KnotVector,
                        backend: Optional[NumericBackend] = None) -> np.ndarray:
    """
    Control points of the curve on knot_vector through points at parameters.

    Parameters:
        points: Array of shape (n, D) (Euclidean or homogeneous rows)
        parameters: n parameter values
        knot_vector: KnotVector with n basis functions
        backend: Numeric backend used for the solve

    Returns:
        Control points of shape (n, D)

    Raises:
        DegenerateInterpolation: If the collocation matrix is singular
    """
    backend = resolve_backend(backend)
    basis = BSplineBasis(knot_vector)
    A = np.array([basis.eval_all(u) for u in parameters], dtype=backend.dtype)
    try:
        return backend.solve(A, points)
    except np.linalg.LinAlgError as exc:
        raise DegenerateInterpolation(f"Interpolation system is singular: {exc}") from exc


def periodic_interpolation_parameters(points, degree: int,
                                      knot_style: KnotStyle = KnotStyle.CHORDAL,
                                      backend: Optional[NumericBackend] = None,
                                      ) -> Tuple[np.ndarray, KnotVector]:
    """
    Parameters and knot vector for closed interpolation.

    Odd degrees interpolate at the knots t_0..t_{N-1}; even degrees at
    the span midpoints.

    Parameters:
        points: N distinct points (no repeated closing point)
        degree: Polynomial degree p (N >= p + 1)
        knot_style: Spacing rule, closing chord included
        backend: Numeric backend (precision of the parameters)

    Returns:
        (parameters, knot_vector): N interpolation parameters and the
        periodic KnotVector with N + p basis functions
    """
    t = compute_parameters(points, knot_style, closed=True, backend=backend)
    kv = make_periodic_knot_vector(t, degree, dtype=t.dtype)
    if degree % 2 == 1:
        params = t[:-1].copy()
    else:
        params = 0.5 * (t[:-1] + t[1:])
    return params, kv


def _drop_closing_point(points: np.ndarray, backend: NumericBackend) -> np.ndarray:
    scale = max(1.0, float(np.max(np.abs(points))))
    if len(points) > 1 and np.linalg.norm(points[-1] - points[0]) <= backend.tolerance * scale:
        return points[:-1]
    return points


def _interpolate_periodic(points: np.ndarray, degree: int, knot_style: KnotStyle,
                          backend: NumericBackend) -> NURBSCurve:
    points = _drop_closing_point(points, backend)
    p = degree
    N = len(points)
    if N < p + 1:
        raise DegenerateInterpolation(
            f"Closed interpolation of degree {p} needs at least {p + 1} distinct points, got {N}"
        )

    params, kv = periodic_interpolation_parameters(points, p, knot_style, backend)
    basis = BSplineBasis(kv)

    # Columns of wrapped control points fold onto the first p
    A = np.zeros((N, N), dtype=backend.dtype)
    for row, u in enumerate(params):
        span = kv.find_span(u)
        for j, value in enumerate(basis.eval(u, span)):
            A[row, (span - p + j) % N] += value

    logger.debug(f"Closed interpolation: {N} points, degree {p}, {knot_style.value} parameters")
    try:
        P = backend.solve(A, points)
    except np.linalg.LinAlgError as exc:
        raise DegenerateInterpolation(f"Interpolation system is singular: {exc}") from exc

    return NURBSCurve(kv, np.vstack([P, P[:p]]), backend=backend)


def _interpolate_open(points: np.ndarray, degree: int, knot_style: KnotStyle,
                      start_tangent, end_tangent,
                      backend: NumericBackend) -> NURBSCurve:
    p = degree
    n_points = len(points)
    if n_points < p + 1:
        raise DegenerateInterpolation(
            f"Interpolation of degree {p} needs at least {p + 1} points, got {n_points}"
        )

    params = compute_parameters(points, knot_style, backend=backend)
    constraints = []
    if start_tangent is not None:
        constraints.append((params[0], start_tangent))
    if end_tangent is not None:
        constraints.append((params[-1], end_tangent))
    if constraints and p < 2:
        raise DegenerateInterpolation("End tangent constraints require degree >= 2")

    # One extra parameter per tangent so the knots stay well spread
    augmented = list(params)
    if start_tangent is not None:
        augmented.insert(0, params[0])
    if end_tangent is not None:
        augmented.append(params[-1])
    kv = averaged_knot_vector(np.asarray(augmented, dtype=backend.dtype), p)
    basis = BSplineBasis(kv)
    n = kv.n_basis
    d = points.shape[1]

    A = np.zeros((n, n), dtype=backend.dtype)
    rhs = np.zeros((n, d), dtype=backend.dtype)
    for row, u in enumerate(params):
        A[row] = basis.eval_all(u)
        rhs[row] = points[row]

    row = n_points
    for u, tangent in constraints:
        tangent = backend.asarray(tangent)
        if tangent.shape != (d,):
            raise ValueError(f"Tangent shape {tangent.shape} must be ({d},)")
        span = kv.find_span(u)
        A[row, span - p:span + 1] = basis.eval_ders(u, 1, span)[1]
        rhs[row] = tangent
        row += 1

    logger.debug(
        f"Interpolation: {n_points} points, degree {p}, {knot_style.value} parameters, "
        f"{len(constraints)} tangent constraint(s)"
    )
    try:
        P = backend.solve(A, rhs)
    except np.linalg.LinAlgError as exc:
        raise DegenerateInterpolation(f"Interpolation system is singular: {exc}") from exc

    return NURBSCurve(kv, P, backend=backend)


def try_interpolate(points,
                    degree: int = Defaults.INTERPOLATION_DEGREE,
                    knot_style: KnotStyle = KnotStyle.CHORDAL,
                    periodic: bool = False,
                    start_tangent=None,
                    end_tangent=None,
                    backend: Optional[NumericBackend] = None) -> NURBSCurve:
    """
    Interpolate points with a non-rational B-spline curve.

    Parameters:
        points: Array of shape (n+1, d)
        degree: Curve degree p
        knot_style: Parameterization (uniform, chordal, centripetal)
        periodic: Build a closed curve through the points; a repeated
            closing point is ignored
        start_tangent: Optional first derivative C'(u_min) (open curves)
        end_tangent: Optional first derivative C'(u_max) (open curves)
        backend: Numeric backend (precision and solve)

    Returns:
        NURBSCurve passing through every point, domain [0, 1]

    Raises:
        InvalidDegree: If degree < 1
        DegenerateInterpolation: Too few points for the degree, coincident
            consecutive points or a singular system
    """
    backend = resolve_backend(backend)
    if degree < 1:
        raise InvalidDegree(f"Degree must be at least 1, got {degree}")

    points = backend.asarray(points)
    if points.ndim != 2 or points.shape[1] < 1:
        raise ValueError(f"Points must have shape (n, d), got {points.shape}")
    if not np.all(np.isfinite(points)):
        raise ValueError("Points must be finite")

    knot_style = KnotStyle(knot_style)
    if periodic:
        if start_tangent is not None or end_tangent is not None:
            raise ValueError("End tangents cannot be combined with periodic interpolation")
        return _interpolate_periodic(points, degree, knot_style, backend)
    return _interpolate_open(points, degree, knot_style, start_tangent, end_tangent, backend)
