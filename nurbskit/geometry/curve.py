"""
NURBS curves.

A NURBS curve C(u) is defined by:
- A knot vector defining the parametric domain and the degree
- Control points P_i in R^d (d = physical dimension)
- Weights w_i > 0

Evaluation and derivatives follow Piegl & Tiller "The NURBS Book":
homogeneous points are accumulated with the non-zero basis functions of
the span (Algorithm A4.1) and derivatives are converted from homogeneous
to Euclidean space with the quotient rule (Algorithm A4.2):

    C^(k) = (A^(k) - sum_{j=1}^{k} C(k,j) * w^(j) * C^(k-j)) / w

Curves are immutable. Knot insertion, refinement, degree elevation,
reversal, transforms and precision casts all return new curves.
"""

import math
import numpy as np
from typing import Optional, Sequence, List

from loguru import logger

from ..config import resolve_backend
from ..errors import InvalidDegree
from ..numeric import NumericBackend
from ..discretization.knot_vector import KnotVector, KnotMultiplicity
from ..quadrature.gauss import integrate_spans
from .bspline import basis_functions, basis_function_derivatives
from .nurbs import (
    NURBSGeometry, to_homogeneous, from_homogeneous, validate_weights,
    apply_matrix, readonly,
)


class NURBSCurve(NURBSGeometry):
    """
    NURBS curve in arbitrary dimensional space.

    Parameters:
        knot_vector: KnotVector defining the basis (and the degree)
        control_points: Array of shape (n, d) where n = knot_vector.n_basis
        weights: Array of shape (n,), defaults to 1.0 (B-spline)
        backend: Numeric backend (precision, domain policy); defaults to
            config.get_default_backend()
    """

    def __init__(self, knot_vector: KnotVector,
                 control_points,
                 weights=None,
                 backend: Optional[NumericBackend] = None):
        backend = resolve_backend(backend)
        control_points = np.array(control_points, dtype=backend.dtype)
        if control_points.ndim != 2:
            raise ValueError(
                f"Control points must have shape (n, d), got {control_points.shape}"
            )

        if weights is None:
            weights = np.ones(control_points.shape[0], dtype=backend.dtype)
        else:
            weights = np.array(weights, dtype=backend.dtype)
        validate_weights(weights, control_points.shape[:1])

        self._init(knot_vector, to_homogeneous(control_points, weights), backend)

    @classmethod
    def from_homogeneous(cls, knot_vector: KnotVector, homogeneous,
                         backend: Optional[NumericBackend] = None) -> "NURBSCurve":
        """
        Build a curve directly from homogeneous control points (w*P, w).

        Parameters:
            knot_vector: KnotVector defining the basis
            homogeneous: Array of shape (n, d+1)
            backend: Numeric backend

        Returns:
            NURBSCurve
        """
        backend = resolve_backend(backend)
        homogeneous = np.array(homogeneous, dtype=backend.dtype)
        if homogeneous.ndim != 2 or homogeneous.shape[1] < 2:
            raise ValueError(
                f"Homogeneous control points must have shape (n, d+1), got {homogeneous.shape}"
            )
        validate_weights(homogeneous[:, -1], homogeneous.shape[:1])

        curve = cls.__new__(cls)
        curve._init(knot_vector, homogeneous, backend)
        return curve

    def _init(self, knot_vector: KnotVector, homogeneous: np.ndarray,
              backend: NumericBackend) -> None:
        if knot_vector.dtype != backend.dtype:
            knot_vector = knot_vector.astype(backend.dtype)

        n = homogeneous.shape[0]
        if n != knot_vector.n_basis:
            raise ValueError(
                f"Number of control points ({n}) "
                f"must match number of basis functions ({knot_vector.n_basis})"
            )
        if knot_vector.degree >= n:
            raise InvalidDegree(
                f"Degree {knot_vector.degree} must be smaller than the number of control points ({n})"
            )

        self._knot_vector = knot_vector
        self._homogeneous = readonly(homogeneous)
        self._backend = backend

    def __repr__(self) -> str:
        return (f"NURBSCurve(degree={self.degree}, n_control_points={self.n_control_points}, "
                f"dimension={self.n_dim_physical}, dtype={self.dtype.name})")

    @property
    def n_dim_parametric(self) -> int:
        return 1

    @property
    def n_dim_physical(self) -> int:
        return self._homogeneous.shape[1] - 1

    @property
    def dimension(self) -> int:
        """Spatial dimension d of the control points."""
        return self.n_dim_physical

    @property
    def n_control_points(self) -> int:
        return self._homogeneous.shape[0]

    @property
    def control_points(self) -> np.ndarray:
        return from_homogeneous(self._homogeneous)[0]

    @property
    def weights(self) -> np.ndarray:
        return self._homogeneous[:, -1].copy()

    @property
    def homogeneous_control_points(self) -> np.ndarray:
        return self._homogeneous

    @property
    def knot_vector(self) -> KnotVector:
        return self._knot_vector

    @property
    def knots(self) -> np.ndarray:
        return self._knot_vector.knots

    @property
    def degree(self) -> int:
        return self._knot_vector.degree

    @property
    def domain(self):
        """Parametric domain (u_min, u_max)."""
        return self._knot_vector.domain

    def _locate(self, u: float):
        """Apply the domain policy and find the span of u."""
        u = self._knot_vector.clamp_parameter(u, self._backend.strict)
        return u, self._knot_vector.find_span(u)

    def evaluate(self, u: float) -> np.ndarray:
        """
        Evaluate the curve at a parameter value.

        Parameters:
            u: Parameter value (out-of-domain values follow the backend policy)

        Returns:
            Point coordinates as (d,) array
        """
        u, span = self._locate(u)
        p = self.degree
        N = basis_functions(span, u, p, self._knot_vector.knots)
        Cw = N @ self._homogeneous[span - p:span + 1]
        return Cw[:-1] / Cw[-1]

    def evaluate_points(self, parameters: Sequence[float]) -> np.ndarray:
        """Evaluate the curve at several parameters; returns (k, d)."""
        points = np.zeros((len(parameters), self.n_dim_physical), dtype=self.dtype)
        for i, u in enumerate(parameters):
            points[i] = self.evaluate(u)
        return points

    def derivatives(self, u: float, order: int = 1) -> np.ndarray:
        """
        Evaluate the curve and its derivatives.

        Parameters:
            u: Parameter value
            order: Highest derivative order

        Returns:
            Array of shape (order+1, d); row k is the k-th derivative
            (row 0 is the point itself)
        """
        u, span = self._locate(u)
        p = self.degree
        Nders = basis_function_derivatives(span, u, p, self._knot_vector.knots, order)

        # Homogeneous derivatives: columns [:-1] are A^(k), column -1 is w^(k)
        Cw_ders = Nders @ self._homogeneous[span - p:span + 1]
        A_ders = Cw_ders[:, :-1]
        w_ders = Cw_ders[:, -1]

        C_ders = np.zeros_like(A_ders)
        for k in range(order + 1):
            v = A_ders[k].copy()
            for j in range(1, k + 1):
                v -= math.comb(k, j) * w_ders[j] * C_ders[k - j]
            C_ders[k] = v / w_ders[0]

        return C_ders

    def tangent(self, u: float) -> np.ndarray:
        """First derivative C'(u) (not normalized)."""
        return self.derivatives(u, 1)[1]

    def transformed(self, matrix) -> "NURBSCurve":
        """
        Copy with control point positions mapped by a matrix.

        Weights, knot vector and degree are unchanged.

        Parameters:
            matrix: (d+1, d+1) homogeneous transform or (d, d) linear map

        Returns:
            New NURBSCurve
        """
        points = apply_matrix(self.control_points, matrix)
        return NURBSCurve(self._knot_vector, points, self.weights, backend=self._backend)

    def insert_knot(self, u: float, times: int = 1) -> "NURBSCurve":
        """
        Insert a knot without changing the curve shape.

        The multiplicity of u is capped at the degree.

        Parameters:
            u: Knot value
            times: Number of insertions

        Returns:
            New NURBSCurve with more control points
        """
        kv, A = self._knot_vector.insert_knot(u, times)
        return NURBSCurve.from_homogeneous(kv, A @ self._homogeneous, self._backend)

    def refine(self, knots_to_insert: Sequence[float]) -> "NURBSCurve":
        """Insert several knots (knot refinement) without changing the shape."""
        if len(knots_to_insert) == 0:
            return self
        kv, A = self._knot_vector.refine(knots_to_insert)
        return NURBSCurve.from_homogeneous(kv, A @ self._homogeneous, self._backend)

    def clamped(self) -> "NURBSCurve":
        """Same curve on a clamped knot vector; closed curves become open at u_min."""
        if self._knot_vector.is_clamped:
            return self
        kv, A = self._knot_vector.clamped()
        return NURBSCurve.from_homogeneous(kv, A @ self._homogeneous, self._backend)

    def elevate_degree(self, t: int = 1) -> "NURBSCurve":
        """
        Raise the degree by t without changing the curve shape.

        Algorithm A5.9 from "The NURBS Book"; requires a clamped knot vector.

        Parameters:
            t: Number of degrees to add

        Returns:
            New NURBSCurve of degree p + t
        """
        if t < 0:
            raise ValueError("Degree elevation amount must be non-negative")
        if t == 0:
            return self
        if not self._knot_vector.is_clamped:
            raise ValueError("Degree elevation requires a clamped knot vector")

        knots, homogeneous = _elevate_degree(
            self._knot_vector.knots, self._homogeneous, self.degree, t
        )
        kv = KnotVector(knots, self.degree + t, dtype=self.dtype)
        return NURBSCurve.from_homogeneous(kv, homogeneous, self._backend)

    def reversed(self) -> "NURBSCurve":
        """
        Curve traversed in the opposite direction over the same domain.

        reversed().evaluate(a + b - u) == evaluate(u)
        """
        return NURBSCurve.from_homogeneous(
            self._knot_vector.reversed(), self._homogeneous[::-1], self._backend
        )

    def cast(self, dtype) -> "NURBSCurve":
        """Copy of the curve in another floating-point precision."""
        backend = self._backend.with_dtype(dtype)
        return NURBSCurve.from_homogeneous(
            self._knot_vector.astype(backend.dtype), self._homogeneous, backend
        )

    def elevate_dimension(self) -> "NURBSCurve":
        """Copy embedded in one more spatial dimension (new coordinate = 0)."""
        H = self._homogeneous
        zeros = np.zeros((H.shape[0], 1), dtype=H.dtype)
        return NURBSCurve.from_homogeneous(
            self._knot_vector, np.hstack([H[:, :-1], zeros, H[:, -1:]]), self._backend
        )

    def knot_multiplicities(self) -> List[KnotMultiplicity]:
        """Distinct knots of the curve with their multiplicities."""
        return self._knot_vector.multiplicities()

    def frenet_frames(self, parameters: Sequence[float]):
        """
        Frenet frames (position, tangent, normal, binormal) at parameters.

        2-D curves are treated as lying in the z = 0 plane.
        """
        from .frenet import compute_frenet_frame

        curve = self if self.n_dim_physical == 3 else self.elevate_dimension()
        if curve.n_dim_physical != 3:
            raise ValueError("Frenet frames require a 2-D or 3-D curve")
        return [compute_frenet_frame(curve, u) for u in parameters]

    def length(self, n_gauss: int = 16) -> float:
        """
        Arc length of the curve.

        Gauss-Legendre quadrature of |C'(u)| on every knot span.

        Parameters:
            n_gauss: Quadrature points per span

        Returns:
            Curve length
        """
        return integrate_spans(
            lambda u: float(np.linalg.norm(self.tangent(u))),
            self._knot_vector.elements,
            n_gauss,
        )

    def tessellate(self, tolerance: Optional[float] = None) -> np.ndarray:
        """
        Adaptive polyline approximation of the curve.

        Parameters:
            tolerance: Maximum distance between the curve and the polyline
                (defaults to Defaults.CURVE_TESSELLATION_TOLERANCE)

        Returns:
            Array of shape (k, d) of points on the curve
        """
        from ..tessellation.polyline import tessellate_curve
        return tessellate_curve(self, tolerance)


def _elevate_degree(knots: np.ndarray, Pw: np.ndarray, p: int, t: int):
    """
    Degree elevation of a clamped curve (Piegl & Tiller, Algorithm A5.9).

    Parameters:
        knots: Knot vector U[0..m]
        Pw: Homogeneous control points (n+1, D)
        p: Current degree
        t: Degree increment

    Returns:
        (new_knots, new_homogeneous_control_points)
    """
    U = knots
    n = Pw.shape[0] - 1
    D = Pw.shape[1]
    m = n + p + 1
    ph = p + t
    ph2 = ph // 2
    dtype = Pw.dtype

    # Bezier degree elevation coefficients
    bezalfs = np.zeros((ph + 1, p + 1), dtype=dtype)
    bezalfs[0, 0] = 1.0
    bezalfs[ph, p] = 1.0
    for i in range(1, ph2 + 1):
        inv = 1.0 / math.comb(ph, i)
        for j in range(max(0, i - t), min(p, i) + 1):
            bezalfs[i, j] = inv * math.comb(p, j) * math.comb(t, i - j)
    for i in range(ph2 + 1, ph):
        for j in range(max(0, i - t), min(p, i) + 1):
            bezalfs[i, j] = bezalfs[ph - i, p - j]

    capacity = (n + 1) * (t + 1) + 1
    Qw = np.zeros((capacity, D), dtype=dtype)
    Uh = np.zeros(capacity + ph + 1, dtype=dtype)
    bpts = np.zeros((p + 1, D), dtype=dtype)
    ebpts = np.zeros((ph + 1, D), dtype=dtype)
    next_bpts = np.zeros((max(p - 1, 1), D), dtype=dtype)
    alfs = np.zeros(max(p - 1, 1), dtype=dtype)

    mh = ph
    kind = ph + 1
    r = -1
    a = p
    b = p + 1
    cind = 1
    ua = U[0]

    Qw[0] = Pw[0]
    Uh[:ph + 1] = ua
    bpts[:] = Pw[:p + 1]

    while b < m:
        i = b
        while b < m and U[b] == U[b + 1]:
            b += 1
        mul = b - i + 1
        mh += mul + t
        ub = U[b]
        oldr = r
        r = p - mul

        lbz = (oldr + 2) // 2 if oldr > 0 else 1
        rbz = ph - (r + 1) // 2 if r > 0 else ph

        # Insert knot ub r times to split off a Bezier segment
        if r > 0:
            numer = ub - ua
            for k in range(p, mul, -1):
                alfs[k - mul - 1] = numer / (U[a + k] - ua)
            for j in range(1, r + 1):
                save = r - j
                s = mul + j
                for k in range(p, s - 1, -1):
                    bpts[k] = alfs[k - s] * bpts[k] + (1.0 - alfs[k - s]) * bpts[k - 1]
                next_bpts[save] = bpts[p]

        # Degree elevate the Bezier segment
        for i in range(lbz, ph + 1):
            ebpts[i] = 0.0
            for j in range(max(0, i - t), min(p, i) + 1):
                ebpts[i] += bezalfs[i, j] * bpts[j]

        # Remove knot ua oldr times
        if oldr > 1:
            first = kind - 2
            last = kind
            den = ub - ua
            bet = (ub - Uh[kind - 1]) / den
            for tr in range(1, oldr):
                i = first
                j = last
                kj = j - kind + 1
                while j - i > tr:
                    if i < cind:
                        alf = (ub - Uh[i]) / (ua - Uh[i])
                        Qw[i] = alf * Qw[i] + (1.0 - alf) * Qw[i - 1]
                    if j >= lbz:
                        if j - tr <= kind - ph + oldr:
                            gam = (ub - Uh[j - tr]) / den
                            ebpts[kj] = gam * ebpts[kj] + (1.0 - gam) * ebpts[kj + 1]
                        else:
                            ebpts[kj] = bet * ebpts[kj] + (1.0 - bet) * ebpts[kj + 1]
                    i += 1
                    j -= 1
                    kj -= 1
                first -= 1
                last += 1

        # Load the knot ua
        if a != p:
            for _ in range(ph - oldr):
                Uh[kind] = ua
                kind += 1

        # Load control points into Qw
        for j in range(lbz, rbz + 1):
            Qw[cind] = ebpts[j]
            cind += 1

        if b < m:
            bpts[:r] = next_bpts[:r]
            bpts[r:] = Pw[b - p + r:b + 1]
            a = b
            b += 1
            ua = ub
        else:
            Uh[kind:kind + ph + 1] = ub

    nh = mh - ph - 1
    logger.debug(f"Degree elevation {p} -> {ph}: {n + 1} -> {nh + 1} control points")
    return Uh[:nh + ph + 2].copy(), Qw[:nh + 1].copy()
