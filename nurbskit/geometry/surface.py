"""
NURBS surfaces.

A NURBS surface S(u, v) is defined by:
- Two knot vectors (u and v directions) with degrees p and q
- Control points P_{i,j} arranged in an (n_u, n_v) grid
- Weights w_{i,j} > 0

The surface point is:

    S(u, v) = sum_{i,j} N_i(u) N_j(v) w_{i,j} P_{i,j} / sum_{i,j} N_i(u) N_j(v) w_{i,j}

Control points are stored as an (n_u, n_v, d+1) grid of homogeneous
coordinates. Grid index i runs along u, index j along v. Flat input is
read in row-major order:
[P_{0,0}, P_{0,1}, ..., P_{0,n_v-1}, P_{1,0}, ..., P_{n_u-1,n_v-1}]
"""

import math
import numpy as np
from typing import Optional, Sequence, Tuple

from ..config import resolve_backend
from ..errors import InvalidDegree
from ..numeric import NumericBackend
from ..discretization.knot_vector import KnotVector
from .bspline import basis_functions, basis_function_derivatives
from .curve import NURBSCurve
from .nurbs import (
    NURBSGeometry, to_homogeneous, from_homogeneous, validate_weights,
    apply_matrix, readonly,
)


def _direction_index(direction) -> int:
    if direction in ("u", 0):
        return 0
    if direction in ("v", 1):
        return 1
    raise ValueError(f"Direction must be 'u' or 'v', got {direction!r}")


class NURBSSurface(NURBSGeometry):
    """
    Tensor-product NURBS surface in 3D (or 2D) space.

    Parameters:
        knot_vector_u: KnotVector for the u direction
        knot_vector_v: KnotVector for the v direction
        control_points: Array of shape (n_u, n_v, d), or (n_u * n_v, d)
            in row-major order
        weights: Array of shape (n_u, n_v) or (n_u * n_v,), defaults to 1.0
        backend: Numeric backend; defaults to config.get_default_backend()
    """

    def __init__(self,
                 knot_vector_u: KnotVector,
                 knot_vector_v: KnotVector,
                 control_points,
                 weights=None,
                 backend: Optional[NumericBackend] = None):
        backend = resolve_backend(backend)
        n_u = knot_vector_u.n_basis
        n_v = knot_vector_v.n_basis

        control_points = np.array(control_points, dtype=backend.dtype)
        if control_points.ndim == 2:
            if control_points.shape[0] != n_u * n_v:
                raise ValueError(
                    f"Number of control points ({control_points.shape[0]}) "
                    f"must equal n_u * n_v ({n_u * n_v})"
                )
            control_points = control_points.reshape(n_u, n_v, -1)
        elif control_points.ndim != 3:
            raise ValueError(
                f"Control points must have shape (n_u, n_v, d), got {control_points.shape}"
            )

        if weights is None:
            weights = np.ones(control_points.shape[:2], dtype=backend.dtype)
        else:
            weights = np.array(weights, dtype=backend.dtype)
            if weights.ndim == 1 and weights.size == control_points.shape[0] * control_points.shape[1]:
                weights = weights.reshape(control_points.shape[:2])
        validate_weights(weights, control_points.shape[:2])

        self._init(knot_vector_u, knot_vector_v,
                   to_homogeneous(control_points, weights), backend)

    @classmethod
    def from_homogeneous(cls, knot_vector_u: KnotVector, knot_vector_v: KnotVector,
                         homogeneous,
                         backend: Optional[NumericBackend] = None) -> "NURBSSurface":
        """
        Build a surface from an (n_u, n_v, d+1) grid of homogeneous points.
        """
        backend = resolve_backend(backend)
        homogeneous = np.array(homogeneous, dtype=backend.dtype)
        if homogeneous.ndim != 3 or homogeneous.shape[2] < 2:
            raise ValueError(
                f"Homogeneous control points must have shape (n_u, n_v, d+1), got {homogeneous.shape}"
            )
        validate_weights(homogeneous[..., -1], homogeneous.shape[:2])

        surface = cls.__new__(cls)
        surface._init(knot_vector_u, knot_vector_v, homogeneous, backend)
        return surface

    def _init(self, kv_u: KnotVector, kv_v: KnotVector,
              homogeneous: np.ndarray, backend: NumericBackend) -> None:
        if kv_u.dtype != backend.dtype:
            kv_u = kv_u.astype(backend.dtype)
        if kv_v.dtype != backend.dtype:
            kv_v = kv_v.astype(backend.dtype)

        expected = (kv_u.n_basis, kv_v.n_basis)
        if homogeneous.shape[:2] != expected:
            raise ValueError(
                f"Control point grid {homogeneous.shape[:2]} doesn't match "
                f"expected {expected} from the knot vectors"
            )
        for name, kv in (("u", kv_u), ("v", kv_v)):
            if kv.degree >= kv.n_basis:
                raise InvalidDegree(
                    f"Degree {kv.degree} in {name} must be smaller than the "
                    f"number of control points ({kv.n_basis})"
                )

        self._kv_u = kv_u
        self._kv_v = kv_v
        self._homogeneous = readonly(homogeneous)
        self._backend = backend

    def __repr__(self) -> str:
        return (f"NURBSSurface(degrees={self.degrees}, "
                f"grid={self.n_control_points_per_dir}, "
                f"dimension={self.n_dim_physical}, dtype={self.dtype.name})")

    @property
    def n_dim_parametric(self) -> int:
        return 2

    @property
    def n_dim_physical(self) -> int:
        return self._homogeneous.shape[2] - 1

    @property
    def dimension(self) -> int:
        return self.n_dim_physical

    @property
    def n_control_points(self) -> int:
        return self._homogeneous.shape[0] * self._homogeneous.shape[1]

    @property
    def n_control_points_per_dir(self) -> Tuple[int, int]:
        """Number of control points in each direction (n_u, n_v)."""
        return self._homogeneous.shape[:2]

    @property
    def control_points(self) -> np.ndarray:
        """Control points as (n_u, n_v, d) grid."""
        return from_homogeneous(self._homogeneous)[0]

    @property
    def weights(self) -> np.ndarray:
        """Weights as (n_u, n_v) grid."""
        return self._homogeneous[..., -1].copy()

    @property
    def homogeneous_control_points(self) -> np.ndarray:
        return self._homogeneous

    @property
    def knot_vectors(self) -> Tuple[KnotVector, KnotVector]:
        return (self._kv_u, self._kv_v)

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self._kv_u.degree, self._kv_v.degree)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Parametric domain as ((u_min, u_max), (v_min, v_max))."""
        return (self._kv_u.domain, self._kv_v.domain)

    def _locate(self, u: float, v: float):
        strict = self._backend.strict
        u = self._kv_u.clamp_parameter(u, strict)
        v = self._kv_v.clamp_parameter(v, strict)
        return u, v, self._kv_u.find_span(u), self._kv_v.find_span(v)

    def _window(self, span_u: int, span_v: int) -> np.ndarray:
        p, q = self.degrees
        return self._homogeneous[span_u - p:span_u + 1, span_v - q:span_v + 1]

    def evaluate(self, u: float, v: float) -> np.ndarray:
        """
        Evaluate the surface at parameter values.

        Parameters:
            u, v: Parameter values

        Returns:
            Point coordinates as (d,) array
        """
        u, v, span_u, span_v = self._locate(u, v)
        p, q = self.degrees
        N_u = basis_functions(span_u, u, p, self._kv_u.knots)
        N_v = basis_functions(span_v, v, q, self._kv_v.knots)

        Sw = np.einsum("i,j,ijk->k", N_u, N_v, self._window(span_u, span_v))
        return Sw[:-1] / Sw[-1]

    def derivatives(self, u: float, v: float, order: int = 1) -> np.ndarray:
        """
        Evaluate the surface and its partial derivatives.

        Algorithm A4.4 (RatSurfaceDerivs) from "The NURBS Book".

        Parameters:
            u, v: Parameter values
            order: Highest total derivative order

        Returns:
            Array SKL of shape (order+1, order+1, d) where SKL[k, l] is
            d^{k+l} S / du^k dv^l for k + l <= order (other entries are zero)
        """
        u, v, span_u, span_v = self._locate(u, v)
        p, q = self.degrees
        Nu = basis_function_derivatives(span_u, u, p, self._kv_u.knots, order)
        Nv = basis_function_derivatives(span_v, v, q, self._kv_v.knots, order)

        Aders = np.einsum("ki,lj,ijd->kld", Nu, Nv, self._window(span_u, span_v))
        A = Aders[..., :-1]
        w = Aders[..., -1]

        SKL = np.zeros_like(A)
        for k in range(order + 1):
            for l in range(order - k + 1):
                val = A[k, l].copy()
                for j in range(1, l + 1):
                    val -= math.comb(l, j) * w[0, j] * SKL[k, l - j]
                for i in range(1, k + 1):
                    val -= math.comb(k, i) * w[i, 0] * SKL[k - i, l]
                    val2 = np.zeros_like(val)
                    for j in range(1, l + 1):
                        val2 += math.comb(l, j) * w[i, j] * SKL[k - i, l - j]
                    val -= math.comb(k, i) * val2
                SKL[k, l] = val / w[0, 0]

        return SKL

    def normal(self, u: float, v: float) -> np.ndarray:
        """
        Unit surface normal S_u x S_v.

        2-D surfaces are treated as lying in the z = 0 plane. Where the
        cross product vanishes (poles, collapsed edges) the normal is taken
        at points moved toward the center of the domain. A surface that is
        degenerate everywhere near (u, v) yields the zero vector.

        Parameters:
            u, v: Parameter values

        Returns:
            Normal as (3,) array
        """
        if self.n_dim_physical not in (2, 3):
            raise ValueError("Normals require a 2-D or 3-D surface")

        (u0, u1), (v0, v1) = self.domain
        uc, vc = 0.5 * (u0 + u1), 0.5 * (v0 + v1)
        eps = self._backend.tolerance

        for shift in (0.0, 1e-6, 1e-4, 1e-2):
            uu = u + (uc - u) * shift
            vv = v + (vc - v) * shift
            S = self.derivatives(uu, vv, 1)
            su, sv = S[1, 0], S[0, 1]
            if self.n_dim_physical == 2:
                su = np.append(su, 0.0)
                sv = np.append(sv, 0.0)
            n = np.cross(su, sv)
            length = np.linalg.norm(n)
            scale = max(float(np.linalg.norm(su) * np.linalg.norm(sv)), 1.0)
            if length > eps * scale:
                return (n / length).astype(self.dtype)

        return np.zeros(3, dtype=self.dtype)

    def transformed(self, matrix) -> "NURBSSurface":
        """
        Copy with control point positions mapped by a matrix.

        Parameters:
            matrix: (d+1, d+1) homogeneous transform or (d, d) linear map

        Returns:
            New NURBSSurface
        """
        n_u, n_v = self.n_control_points_per_dir
        points = apply_matrix(self.control_points.reshape(n_u * n_v, -1), matrix)
        return NURBSSurface(self._kv_u, self._kv_v, points.reshape(n_u, n_v, -1),
                            self.weights, backend=self._backend)

    def insert_knot(self, value: float, direction="u", times: int = 1) -> "NURBSSurface":
        """
        Insert a knot in one parametric direction without changing the shape.

        Parameters:
            value: Knot value
            direction: 'u' or 'v'
            times: Number of insertions (multiplicity capped at the degree)

        Returns:
            New NURBSSurface
        """
        if _direction_index(direction) == 0:
            kv, A = self._kv_u.insert_knot(value, times)
            return NURBSSurface.from_homogeneous(
                kv, self._kv_v, np.einsum("ai,ijd->ajd", A, self._homogeneous), self._backend
            )
        kv, A = self._kv_v.insert_knot(value, times)
        return NURBSSurface.from_homogeneous(
            self._kv_u, kv, np.einsum("bj,ijd->ibd", A, self._homogeneous), self._backend
        )

    def refine(self, knots_to_insert: Sequence[float], direction="u") -> "NURBSSurface":
        """Insert several knots in one direction."""
        if len(knots_to_insert) == 0:
            return self
        if _direction_index(direction) == 0:
            kv, A = self._kv_u.refine(knots_to_insert)
            return NURBSSurface.from_homogeneous(
                kv, self._kv_v, np.einsum("ai,ijd->ajd", A, self._homogeneous), self._backend
            )
        kv, A = self._kv_v.refine(knots_to_insert)
        return NURBSSurface.from_homogeneous(
            self._kv_u, kv, np.einsum("bj,ijd->ibd", A, self._homogeneous), self._backend
        )

    def isocurve(self, parameter: float, direction="u") -> NURBSCurve:
        """
        Extract an isoparametric curve.

        Parameters:
            parameter: Fixed parameter value of the other direction
            direction: Direction the curve runs along. 'u' fixes v = parameter,
                'v' fixes u = parameter

        Returns:
            NURBSCurve lying exactly on the surface
        """
        strict = self._backend.strict
        if _direction_index(direction) == 0:
            v = self._kv_v.clamp_parameter(parameter, strict)
            span = self._kv_v.find_span(v)
            q = self._kv_v.degree
            N = basis_functions(span, v, q, self._kv_v.knots)
            H = np.einsum("j,ijd->id", N, self._homogeneous[:, span - q:span + 1])
            return NURBSCurve.from_homogeneous(self._kv_u, H, self._backend)

        u = self._kv_u.clamp_parameter(parameter, strict)
        span = self._kv_u.find_span(u)
        p = self._kv_u.degree
        N = basis_functions(span, u, p, self._kv_u.knots)
        H = np.einsum("i,ijd->jd", N, self._homogeneous[span - p:span + 1])
        return NURBSCurve.from_homogeneous(self._kv_v, H, self._backend)

    def cast(self, dtype) -> "NURBSSurface":
        """Copy of the surface in another floating-point precision."""
        backend = self._backend.with_dtype(dtype)
        return NURBSSurface.from_homogeneous(
            self._kv_u.astype(backend.dtype), self._kv_v.astype(backend.dtype),
            self._homogeneous, backend
        )

    def elevate_dimension(self) -> "NURBSSurface":
        """Copy embedded in one more spatial dimension (new coordinate = 0)."""
        H = self._homogeneous
        zeros = np.zeros(H.shape[:2] + (1,), dtype=H.dtype)
        return NURBSSurface.from_homogeneous(
            self._kv_u, self._kv_v,
            np.concatenate([H[..., :-1], zeros, H[..., -1:]], axis=-1),
            self._backend
        )

    def tessellate(self, options=None):
        """
        Adaptive triangle mesh of the surface.

        Parameters:
            options: AdaptiveTessellationOptions (defaults if None)

        Returns:
            Mesh
        """
        from ..tessellation.adaptive import tessellate_surface
        return tessellate_surface(self, options)
