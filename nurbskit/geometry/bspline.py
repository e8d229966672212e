"""
B-spline basis function evaluation.

The i-th B-spline basis function of degree p is defined recursively:

    N_{i,0}(u) = 1 if U_i <= u < U_{i+1}, else 0

    N_{i,p}(u) = (u - U_i)/(U_{i+p} - U_i) * N_{i,p-1}(u)
               + (U_{i+p+1} - u)/(U_{i+p+1} - U_{i+1}) * N_{i+1,p-1}(u)

Properties:
- Partition of unity: the p+1 non-zero values at any u in the domain sum to 1
- Non-negativity: N_{i,p}(u) >= 0
- Local support: N_{i,p} is non-zero only on [U_i, U_{i+p+1})

Only the p+1 functions that can be non-zero on the span are evaluated,
using the triangular scheme of Piegl & Tiller (Algorithms A2.2 and A2.3),
so a call costs O(p^2). Results use the dtype of the knot array.
"""

import numpy as np
from typing import Optional

from ..discretization.knot_vector import KnotVector


def basis_functions(span: int, u: float, degree: int, knots: np.ndarray) -> np.ndarray:
    """
    Evaluate the non-zero B-spline basis functions at a parameter value.

    Parameters:
        span: Knot span index containing u (see KnotVector.find_span)
        u: Parameter value
        degree: Polynomial degree p
        knots: Knot values

    Returns:
        Array of shape (p+1,) containing N_{span-p,p}(u) to N_{span,p}(u)
    """
    p = degree
    N = np.zeros(p + 1, dtype=knots.dtype)
    N[0] = 1.0

    left = np.zeros(p + 1, dtype=knots.dtype)
    right = np.zeros(p + 1, dtype=knots.dtype)

    for j in range(1, p + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u

        saved = 0.0
        for r in range(j):
            temp = N[r] / (right[r + 1] + left[j - r])
            N[r] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        N[j] = saved

    return N


def basis_function_derivatives(span: int, u: float, degree: int,
                               knots: np.ndarray, order: int) -> np.ndarray:
    """
    Evaluate B-spline basis functions and their derivatives.

    Uses Algorithm A2.3 from Piegl & Tiller "The NURBS Book".

    Parameters:
        span: Knot span index containing u
        u: Parameter value
        degree: Polynomial degree p
        knots: Knot values
        order: Highest derivative order (0 = values only)

    Returns:
        Array ders of shape (order+1, p+1) where ders[k, j] is the k-th
        derivative of N_{span-p+j, p}. Rows above the degree are zero.
    """
    p = degree
    if order < 0:
        raise ValueError("Derivative order must be non-negative")
    n_ders = min(order, p)
    ders = np.zeros((order + 1, p + 1), dtype=knots.dtype)

    # ndu: basis functions (lower triangle) and knot differences (upper)
    ndu = np.zeros((p + 1, p + 1), dtype=knots.dtype)
    ndu[0, 0] = 1.0

    left = np.zeros(p + 1, dtype=knots.dtype)
    right = np.zeros(p + 1, dtype=knots.dtype)

    for j in range(1, p + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u

        saved = 0.0
        for r in range(j):
            ndu[j, r] = right[r + 1] + left[j - r]
            temp = ndu[r, j - 1] / ndu[j, r]

            ndu[r, j] = saved + right[r + 1] * temp
            saved = left[j - r] * temp

        ndu[j, j] = saved

    for j in range(p + 1):
        ders[0, j] = ndu[j, p]

    a = np.zeros((2, p + 1), dtype=knots.dtype)

    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0, 0] = 1.0

        for k in range(1, n_ders + 1):
            d = 0.0
            rk = r - k
            pk = p - k

            if r >= k:
                a[s2, 0] = a[s1, 0] / ndu[pk + 1, rk]
                d = a[s2, 0] * ndu[rk, pk]

            j1 = 1 if rk >= -1 else -rk
            j2 = k - 1 if r - 1 <= pk else p - r

            for j in range(j1, j2 + 1):
                a[s2, j] = (a[s1, j] - a[s1, j - 1]) / ndu[pk + 1, rk + j]
                d += a[s2, j] * ndu[rk + j, pk]

            if r <= pk:
                a[s2, k] = -a[s1, k - 1] / ndu[pk + 1, r]
                d += a[s2, k] * ndu[r, pk]

            ders[k, r] = d
            s1, s2 = s2, s1

    # Multiply by p! / (p-k)!
    factor = p
    for k in range(1, n_ders + 1):
        ders[k, :] *= factor
        factor *= (p - k)

    return ders


class BSplineBasis:
    """
    Univariate B-spline basis bound to a knot vector.

    Attributes:
        knot_vector: The underlying KnotVector
    """

    def __init__(self, knot_vector: KnotVector):
        self.knot_vector = knot_vector

    @property
    def degree(self) -> int:
        return self.knot_vector.degree

    @property
    def n_basis(self) -> int:
        return self.knot_vector.n_basis

    def eval(self, u: float, span: Optional[int] = None) -> np.ndarray:
        """Evaluate the non-zero basis functions at u."""
        if span is None:
            span = self.knot_vector.find_span(u)
        return basis_functions(span, u, self.degree, self.knot_vector.knots)

    def eval_ders(self, u: float, n_ders: int, span: Optional[int] = None) -> np.ndarray:
        """Evaluate the non-zero basis functions and derivatives at u."""
        if span is None:
            span = self.knot_vector.find_span(u)
        return basis_function_derivatives(span, u, self.degree, self.knot_vector.knots, n_ders)

    def active_basis_indices(self, u: float, span: Optional[int] = None) -> range:
        """Indices of the p+1 basis functions that may be non-zero at u."""
        if span is None:
            span = self.knot_vector.find_span(u)
        return range(span - self.degree, span + 1)

    def eval_all(self, u: float) -> np.ndarray:
        """
        Evaluate all n_basis functions at u (zeros outside the local support).

        Used to assemble collocation matrices.
        """
        span = self.knot_vector.find_span(u)
        values = np.zeros(self.n_basis, dtype=self.knot_vector.dtype)
        indices = self.active_basis_indices(u, span)
        values[indices.start:indices.stop] = self.eval(u, span)
        return values
