"""
Gauss-Legendre quadrature for numerical integration.

n points integrate exactly polynomials up to degree 2n-1. Used for
integrals over knot spans such as the arc length of a curve.

The reference domain is [0, 1]. Standard Gauss points on [-1, 1] are
mapped accordingly.

Usage:
    points, weights = gauss_legendre_1d(n)  # 1D quadrature on [0,1]
    value = integrate_spans(f, [(0.0, 0.5), (0.5, 1.0)], n)
"""

import numpy as np
from typing import Callable, Sequence, Tuple
from functools import lru_cache


@lru_cache(maxsize=16)
def _gauss_legendre_1d(n: int, dtype_name: str) -> Tuple[np.ndarray, np.ndarray]:
    points_std, weights_std = np.polynomial.legendre.leggauss(n)

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = (0.5 * (points_std + 1.0)).astype(dtype_name)
    weights = (0.5 * weights_std).astype(dtype_name)
    points.setflags(write=False)
    weights.setflags(write=False)
    return points, weights


def gauss_legendre_1d(n: int, dtype=np.float64) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points
        dtype: Floating-point precision of the returned arrays

    Returns:
        (points, weights) where:
        - points: Read-only array of n quadrature points in [0, 1]
        - weights: Read-only array of n quadrature weights (sum to 1)
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")
    return _gauss_legendre_1d(int(n), np.dtype(dtype).name)


def integrate_spans(f: Callable[[float], float],
                    spans: Sequence[Tuple[float, float]],
                    n: int) -> float:
    """
    Integrate a scalar function over a union of intervals.

    Parameters:
        f: Integrand
        spans: Intervals (a, b)
        n: Quadrature points per interval

    Returns:
        Sum of the integrals over all spans
    """
    points, weights = gauss_legendre_1d(n)
    total = 0.0
    for a, b in spans:
        h = b - a
        for x, w in zip(points, weights):
            total += w * h * f(a + h * x)
    return float(total)
