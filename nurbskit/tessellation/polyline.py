"""
Adaptive polyline approximation of curves.

Each knot span is sampled separately (the curve is smooth inside a span).
A segment [a, b] is split at its midpoint while one of the probes at
a + h/4, a + h/2, a + 3h/4 lies further than the tolerance from the chord.
"""

import numpy as np
from typing import Optional

from loguru import logger

from ..config import Defaults


def _distance_to_segment(point: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    ab = b - a
    length2 = float(np.dot(ab, ab))
    if length2 == 0.0:
        return float(np.linalg.norm(point - a))
    t = min(max(float(np.dot(point - a, ab)) / length2, 0.0), 1.0)
    return float(np.linalg.norm(point - (a + t * ab)))


def tessellate_curve(curve, tolerance: Optional[float] = None,
                     max_depth: int = Defaults.CURVE_TESSELLATION_MAX_DEPTH) -> np.ndarray:
    """
    Polyline through points of a curve.

    Parameters:
        curve: NURBSCurve
        tolerance: Maximum distance between the probes and the polyline
            (defaults to Defaults.CURVE_TESSELLATION_TOLERANCE)
        max_depth: Maximum number of bisections of a knot span

    Returns:
        Array of shape (k, d); the first and last rows are the curve ends
    """
    if tolerance is None:
        tolerance = Defaults.CURVE_TESSELLATION_TOLERANCE
    if not tolerance > 0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")

    breaks = curve.knot_vector.unique_knots
    points = [curve.evaluate(breaks[0])]

    for a, b in zip(breaks[:-1], breaks[1:]):
        stack = [(float(a), float(b), points[-1], curve.evaluate(b), 0)]
        while stack:
            a, b, pa, pb, depth = stack.pop()
            h = b - a
            split = depth < max_depth and any(
                _distance_to_segment(curve.evaluate(a + f * h), pa, pb) > tolerance
                for f in (0.25, 0.5, 0.75)
            )
            if split:
                m = a + 0.5 * h
                pm = curve.evaluate(m)
                stack.append((m, b, pm, pb, depth + 1))
                stack.append((a, m, pa, pm, depth + 1))
            else:
                points.append(pb)

    logger.debug(f"Curve tessellation: {len(points)} points over {len(breaks) - 1} spans")
    return np.array(points, dtype=curve.dtype)
