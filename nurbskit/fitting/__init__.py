"""
Curve fitting.
"""

from .interpolation import (
    KnotStyle,
    try_interpolate,
    compute_parameters,
    averaged_knot_vector,
    solve_interpolation,
    periodic_interpolation_parameters,
)
