"""
Discretization module.

Provides:
- KnotVector: Knot vector representation, insertion and refinement
- Factories for open (clamped) and periodic knot vectors
"""

from .knot_vector import (
    KnotVector,
    KnotMultiplicity,
    make_open_knot_vector,
    make_periodic_knot_vector,
)
