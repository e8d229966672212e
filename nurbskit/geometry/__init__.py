"""
Geometry module for NURBS curves and surfaces.
"""

from .bspline import basis_functions, basis_function_derivatives, BSplineBasis
from .curve import NURBSCurve
from .surface import NURBSSurface
from .frenet import FrenetFrame
from .primitives import (
    make_nurbs_unit_square,
    make_nurbs_rectangle,
    make_nurbs_circle,
    make_nurbs_arc,
)
