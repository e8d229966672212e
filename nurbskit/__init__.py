"""
nurbskit - NURBS curves and surfaces

A parametric geometry engine built on Non-Uniform Rational B-Splines:
evaluation of curves and surfaces in homogeneous coordinates, global
interpolation, extrusion and lofting, and adaptive tessellation into
crack-free triangle meshes. Works in single or double precision.

Key modules:
- discretization: Knot vectors, knot insertion and refinement
- geometry: B-spline basis functions, NURBS curves and surfaces, primitives
- fitting: Curve interpolation
- construction: Extrusion and lofting
- tessellation: Adaptive surface meshes and curve polylines
- config / numeric: Precision, tolerances and domain policy

Quick start (curves):
    import numpy as np
    from nurbskit import try_interpolate

    points = np.array([[-1, -1], [1, -1], [1, 0], [-1, 0], [-1, 1], [1, 1]])
    curve = try_interpolate(points, degree=3)
    curve.evaluate(0.5)
    curve.derivatives(0.5, order=2)

Quick start (surfaces):
    from nurbskit import try_loft, extrude

    surface = try_loft([curve3d, curve3d.transformed(matrix)], v_degree=3)
    mesh = surface.tessellate()
    mesh.positions, mesh.faces
"""

__version__ = "0.1.0"

from .errors import (
    NurbsError,
    ParameterOutOfDomain,
    InvalidDegree,
    DegenerateInterpolation,
    IncompatibleCurves,
    DegenerateDirection,
)
from .numeric import NumericBackend, DomainPolicy
from .config import Defaults, get_default_backend, set_default_backend, default_backend
from .discretization.knot_vector import (
    KnotVector,
    make_open_knot_vector,
    make_periodic_knot_vector,
)
from .geometry.curve import NURBSCurve
from .geometry.surface import NURBSSurface
from .fitting.interpolation import KnotStyle, try_interpolate
from .construction.extrude import extrude
from .construction.loft import try_loft
from .tessellation.options import AdaptiveTessellationOptions
from .tessellation.mesh import Mesh
