"""
Surface constructors.
"""

from .extrude import extrude
from .loft import try_loft, unify_curves, loft_parameters
