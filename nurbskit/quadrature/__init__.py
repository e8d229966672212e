"""
Quadrature module.
"""

from .gauss import gauss_legendre_1d, integrate_spans
