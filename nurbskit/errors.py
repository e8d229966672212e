"""
Error kinds raised by the NURBS engine.

All of them are local, recoverable conditions. They derive from ValueError
so callers that only guard against bad input with ``except ValueError``
keep working.
"""


class NurbsError(ValueError):
    """Base class for all geometry errors raised by nurbskit."""


class ParameterOutOfDomain(NurbsError):
    """Evaluation requested outside [U[p], U[m-p]] under the strict policy."""

    def __init__(self, parameter: float, domain):
        self.parameter = parameter
        self.domain = (float(domain[0]), float(domain[1]))
        super().__init__(f"Parameter {parameter} outside domain {self.domain}")


class InvalidDegree(NurbsError):
    """Degree < 1, or degree not smaller than the number of control points."""


class DegenerateInterpolation(NurbsError):
    """Too few points, or the fitting linear system is singular."""


class IncompatibleCurves(NurbsError):
    """Loft input curves cannot be reconciled to a common knot structure."""


class DegenerateDirection(NurbsError):
    """Extrusion direction is the zero vector."""
