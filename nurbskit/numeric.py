"""
Numeric backend shared by every geometry object.

The engine is written against a small numeric capability instead of a
concrete floating-point width:

- dtype:          float32 or float64, used for every array an object owns
- eps, tolerance, solver_tolerance: precision-dependent comparison thresholds
- sqrt:           element-wise square root in the working precision
- solve:          dense linear-system solve (delegated to scipy.linalg)
- domain policy:  what to do with parameters outside the knot domain

Each curve/surface captures its backend at construction time. Casting to
another precision produces a new object with a new backend.
"""

import numpy as np
import scipy.linalg
from enum import Enum
from dataclasses import dataclass, field, replace

from .tolerance import (
    ensure_float_dtype,
    get_default_tolerance,
    get_conservative_tolerance,
    get_machine_epsilon,
)


class DomainPolicy(Enum):
    """
    Handling of evaluation parameters outside [U[p], U[m-p]].

    CLAMP:  move the parameter to the nearest domain bound
    STRICT: raise ParameterOutOfDomain
    """
    CLAMP = "clamp"
    STRICT = "strict"


@dataclass(frozen=True)
class NumericBackend:
    """
    Numeric capability injected into curves, surfaces and solvers.

    Attributes:
        dtype: Working floating-point precision (float32 or float64)
        domain_policy: Out-of-domain evaluation policy
    """
    dtype: np.dtype = field(default=np.dtype(np.float64))
    domain_policy: DomainPolicy = DomainPolicy.CLAMP

    def __post_init__(self):
        object.__setattr__(self, "dtype", ensure_float_dtype(self.dtype))
        if not isinstance(self.domain_policy, DomainPolicy):
            object.__setattr__(self, "domain_policy", DomainPolicy(self.domain_policy))

    @property
    def strict(self) -> bool:
        """True if out-of-domain parameters raise instead of clamping."""
        return self.domain_policy is DomainPolicy.STRICT

    @property
    def eps(self) -> float:
        """Machine epsilon of the working precision."""
        return get_machine_epsilon(self.dtype)

    @property
    def tolerance(self) -> float:
        """Default comparison tolerance of the working precision."""
        return get_default_tolerance(self.dtype)

    @property
    def solver_tolerance(self) -> float:
        """Tolerance for quantities produced by solves and refinement."""
        return get_conservative_tolerance(self.dtype)

    def asarray(self, values) -> np.ndarray:
        """Convert values to an array of the working dtype (copying)."""
        return np.array(values, dtype=self.dtype)

    def sqrt(self, values) -> np.ndarray:
        """
        Element-wise square root in the working dtype.

        Raises:
            ValueError: If any value is negative or not finite
        """
        values = np.asarray(values, dtype=self.dtype)
        if not np.all(np.isfinite(values)) or np.any(values < 0):
            raise ValueError("sqrt needs finite, non-negative values")
        return np.sqrt(values)

    def solve(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        """
        Solve the dense linear system A X = B.

        Parameters:
            A: Square coefficient matrix (n, n)
            B: Right-hand side (n,) or (n, k)

        Returns:
            Solution X with the shape of B, in the working dtype

        Raises:
            numpy.linalg.LinAlgError: If A is singular or too ill-conditioned
                for the working precision
        """
        A = np.asarray(A, dtype=self.dtype)
        B = np.asarray(B, dtype=self.dtype)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"Coefficient matrix must be square, got {A.shape}")

        cond = np.linalg.cond(A)
        if not np.isfinite(cond) or cond * self.eps >= 1.0:
            raise np.linalg.LinAlgError(f"Singular matrix (condition number {cond:.3e})")

        return scipy.linalg.solve(A, B).astype(self.dtype, copy=False)

    def with_dtype(self, dtype) -> "NumericBackend":
        """Copy of this backend with another precision."""
        return replace(self, dtype=ensure_float_dtype(dtype))

    def with_domain_policy(self, policy: DomainPolicy) -> "NumericBackend":
        """Copy of this backend with another out-of-domain policy."""
        return replace(self, domain_policy=DomainPolicy(policy))
