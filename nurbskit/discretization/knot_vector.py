"""
Knot vector representation and refinement.

A knot vector is a non-decreasing sequence of real numbers that partitions
the parametric domain and fixes the support of the B-spline basis.

Mathematical background:
- For degree p and n+1 basis functions there are m+1 = n+p+2 knots
- The valid parametric domain is [U[p], U[m-p]]
- Open (clamped) knot vectors repeat the end knots p+1 times, so the curve
  interpolates its first and last control points
- Interior knots have multiplicity <= p (C^{p-k} continuity at a knot of
  multiplicity k)
- Periodic (unclamped) knot vectors extend the domain knots by one period
  on both sides

Knot vectors are immutable. Knot insertion returns a new vector together
with the blending matrix A that maps old control points to new ones:

    P_new = A @ P_old

Control points are transformed in homogeneous coordinates by the caller.
"""

import numpy as np
from typing import List, Tuple, Sequence, Optional, NamedTuple

from ..errors import InvalidDegree, ParameterOutOfDomain
from ..tolerance import ensure_float_dtype, get_strict_tolerance


class KnotMultiplicity(NamedTuple):
    """A distinct knot value and the number of times it is repeated."""
    knot: float
    multiplicity: int


class KnotVector:
    """
    Univariate knot vector of a given degree.

    Attributes:
        knots: The knot values (read-only, non-decreasing)
        degree: Polynomial degree p

    Properties computed:
        n_basis: Number of basis functions (= number of control points)
        domain: Parametric domain (U[p], U[n_basis])
        elements: Non-zero measure knot spans inside the domain
    """

    def __init__(self, knots, degree: int, dtype=None):
        knots = np.asarray(knots)
        if dtype is None:
            dtype = knots.dtype if knots.dtype in (np.float32, np.float64) else np.float64
        knots = np.array(knots, dtype=ensure_float_dtype(dtype))
        knots.setflags(write=False)

        self._knots = knots
        self._degree = int(degree)
        self._validate()
        self._compute_elements()

    def _validate(self):
        """Validate knot vector properties."""
        p = self._degree
        if p < 1:
            raise InvalidDegree(f"Degree must be at least 1, got {p}")
        if self._knots.ndim != 1:
            raise ValueError("Knot vector must be one-dimensional.")
        if len(self._knots) < 2 * (p + 1):
            raise ValueError(
                f"Knot vector too short for degree {p}. "
                f"Need at least {2 * (p + 1)} knots, got {len(self._knots)}."
            )
        if not np.all(np.isfinite(self._knots)):
            raise ValueError("Knot values must be finite.")
        if not np.all(np.diff(self._knots) >= 0):
            raise ValueError("Knot vector must be non-decreasing.")

        lo, hi = self._knots[p], self._knots[self.n_basis]
        if not hi > lo:
            raise ValueError(f"Knot vector has an empty domain [{lo}, {hi}].")

        for knot, mult in self.multiplicities():
            if lo < knot < hi and mult > p:
                raise ValueError(
                    f"Interior knot {knot} has multiplicity {mult} > degree {p}."
                )

    def _compute_elements(self):
        """
        Compute unique knot spans (elements) inside the domain.

        Elements are intervals [u_i, u_{i+1}] with non-zero measure.
        """
        lo, hi = self.domain
        unique = np.unique(self._knots)
        self._unique_knots = unique[(unique >= lo) & (unique <= hi)]
        self._unique_knots.setflags(write=False)
        self._elements = [
            (float(a), float(b))
            for a, b in zip(self._unique_knots[:-1], self._unique_knots[1:])
        ]

    def __repr__(self) -> str:
        return f"KnotVector(knots={self._knots.tolist()}, degree={self._degree})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, KnotVector):
            return NotImplemented
        return (self._degree == other._degree
                and self._knots.shape == other._knots.shape
                and bool(np.all(self._knots == other._knots)))

    def __len__(self) -> int:
        return len(self._knots)

    @property
    def knots(self) -> np.ndarray:
        return self._knots

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def dtype(self) -> np.dtype:
        return self._knots.dtype

    @property
    def n_basis(self) -> int:
        """Number of basis functions."""
        return len(self._knots) - self._degree - 1

    @property
    def n_elements(self) -> int:
        """Number of non-zero measure knot spans."""
        return len(self._elements)

    @property
    def elements(self) -> List[Tuple[float, float]]:
        """List of element intervals as (u_start, u_end) tuples."""
        return list(self._elements)

    @property
    def unique_knots(self) -> np.ndarray:
        """Distinct knot values inside the domain (breakpoints)."""
        return self._unique_knots

    @property
    def domain(self) -> Tuple[float, float]:
        """Parametric domain (U[p], U[m-p])."""
        return (float(self._knots[self._degree]), float(self._knots[self.n_basis]))

    @property
    def is_clamped(self) -> bool:
        """True if both end knots are repeated degree+1 times."""
        p = self._degree
        k = self._knots
        return bool(np.all(k[:p + 1] == k[0]) and np.all(k[-(p + 1):] == k[-1]))

    @property
    def tolerance(self) -> float:
        """Parametric tolerance scaled to the domain length."""
        lo, hi = self.domain
        return get_strict_tolerance(self.dtype) * max(1.0, hi - lo)

    def clamp_parameter(self, u: float, strict: bool = False) -> float:
        """
        Apply the domain policy to a parameter value.

        Values within the parametric tolerance of the domain are always
        clamped. Values further away are clamped, or rejected in strict mode.

        Parameters:
            u: Parameter value
            strict: Raise instead of clamping

        Returns:
            Parameter inside [U[p], U[m-p]]

        Raises:
            ParameterOutOfDomain: If strict and u lies outside the domain
        """
        lo, hi = self.domain
        if lo <= u <= hi:
            return u
        if not np.isfinite(u):
            raise ParameterOutOfDomain(u, (lo, hi))
        if strict and (u < lo - self.tolerance or u > hi + self.tolerance):
            raise ParameterOutOfDomain(u, (lo, hi))
        return lo if u < lo else hi

    def find_span(self, u: float, strict: bool = False) -> int:
        """
        Find the knot span index containing parameter value u.

        For u in [U_i, U_{i+1}), returns i. The last span is closed:
        u == U[m-p] maps to the last non-empty span.

        Parameters:
            u: Parameter value
            strict: Raise for out-of-domain values instead of clamping

        Returns:
            Span index i with p <= i <= n_basis - 1
        """
        u = self.clamp_parameter(u, strict)
        n = self.n_basis
        p = self._degree
        knots = self._knots

        if u >= knots[n]:
            # Last non-empty span
            span = n - 1
            while knots[span] == knots[span + 1]:
                span -= 1
            return span
        if u <= knots[p]:
            span = p
            while knots[span] == knots[span + 1]:
                span += 1
            return span

        # Binary search
        low = p
        high = n
        mid = (low + high) // 2

        while u < knots[mid] or u >= knots[mid + 1]:
            if u < knots[mid]:
                high = mid
            else:
                low = mid
            mid = (low + high) // 2

        return mid

    def greville_abscissae(self) -> np.ndarray:
        """
        Compute Greville abscissae (nodal parameters for basis functions).

        The i-th Greville abscissa is the average of p consecutive knots:
        g_i = (U_{i+1} + ... + U_{i+p}) / p

        Returns:
            Array of n_basis Greville abscissae
        """
        p = self._degree
        greville = np.zeros(self.n_basis, dtype=self.dtype)
        for i in range(self.n_basis):
            greville[i] = np.sum(self._knots[i + 1:i + p + 1]) / p
        return greville

    def multiplicity(self, u: float) -> int:
        """Number of times u appears in the knot vector (within tolerance)."""
        return int(np.sum(np.abs(self._knots - u) <= self.tolerance))

    def multiplicities(self) -> List[KnotMultiplicity]:
        """Distinct knot values with their multiplicities, in order."""
        return [KnotMultiplicity(float(k), int(c))
                for k, c in _group_knots(self._knots, self.tolerance)]

    def insert_knot(self, u: float, times: int = 1) -> Tuple["KnotVector", np.ndarray]:
        """
        Insert a knot value, up to `times` times.

        The resulting multiplicity of u is capped at the degree. The returned
        matrix A (n_new x n_old) blends the old control points into the new
        ones (Piegl & Tiller, Algorithm A5.1 applied one knot at a time).

        Parameters:
            u: Knot value to insert (inside the domain)
            times: Number of insertions requested

        Returns:
            (new_knot_vector, A)
        """
        if times < 0:
            raise ValueError("times must be non-negative")
        u = self.clamp_parameter(u, strict=True)
        r = min(times, self._degree - self.multiplicity(u))

        kv = self
        A_total = np.eye(self.n_basis, dtype=self.dtype)
        for _ in range(max(r, 0)):
            kv, A = _insert_single_knot(kv, u)
            A_total = A @ A_total
        return kv, A_total

    def refine(self, knots_to_insert: Sequence[float]) -> Tuple["KnotVector", np.ndarray]:
        """
        Insert a sequence of knots (knot refinement).

        Parameters:
            knots_to_insert: Knot values; repeated values are inserted repeatedly

        Returns:
            (refined_knot_vector, A) with A of shape (n_new, n_old)
        """
        kv = self
        A_total = np.eye(self.n_basis, dtype=self.dtype)
        for u in sorted(float(x) for x in knots_to_insert):
            kv, A = kv.insert_knot(u, 1)
            A_total = A @ A_total
        return kv, A_total

    def clamped(self) -> Tuple["KnotVector", np.ndarray]:
        """
        Clamped knot vector with the same curves on the domain.

        Both domain ends are inserted until their multiplicity reaches p.
        The knots and basis functions left outside the domain are then
        dropped and the end knots repeated p+1 times.

        Returns:
            (clamped_knot_vector, A) with A of shape (n_new, n_old)
        """
        if self.is_clamped:
            return self, np.eye(self.n_basis, dtype=self.dtype)

        p = self._degree
        lo, hi = self.domain
        kv, A = self.insert_knot(lo, p)
        kv, A_hi = kv.insert_knot(hi, p)
        A = A_hi @ A

        knots = kv.knots
        tol = self.tolerance
        first = int(np.nonzero(np.abs(knots - lo) <= tol)[0][-1]) - p
        last = int(np.nonzero(np.abs(knots - hi) <= tol)[0][0])

        new_knots = np.array(knots[first:last + p + 1])
        new_knots[:p + 1] = lo
        new_knots[-(p + 1):] = hi
        return KnotVector(new_knots, p, dtype=self.dtype), A[first:last]

    def unify(self, other: "KnotVector") -> "KnotVector":
        """
        Common knot vector containing both knot vectors.

        Every distinct value of either vector appears with the larger of its
        two multiplicities, so both vectors can be refined onto the result
        without changing the shape of their curves.

        Parameters:
            other: Knot vector of the same degree and domain

        Returns:
            Unified KnotVector

        Raises:
            ValueError: If degrees or domains differ
        """
        if other.degree != self._degree:
            raise ValueError(f"Cannot unify degree {self._degree} with degree {other.degree}")
        tol = max(self.tolerance, other.tolerance)
        if not np.allclose(self.domain, other.domain, rtol=0.0, atol=tol):
            raise ValueError(f"Cannot unify domain {self.domain} with domain {other.domain}")

        merged = np.sort(np.concatenate([self._knots, other.knots.astype(self.dtype)]))
        knots = []
        for value, _ in _group_knots(merged, tol):
            count = max(self.multiplicity(value), other.multiplicity(value))
            knots.extend([value] * count)
        return KnotVector(np.array(knots, dtype=self.dtype), self._degree)

    def missing_knots(self, target: "KnotVector") -> List[float]:
        """
        Knots to insert into this vector to obtain `target`.

        Parameters:
            target: A knot vector containing every knot of this one

        Returns:
            List of knot values (with repetitions)
        """
        missing = []
        for value, count in target.multiplicities():
            extra = count - self.multiplicity(value)
            if extra < 0:
                raise ValueError(f"Target knot vector lacks knot {value}")
            missing.extend([value] * extra)
        return missing

    def reversed(self) -> "KnotVector":
        """Knot vector of the reversed parameterization u -> a + b - u."""
        lo, hi = self.domain
        return KnotVector((lo + hi) - self._knots[::-1], self._degree, dtype=self.dtype)

    def normalized(self, domain: Tuple[float, float] = (0.0, 1.0)) -> "KnotVector":
        """Knot vector affinely mapped so that its domain becomes `domain`."""
        lo, hi = self.domain
        a, b = domain
        if not b > a:
            raise ValueError("domain[0] must be less than domain[1]")
        knots = a + (self._knots - lo) * ((b - a) / (hi - lo))
        return KnotVector(knots, self._degree, dtype=self.dtype)

    def astype(self, dtype) -> "KnotVector":
        """Copy of the knot vector in another precision."""
        return KnotVector(self._knots, self._degree, dtype=dtype)


def _group_knots(knots: np.ndarray, tol: float) -> List[Tuple[float, int]]:
    """Group a sorted knot array into (value, count) pairs within tol."""
    groups: List[Tuple[float, int]] = []
    for k in knots:
        if groups and abs(k - groups[-1][0]) <= tol:
            groups[-1] = (groups[-1][0], groups[-1][1] + 1)
        else:
            groups.append((float(k), 1))
    return groups


def _insert_single_knot(kv: KnotVector, u: float) -> Tuple[KnotVector, np.ndarray]:
    """
    Insert u once.

    Returns:
        (new_knot_vector, A) with A of shape (n_old + 1, n_old)
    """
    p = kv.degree
    knots = kv.knots
    n_old = kv.n_basis

    # k: last index with U[k] <= u, restricted to the valid spans
    k = int(np.searchsorted(knots, u, side="right")) - 1
    k = min(max(k, p), n_old)

    new_knots = np.insert(knots, k + 1, u)
    n_new = n_old + 1

    A = np.zeros((n_new, n_old), dtype=kv.dtype)
    for i in range(n_new):
        if i <= k - p:
            A[i, i] = 1.0
        elif i >= k + 1:
            A[i, i - 1] = 1.0
        else:
            denom = knots[i + p] - knots[i]
            alpha = (u - knots[i]) / denom if denom > 0 else 0.0
            A[i, i - 1] = 1.0 - alpha
            A[i, i] = alpha

    return KnotVector(new_knots, p, dtype=kv.dtype), A


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0),
                          dtype=np.float64) -> KnotVector:
    """
    Create an open (clamped) uniform knot vector.

    Open knot vectors have the first and last knot repeated p+1 times,
    ensuring the basis interpolates the first and last control points.

    Parameters:
        n_basis: Number of basis functions desired
        degree: Polynomial degree p
        domain: Parametric domain (start, end)
        dtype: Floating-point precision

    Returns:
        KnotVector with uniform internal knots
    """
    p = degree
    n_internal = n_basis + p + 1 - 2 * (p + 1)

    if n_internal < 0:
        raise InvalidDegree(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}"
        )

    a, b = domain
    knots = [a] * (p + 1)
    if n_internal > 0:
        knots.extend(np.linspace(a, b, n_internal + 2)[1:-1])
    knots.extend([b] * (p + 1))

    return KnotVector(np.array(knots), degree, dtype=dtype)


def make_periodic_knot_vector(parameters: Sequence[float], degree: int,
                              dtype: Optional[np.dtype] = None) -> KnotVector:
    """
    Create an unclamped (periodic) knot vector over closed-curve parameters.

    The parameters t_0 < ... < t_N become the domain knots. The period
    T = t_N - t_0 is used to extend them by p knots on each side:

        U[p-j]   = t_{N-j} - T
        U[N+p+j] = t_j + T          j = 1..p

    The vector supports N + p basis functions, the last p of which are
    identified with the first p (wrapped control points).

    Parameters:
        parameters: Strictly increasing parameters, N >= p + 1 intervals
        degree: Polynomial degree p
        dtype: Floating-point precision (inferred if None)

    Returns:
        KnotVector with domain [t_0, t_N]
    """
    t = np.asarray(parameters, dtype=np.float64 if dtype is None else dtype)
    p = degree
    N = len(t) - 1
    if N < p + 1:
        raise InvalidDegree(f"Periodic knot vector of degree {p} needs at least {p + 1} intervals")
    period = t[-1] - t[0]

    head = [t[N - j] - period for j in range(p, 0, -1)]
    tail = [t[j] + period for j in range(1, p + 1)]
    knots = np.concatenate([head, t, tail])
    return KnotVector(knots, p, dtype=t.dtype)
