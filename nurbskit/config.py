"""
Package-wide defaults.

All defaults live in one place:

    from nurbskit.config import Defaults, get_default_backend

    Defaults.INTERPOLATION_DEGREE   # 3
    backend = get_default_backend()  # float64, clamped evaluation

Objects built without an explicit ``backend`` capture the default backend
at construction time. Changing the default afterwards does not affect
existing objects:

    with default_backend(dtype=np.float32):
        curve = try_interpolate(points)   # single precision
"""

import numpy as np
from typing import Optional, Iterator
from contextlib import contextmanager

from .numeric import NumericBackend, DomainPolicy


class Defaults:
    """
    Default settings.

    Categories:
    - numeric precision and evaluation domain policy
    - interpolation
    - adaptive surface tessellation
    - curve tessellation
    """

    DTYPE = np.float64
    DOMAIN_POLICY = DomainPolicy.CLAMP

    INTERPOLATION_DEGREE = 3
    LOFT_V_DEGREE = 3

    # Norm of the difference between unit normals (~ angle in radians)
    TESSELLATION_NORM_TOLERANCE = 2.5e-2
    TESSELLATION_MIN_DEPTH = 0
    TESSELLATION_MAX_DEPTH = 8

    # Maximum distance of a curve sample from its chord
    CURVE_TESSELLATION_TOLERANCE = 1e-4
    CURVE_TESSELLATION_MAX_DEPTH = 16


_default_backend = NumericBackend(dtype=Defaults.DTYPE, domain_policy=Defaults.DOMAIN_POLICY)


def get_default_backend() -> NumericBackend:
    """Backend used when an object is built without one."""
    return _default_backend


def set_default_backend(backend: NumericBackend) -> None:
    """Replace the default backend for objects built from now on."""
    global _default_backend
    if not isinstance(backend, NumericBackend):
        raise TypeError(f"Expected NumericBackend, got {type(backend).__name__}")
    _default_backend = backend


def resolve_backend(backend: Optional[NumericBackend]) -> NumericBackend:
    """Return backend, or the current default if it is None."""
    return get_default_backend() if backend is None else backend


@contextmanager
def default_backend(dtype=None, domain_policy: Optional[DomainPolicy] = None) -> Iterator[NumericBackend]:
    """
    Temporarily change the default backend.

    Parameters:
        dtype: Precision to use inside the block (None keeps the current one)
        domain_policy: Domain policy to use inside the block

    Yields:
        The backend active inside the block
    """
    previous = get_default_backend()
    backend = previous
    if dtype is not None:
        backend = backend.with_dtype(dtype)
    if domain_policy is not None:
        backend = backend.with_domain_policy(domain_policy)
    set_default_backend(backend)
    try:
        yield backend
    finally:
        set_default_backend(previous)
