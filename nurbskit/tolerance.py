"""
Precision-dependent tolerances for floating-point comparisons.

The engine runs in either single (float32) or double (float64) precision.
Every comparison against zero (knot differences, weights, normal lengths,
interpolation residuals) uses a tolerance chosen from the working dtype
rather than a hard-coded constant.

Presets:
- default:      general geometric comparisons
- strict:       parametric coordinates (knot values, span lookup)
- conservative: comparisons after long chains of arithmetic (solves, loft)
"""

import numpy as np
from typing import NamedTuple, Dict
from functools import lru_cache


SUPPORTED_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


class _TolerancePreset(NamedTuple):
    """Tolerance values for each supported precision."""
    float32: float
    float64: float


_TOLERANCE_PRESETS: Dict[str, _TolerancePreset] = {
    "default": _TolerancePreset(1e-5, 1e-10),
    "strict": _TolerancePreset(1e-6, 1e-12),
    "conservative": _TolerancePreset(1e-4, 1e-8),
}


@lru_cache(maxsize=8)
def _ensure_float_dtype_by_name(name: str) -> np.dtype:
    dtype = np.dtype(name)
    if dtype not in SUPPORTED_DTYPES:
        raise ValueError(f"Unsupported dtype: {name}. Use float32 or float64.")
    return dtype


def ensure_float_dtype(dtype) -> np.dtype:
    """
    Normalize a dtype-like into one of the supported floating dtypes.

    Parameters:
        dtype: Anything np.dtype() accepts (np.float32, "float64", ...)

    Returns:
        The validated np.dtype

    Raises:
        ValueError: If the dtype is not float32 or float64
    """
    return _ensure_float_dtype_by_name(np.dtype(dtype).name)


def _get_tolerance(dtype, preset: _TolerancePreset) -> float:
    dtype = ensure_float_dtype(dtype)
    if dtype == np.float32:
        return preset.float32
    return preset.float64


def get_default_tolerance(dtype) -> float:
    """
    Default tolerance for geometric comparisons in the given precision.

    Example:
        >>> get_default_tolerance(np.float64)
        1e-10
    """
    return _get_tolerance(dtype, _TOLERANCE_PRESETS["default"])


def get_strict_tolerance(dtype) -> float:
    """Tolerance for parametric coordinates (knots, span lookup)."""
    return _get_tolerance(dtype, _TOLERANCE_PRESETS["strict"])


def get_conservative_tolerance(dtype) -> float:
    """Tolerance for values produced by linear solves and refinements."""
    return _get_tolerance(dtype, _TOLERANCE_PRESETS["conservative"])


def get_machine_epsilon(dtype) -> float:
    """
    Machine epsilon of the given precision.

    The smallest positive number that, added to 1.0, gives a result
    different from 1.0.
    """
    return float(np.finfo(ensure_float_dtype(dtype)).eps)
