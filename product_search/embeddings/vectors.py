"""
Vector validation helpers.

A vector is only usable if it has exactly the provider's dimensionality and
every element is a finite real number. Anything else is treated as
"no embedding available".
"""
import numbers

import numpy as np


def _is_real_dtype(dtype) -> bool:
    return np.issubdtype(dtype, np.floating) or np.issubdtype(dtype, np.integer)


def to_float_array(vector) -> np.ndarray | None:
    """
    1-D float64 copy of a real-valued vector, or None if it isn't one.
    Never raises: ints beyond float range and other bad values give None.
    """
    if isinstance(vector, np.ndarray):
        if vector.ndim != 1 or not _is_real_dtype(vector.dtype):
            return None
    elif isinstance(vector, (list, tuple)):
        if not all(isinstance(x, numbers.Real) and not isinstance(x, bool) for x in vector):
            return None
    else:
        return None

    try:
        return np.asarray(vector, dtype=np.float64)
    except (OverflowError, TypeError, ValueError):
        return None


def is_valid_vector(vector, dimension: int) -> bool:
    values = to_float_array(vector)
    if values is None or len(values) != dimension:
        return False
    return bool(np.isfinite(values).all())


def as_vector(vector) -> tuple[float, ...]:
    """Immutable copy of a vector, as stored in the cache."""
    return tuple(float(x) for x in vector)
