"""
Utility functions for bulk flux processing.

This module provides helper functions for:
1. Real-valued fractional powers of possibly negative bases
2. Input broadcasting and validation
"""

from typing import Dict, Union

import numpy as np
import pandas as pd


def real_power(
    base: Union[float, np.ndarray],
    exponent: float,
) -> Union[float, np.ndarray]:
    """
    Real part of the principal value of ``base ** exponent``.

    For a negative base the principal complex power is
    :math:`|x|^p e^{i p \\pi}`, so its real part is
    :math:`|x|^p \\cos(p\\pi)`. Non-negative bases give the ordinary
    power.

    Parameters
    ----------
    base : float or ndarray
        Base, any sign.
    exponent : float
        Fractional exponent.

    Returns
    -------
    float or ndarray
        Real-valued result with the shape of *base*.

    Examples
    --------
    >>> real_power(16.0, 0.25)
    2.0
    >>> round(real_power(-8.0, 1 / 3), 6)
    1.0
    """
    base = np.asarray(base, dtype=float)
    magnitude = np.abs(base) ** exponent
    result = np.where(base < 0, magnitude * np.cos(exponent * np.pi), magnitude)
    if result.ndim == 0:
        return float(result)
    return result


def broadcast_samples(**inputs: Union[float, np.ndarray, pd.Series]) -> Dict[str, np.ndarray]:
    """
    Broadcast scalars and 1-D arrays to a common sample length.

    Args:
        **inputs: Named scalars, sequences or pandas Series

    Returns:
        Dictionary of float arrays, all of shape ``(N,)``

    Raises:
        ValueError: If the inputs cannot be broadcast to one 1-D length,
            the result is empty, or any value is NaN or infinite
    """
    arrays = {name: np.asarray(value, dtype=float) for name, value in inputs.items()}

    if any(arr.ndim > 1 for arr in arrays.values()):
        raise ValueError("Inputs must be scalars or 1-D arrays")

    try:
        shape = np.broadcast_shapes(*(arr.shape for arr in arrays.values()))
    except ValueError as e:
        raise ValueError(f"Input arrays have incompatible lengths: {e}")

    if shape == ():
        shape = (1,)
    if shape[0] == 0:
        raise ValueError("Inputs must contain at least one sample")

    arrays = {name: np.broadcast_to(arr, shape).copy() for name, arr in arrays.items()}

    for name, arr in arrays.items():
        if not np.all(np.isfinite(arr)):
            raise ValueError(f"Input '{name}' contains NaN or infinite values")

    return arrays
