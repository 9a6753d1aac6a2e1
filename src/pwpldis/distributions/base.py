"""Parameter validation, Hurwitz zeta access and normalizing constants."""

from __future__ import annotations

import numpy as np
from scipy.special import zeta

from ..core import ArrayLike, InvalidParameterError

MIN_EXPONENT = 1.0


def hurwitz_zeta(exponent: ArrayLike | float, shift: ArrayLike | float) -> np.ndarray:
    """Evaluate ``sum_{n>=0} (n + shift) ** -exponent`` elementwise.

    Values of ``exponent <= 1`` are outside the convergence domain and come
    back as ``inf``/``nan`` from SciPy; callers validate exponents first.
    """
    return zeta(np.asarray(exponent, dtype=float), np.asarray(shift, dtype=float))


def validate_parameters(p: ArrayLike, alpha: ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(p, alpha)`` as float arrays after checking the model domain."""
    p_arr = np.atleast_1d(np.asarray(p, dtype=float))
    alpha_arr = np.atleast_1d(np.asarray(alpha, dtype=float))
    if p_arr.ndim != 1 or p_arr.size == 0:
        raise InvalidParameterError("p must be a non-empty one-dimensional vector.")
    if p_arr.size != alpha_arr.size:
        raise InvalidParameterError(
            f"p and alpha must have the same length (got {p_arr.size} and {alpha_arr.size})."
        )
    if not np.all(np.isfinite(p_arr)):
        raise InvalidParameterError("p must contain finite values.")
    if np.any(np.diff(p_arr) <= 0):
        raise InvalidParameterError("p must be strictly increasing.")
    if p_arr[0] < 1:
        raise InvalidParameterError("The minimum value p[0] must be at least 1.")
    if np.any(~np.isfinite(alpha_arr)) or np.any(alpha_arr <= MIN_EXPONENT):
        raise InvalidParameterError("alpha must be > 1.")
    return p_arr, alpha_arr


def normalizing_constants(p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Continuity constants ``C_0..C_{k+1}`` of the piecewise model.

    ``C_0 = 1`` and ``C_i = C_{i-1} * zeta(alpha_i, tau_i) / zeta(alpha_i, tau_{i-1})``
    for ``i = 1..k``; the trailing entry is ``0`` and marks the open-ended last
    partition.
    """
    p_arr, alpha_arr = validate_parameters(p, alpha)
    k = p_arr.size
    constants = np.zeros(k + 1, dtype=float)
    constants[0] = 1.0
    if k > 1:
        ratios = hurwitz_zeta(alpha_arr[:-1], p_arr[1:]) / hurwitz_zeta(alpha_arr[:-1], p_arr[:-1])
        constants[1:k] = np.cumprod(ratios)
    return constants


__all__ = [
    "MIN_EXPONENT",
    "hurwitz_zeta",
    "normalizing_constants",
    "validate_parameters",
]
