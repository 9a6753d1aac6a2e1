"""Probability functions of the discrete piecewise power-law distribution.

The support ``[tau_0, inf)`` is split at the change points
``tau_1 < ... < tau_k`` and the mass function on ``[tau_{j-1}, tau_j)`` is

    p(x) = x ** -alpha_j / zeta(alpha_j, tau_{j-1}) * C_{j-1}

with the continuity constants from :func:`normalizing_constants`. Every
function accepts a scalar or an array of evaluation points and returns an
array of the same shape.
"""

from __future__ import annotations

import logging

import numpy as np

from ..core import ArrayLike, InvalidParameterError, RandomState
from .base import hurwitz_zeta, normalizing_constants, validate_parameters
from .partition import count_each_interval, interval_labels

logger = logging.getLogger(__name__)


def _segments(
    x: ArrayLike, p: ArrayLike, alpha: ArrayLike
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    p_arr, alpha_arr = validate_parameters(p, alpha)
    constants = normalizing_constants(p_arr, alpha_arr)
    points = np.atleast_1d(np.asarray(x, dtype=float))
    labels = interval_labels(points, p_arr)
    inside = labels >= 0
    return points, p_arr, alpha_arr, constants, labels, inside


def pwpl_density(x: ArrayLike, p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Probability mass at ``x`` (zero below ``p[0]``)."""
    points, p_arr, alpha_arr, constants, labels, inside = _segments(x, p, alpha)
    out = np.zeros(points.shape, dtype=float)
    j = labels[inside]
    normaliser = hurwitz_zeta(alpha_arr[j], p_arr[j])
    out[inside] = np.power(points[inside], -alpha_arr[j]) / normaliser * constants[j]
    return out.reshape(np.shape(x))


def pwpl_cdf(x: ArrayLike, p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Cumulative probability ``P(X <= x)``."""
    points, p_arr, alpha_arr, constants, labels, inside = _segments(x, p, alpha)
    out = np.zeros(points.shape, dtype=float)
    j = labels[inside]
    tail = hurwitz_zeta(alpha_arr[j], points[inside] + 1.0) / hurwitz_zeta(alpha_arr[j], p_arr[j])
    out[inside] = 1.0 - tail * constants[j]
    return out.reshape(np.shape(x))


def pwpl_survival(x: ArrayLike, p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Survival function ``P(X > x) = 1 - cdf(x)``."""
    return 1.0 - pwpl_cdf(x, p, alpha)


def pwpl_hazard(x: ArrayLike, p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Discrete hazard ``p(x) / P(X >= x)`` (zero below ``p[0]``)."""
    points = np.atleast_1d(np.asarray(x, dtype=float))
    density = pwpl_density(points, p, alpha)
    at_risk = pwpl_survival(points - 1.0, p, alpha)
    out = np.zeros(points.shape, dtype=float)
    inside = points >= np.atleast_1d(np.asarray(p, dtype=float))[0]
    with np.errstate(divide="ignore", invalid="ignore"):
        out[inside] = density[inside] / at_risk[inside]
    return out.reshape(np.shape(x))


def pwpl_quantile(u: ArrayLike, p: ArrayLike, alpha: ArrayLike) -> np.ndarray:
    """Smallest support point ``x >= p[0]`` with ``cdf(x) >= u``.

    The search walks upward from ``p[0]`` with doubling steps and then bisects
    the bracket, which returns the same point as a unit-step scan because the
    CDF is non-decreasing. There is no upper bound on the search: a ``u`` that
    rounds to 1.0 combined with a last exponent close to 1 can take a very
    large number of steps.
    """
    p_arr, alpha_arr = validate_parameters(p, alpha)
    probs = np.asarray(u, dtype=float)
    if np.any(np.isnan(probs)) or np.any((probs < 0) | (probs > 1)):
        raise InvalidParameterError("Quantile probabilities must lie in [0, 1].")

    flat = probs.ravel()
    origin = p_arr[0]

    def reached(offsets: np.ndarray, targets: np.ndarray) -> np.ndarray:
        return pwpl_cdf(origin + offsets, p_arr, alpha_arr) >= targets

    lower = np.zeros(flat.size, dtype=float)
    upper = np.zeros(flat.size, dtype=float)
    step = np.ones(flat.size, dtype=float)
    pending = np.flatnonzero(~reached(upper, flat))
    while pending.size:
        lower[pending] = upper[pending] + 1.0
        upper[pending] += step[pending]
        step[pending] *= 2.0
        still = ~reached(upper[pending], flat[pending])
        pending = pending[still]

    open_ = np.flatnonzero(lower < upper)
    while open_.size:
        mid = np.floor((lower[open_] + upper[open_]) / 2.0)
        hit = reached(mid, flat[open_])
        upper[open_] = np.where(hit, mid, upper[open_])
        lower[open_] = np.where(hit, lower[open_], mid + 1.0)
        open_ = open_[lower[open_] < upper[open_]]

    return (origin + upper).reshape(probs.shape)


def sample_pwpl(
    size: int,
    p: ArrayLike,
    alpha: ArrayLike,
    *,
    random_state: RandomState = None,
    max_tries: int | None = None,
) -> np.ndarray:
    """Draw ``size`` observations by inverting uniform variates.

    The whole batch is redrawn until every partition holds more than two
    observations so the sample can be refitted. The loop is unbounded unless
    ``max_tries`` is given; partitions with vanishing probability mass never
    satisfy the condition.
    """
    p_arr, alpha_arr = validate_parameters(p, alpha)
    if size < 3 * p_arr.size:
        raise InvalidParameterError(
            f"size must be at least {3 * p_arr.size} for three observations per partition."
        )
    rng = np.random.default_rng(random_state)
    tries = 0
    while True:
        tries += 1
        draws = pwpl_quantile(rng.random(size), p_arr, alpha_arr)
        if np.all(count_each_interval(draws, p_arr) > 2):
            if tries > 1:
                logger.debug("Accepted sample after %d draws.", tries)
            return draws
        if max_tries is not None and tries >= max_tries:
            raise RuntimeError(
                f"No sample with more than two observations per partition after {tries} draws."
            )


__all__ = [
    "pwpl_cdf",
    "pwpl_density",
    "pwpl_hazard",
    "pwpl_quantile",
    "pwpl_survival",
    "sample_pwpl",
]
