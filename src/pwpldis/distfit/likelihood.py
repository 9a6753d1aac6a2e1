"""Log-likelihood of the discrete piecewise power-law model."""

from __future__ import annotations

import numpy as np

from ..core import ArrayLike
from ..distributions import hurwitz_zeta, interval_statistics, normalizing_constants


def loglik_from_statistics(
    alpha: ArrayLike,
    p: np.ndarray,
    counts: np.ndarray,
    log_sums: np.ndarray,
) -> float:
    """Evaluate the log-likelihood from per-partition sufficient statistics.

    ``counts`` and ``log_sums`` come from :func:`interval_statistics`; the
    normalizing constants are recomputed for every ``alpha``.
    """
    alpha_arr = np.asarray(alpha, dtype=float)
    constants = normalizing_constants(p, alpha_arr)[: p.size]
    with np.errstate(divide="ignore"):
        log_constants = np.log(constants)
    log_zeta = np.log(hurwitz_zeta(alpha_arr, p))
    terms = counts * (log_constants - log_zeta) - alpha_arr * log_sums
    # empty partitions contribute nothing even when their constant underflows
    terms = np.where(counts > 0, terms, 0.0)
    return float(np.sum(terms))


def loglik_pwpl(alpha: ArrayLike, x: ArrayLike, p: ArrayLike) -> float:
    """Log-likelihood of observations ``x`` for exponents ``alpha`` and partition ``p``.

    Larger is better. Observations below ``p[0]`` belong to no partition and
    are ignored.
    """
    p_arr = np.atleast_1d(np.asarray(p, dtype=float))
    counts, log_sums = interval_statistics(x, p_arr)
    return loglik_from_statistics(alpha, p_arr, counts, log_sums)


__all__ = ["loglik_from_statistics", "loglik_pwpl"]
