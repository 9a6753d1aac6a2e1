"""Candidate breakpoint grids for the change-point search."""

from __future__ import annotations

import logging
from itertools import combinations
from math import comb

import numpy as np

from ..core import ArrayLike, RandomState

logger = logging.getLogger(__name__)


def _drop_fixed_neighbours(candidates: np.ndarray, fixed: np.ndarray) -> np.ndarray:
    """Remove fixed values and their nearest neighbours from the sorted pool."""
    pool = np.setdiff1d(candidates, fixed)
    if pool.size == 0:
        return pool
    below = np.searchsorted(pool, fixed, side="right") - 1
    drop = np.concatenate([below, below + 1])
    drop = np.unique(drop[(drop >= 0) & (drop < pool.size)])
    return np.delete(pool, drop)


def _pool_size_within_budget(pool_size: int, n_free: int, max_set: int) -> int:
    """Bisect the pool size whose combination count crosses ``max_set``.

    Returns the upper end of the final bracket, the smallest size found whose
    count exceeds the budget; the enumerated rows are trimmed afterwards.
    """
    right = pool_size
    left = 1
    if comb(right, n_free) > max_set:
        while (right - left) > 1.1:
            middle = (left + right) // 2
            if comb(middle, n_free) > max_set:
                right = middle
            else:
                left = middle
    return right


def breakpoint_grid(
    times: ArrayLike,
    fixed_breakpoints: ArrayLike | None,
    n_break: int,
    max_set: int = 5000,
    *,
    remove_first: bool = True,
    random_state: RandomState = None,
) -> np.ndarray:
    """Enumerate candidate change-point rows drawn from ``times``.

    Each row of the returned ``(rows, n_break)`` matrix merges one combination
    of free change points with the fixed ones, sorted. When the pool holds
    fewer values than free change points are needed, a single row of ``-inf``
    is returned to signal that no candidate exists.
    """
    rng = np.random.default_rng(random_state)
    pool = np.unique(np.asarray(times, dtype=float))
    if remove_first:
        pool = pool[1:]

    fixed = np.sort(np.asarray(fixed_breakpoints if fixed_breakpoints is not None else [], float))
    if n_break == 0:
        n_break = fixed.size
    n_free = n_break - fixed.size
    if fixed.size:
        pool = _drop_fixed_neighbours(pool, fixed)

    size = _pool_size_within_budget(pool.size, n_free, max_set)
    if size < pool.size:
        logger.debug("Subsampling candidate pool from %d to %d values.", pool.size, size)
    pool = np.sort(rng.choice(pool, size, replace=False)) if pool.size else pool

    if pool.size < n_free:
        logger.debug("Candidate pool of %d values cannot hold %d change points.", pool.size, n_free)
        return np.full((1, n_break), -np.inf)

    if n_free == 0:
        free = np.empty((1, 0), dtype=float)
    else:
        free = np.array(list(combinations(pool, n_free)), dtype=float)
    if free.shape[0] > max_set:
        keep = np.sort(rng.choice(free.shape[0], max_set, replace=False))
        free = free[keep]

    if fixed.size:
        merged = np.hstack([np.broadcast_to(fixed, (free.shape[0], fixed.size)), free])
        return np.sort(merged, axis=1)
    return free


__all__ = ["breakpoint_grid"]
