"""Assign observations to the half-open partitions defined by breakpoints."""

from __future__ import annotations

import numpy as np

from ..core import ArrayLike


def interval_labels(x: ArrayLike, p: ArrayLike) -> np.ndarray:
    """Return the 0-based partition of every observation (``-1`` below ``p[0]``).

    Partitions are ``[p_j, p_{j+1})`` with the last one unbounded on the right.
    """
    values = np.asarray(x, dtype=float)
    edges = np.atleast_1d(np.asarray(p, dtype=float))
    return np.searchsorted(edges, values, side="right") - 1


def index_each_interval(x: ArrayLike, p: ArrayLike) -> list[np.ndarray]:
    """Indices of the observations that fall in each partition."""
    labels = np.atleast_1d(interval_labels(x, p))
    k = np.atleast_1d(np.asarray(p)).size
    return [np.flatnonzero(labels == j) for j in range(k)]


def count_each_interval(x: ArrayLike, p: ArrayLike) -> np.ndarray:
    """Number of observations in each partition; empty partitions count zero."""
    labels = np.atleast_1d(interval_labels(x, p))
    k = np.atleast_1d(np.asarray(p)).size
    return np.bincount(labels[labels >= 0], minlength=k)[:k]


def interval_statistics(x: ArrayLike, p: ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    """Return per-partition ``(counts, sum of log(x))``."""
    values = np.atleast_1d(np.asarray(x, dtype=float))
    labels = interval_labels(values, p)
    k = np.atleast_1d(np.asarray(p)).size
    inside = labels >= 0
    counts = np.bincount(labels[inside], minlength=k)[:k]
    log_sums = np.bincount(labels[inside], weights=np.log(values[inside]), minlength=k)[:k]
    return counts, log_sums


__all__ = [
    "count_each_interval",
    "index_each_interval",
    "interval_labels",
    "interval_statistics",
]
