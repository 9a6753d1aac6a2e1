"""Discrete piecewise power-law distribution functions and helpers."""

from __future__ import annotations

from .base import MIN_EXPONENT, hurwitz_zeta, normalizing_constants, validate_parameters
from .partition import (
    count_each_interval,
    index_each_interval,
    interval_labels,
    interval_statistics,
)
from .piecewise import (
    pwpl_cdf,
    pwpl_density,
    pwpl_hazard,
    pwpl_quantile,
    pwpl_survival,
    sample_pwpl,
)

__all__ = [
    "MIN_EXPONENT",
    "count_each_interval",
    "hurwitz_zeta",
    "index_each_interval",
    "interval_labels",
    "interval_statistics",
    "normalizing_constants",
    "pwpl_cdf",
    "pwpl_density",
    "pwpl_hazard",
    "pwpl_quantile",
    "pwpl_survival",
    "sample_pwpl",
    "validate_parameters",
]
