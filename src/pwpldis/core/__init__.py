"""Core dataclasses, error types and shared aliases for pwpldis modules."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

import numpy as np
import pandas as pd

ArrayLike: TypeAlias = np.ndarray | Sequence[float]
RandomState: TypeAlias = np.random.Generator | int | None


class InvalidParameterError(ValueError):
    """Raised when breakpoints, exponents or inputs violate the model domain."""


class DegenerateBreakpointWarning(UserWarning):
    """A fixed breakpoint produced an empty or singleton interval and was adjusted."""


class CandidatePoolWarning(UserWarning):
    """A candidate restriction left too few values and was ignored."""


def breakpoint_columns(n_break: int) -> list[str]:
    return [f"tau_{idx}" for idx in range(n_break + 1)]


def alpha_columns(n_break: int) -> list[str]:
    return [f"alpha{idx}" for idx in range(1, n_break + 2)]


def result_columns(n_break: int) -> list[str]:
    """Column labels of a fit table with ``n_break`` change points."""
    return [*breakpoint_columns(n_break), *alpha_columns(n_break), "likelihood", "AIC", "BIC"]


@dataclass(slots=True)
class FitResult:
    """Container for a piecewise power-law fit.

    ``table`` holds one row per retained candidate: the single best row, or
    every evaluated candidate when the fit ran with ``trace=True``. Rows that
    could not be estimated carry ``-inf`` in every breakpoint, exponent and
    likelihood column.
    """

    table: pd.DataFrame
    n_break: int
    n_obs: int
    fixed_breakpoints: np.ndarray = field(default_factory=lambda: np.empty(0))
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def best(self) -> pd.Series:
        """Return the row with the highest log-likelihood (first on ties)."""
        values = self.table["likelihood"].to_numpy(dtype=float)
        return self.table.iloc[int(np.argmax(values))]

    @property
    def breakpoints(self) -> np.ndarray:
        """Change points ``tau_1..tau_k`` of the best row."""
        labels = breakpoint_columns(self.n_break)[1:]
        return self.best[labels].to_numpy(dtype=float)

    @property
    def alphas(self) -> np.ndarray:
        return self.best[alpha_columns(self.n_break)].to_numpy(dtype=float)

    @property
    def log_likelihood(self) -> float:
        return float(self.best["likelihood"])

    @property
    def aic(self) -> float:
        return float(self.best["AIC"])

    @property
    def bic(self) -> float:
        return float(self.best["BIC"])

    @property
    def feasible(self) -> bool:
        """False when no candidate could be fitted (the all ``-inf`` row)."""
        return bool(np.isfinite(self.log_likelihood))

    def to_frame(self) -> pd.DataFrame:
        return self.table.copy()


@dataclass(slots=True)
class BootstrapResult:
    """Aggregate of bootstrap refits.

    Row 0 of ``table`` is the fit on the original data. Rows flagged in
    ``failed`` were replaced by the column means of the successful rows.
    """

    table: pd.DataFrame
    breakpoints: np.ndarray
    alphas: np.ndarray
    failed: np.ndarray
    reference: FitResult
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def n_sim(self) -> int:
        return int(len(self.table))

    def bias_corrected(self) -> pd.Series:
        """Return ``2 * original - mean(bootstrap)`` for breakpoints and exponents."""
        n_break = self.reference.n_break
        labels = breakpoint_columns(n_break)[1:] + alpha_columns(n_break)
        original = self.reference.best[labels].to_numpy(dtype=float)
        replicates = self.table[labels].to_numpy(dtype=float)
        with np.errstate(invalid="ignore"):
            means = np.nanmean(replicates, axis=0) if replicates.size else original
        return pd.Series(2.0 * original - means, index=labels, name="bias_corrected")

    def confidence_intervals(self, level: float = 0.95) -> pd.DataFrame:
        """Empirical percentile intervals for the exponent columns."""
        if not 0.0 < level < 1.0:
            raise ValueError("level must lie strictly between 0 and 1.")
        tail = 100.0 * (1.0 - level) / 2.0
        labels = alpha_columns(self.reference.n_break)
        lower = np.nanpercentile(self.alphas, tail, axis=0)
        upper = np.nanpercentile(self.alphas, 100.0 - tail, axis=0)
        return pd.DataFrame({"lower": lower, "upper": upper}, index=labels)

    def to_frame(self) -> pd.DataFrame:
        frame = self.table.copy()
        frame["imputed"] = self.failed
        return frame


__all__ = [
    "ArrayLike",
    "RandomState",
    "InvalidParameterError",
    "DegenerateBreakpointWarning",
    "CandidatePoolWarning",
    "FitResult",
    "BootstrapResult",
    "alpha_columns",
    "breakpoint_columns",
    "result_columns",
]
