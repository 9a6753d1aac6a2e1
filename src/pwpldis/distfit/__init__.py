"""Maximum-likelihood fitting of the discrete piecewise power-law model."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from math import ceil, log
from warnings import warn

import numpy as np
import pandas as pd
from lmfit import Parameters
from lmfit import minimize as lmfit_minimize
from scipy.optimize import minimize

from ..core import (
    ArrayLike,
    CandidatePoolWarning,
    DegenerateBreakpointWarning,
    FitResult,
    InvalidParameterError,
    RandomState,
    result_columns,
)
from ..dataprep import combine_close_values, prepare_observations
from ..distributions import interval_statistics
from .grid import breakpoint_grid
from .likelihood import loglik_from_statistics, loglik_pwpl

logger = logging.getLogger(__name__)

LOWER_BOUND = 1.01
START_RANGE = (1.5, 3.5)

Objective = Callable[[np.ndarray], float]


@dataclass(slots=True)
class MaximizeResult:
    """Outcome of one constrained maximization."""

    argmax: np.ndarray
    maximum: float
    converged: bool


Maximizer = Callable[[Objective, np.ndarray, float], MaximizeResult]


def maximize_scipy(objective: Objective, start: np.ndarray, lower: float) -> MaximizeResult:
    """Maximize with SciPy's L-BFGS-B under ``theta >= lower`` box bounds."""
    result = minimize(
        lambda theta: -objective(theta),
        start,
        method="L-BFGS-B",
        bounds=[(lower, None)] * start.size,
    )
    return MaximizeResult(
        argmax=np.asarray(result.x, dtype=float),
        maximum=-float(result.fun),
        converged=bool(result.success),
    )


def maximize_lmfit(objective: Objective, start: np.ndarray, lower: float) -> MaximizeResult:
    """Maximize with lmfit's scalar L-BFGS-B driver and bounded parameters."""
    names = [f"alpha{idx}" for idx in range(1, start.size + 1)]
    params = Parameters()
    for name, value in zip(names, start, strict=True):
        params.add(name, value=float(value), min=lower)

    def negative(values: Parameters) -> float:
        return -objective(np.array([values[name].value for name in names], dtype=float))

    result = lmfit_minimize(negative, params, method="lbfgsb")
    estimate = np.array([result.params[name].value for name in names], dtype=float)
    return MaximizeResult(
        argmax=estimate,
        maximum=float(objective(estimate)),
        converged=bool(result.success),
    )


OPTIMIZERS: dict[str, Maximizer] = {
    "scipy": maximize_scipy,
    "lmfit": maximize_lmfit,
}


def _resolve_optimizer(optimizer: str | Maximizer) -> Maximizer:
    if callable(optimizer):
        return optimizer
    key = str(optimizer).lower()
    if key not in OPTIMIZERS:
        raise InvalidParameterError(
            f"Unknown optimizer '{optimizer}'. Expected one of {sorted(OPTIMIZERS)}."
        )
    return OPTIMIZERS[key]


def _validate_fixed_breakpoints(data: np.ndarray, fixed: np.ndarray, tau_0: float) -> np.ndarray:
    """Drop or merge fixed breakpoints until every partition holds two observations."""
    fixed = fixed.copy()
    while fixed.size:
        lower = np.concatenate([[tau_0], fixed])
        upper = np.concatenate([fixed, [np.inf]])
        inside = (data[:, None] >= lower) & (data[:, None] < upper)
        counts = inside.sum(axis=0)
        if np.all(counts > 1):
            break
        ind = int(np.flatnonzero(counts <= 1)[0])
        if ind == fixed.size:
            warn(
                f"{fixed[-1]:g} is too large. No observations after this breakpoint; "
                "it will be removed.",
                DegenerateBreakpointWarning,
                stacklevel=3,
            )
            fixed = fixed[:-1]
        elif ind == 0:
            warn(
                f"{fixed[0]:g} is too early. No observations before this breakpoint; "
                "it will be removed.",
                DegenerateBreakpointWarning,
                stacklevel=3,
            )
            fixed = fixed[1:]
        else:
            midpoint = float(np.mean(fixed[ind - 1 : ind + 1]))
            warn(
                f"There are not enough observations between {fixed[ind - 1]:g} and "
                f"{fixed[ind]:g}. Their midpoint {midpoint:g} will be used as a breakpoint.",
                DegenerateBreakpointWarning,
                stacklevel=3,
            )
            fixed[ind - 1] = midpoint
            fixed = np.delete(fixed, ind)
    return fixed


def _candidate_pool(
    data: np.ndarray,
    n_free: int,
    exclude_int: tuple[float, float] | None,
    min_pt_tail: int,
) -> np.ndarray:
    """Observed values eligible as free change points."""
    n_obs = data.size
    if (n_obs - min_pt_tail) < 2:
        warn(
            "Insufficient data due to too many points reserved for the tail. "
            "Ignoring 'min_pt_tail'.",
            CandidatePoolWarning,
            stacklevel=3,
        )
        pool = data
    else:
        pool = data[data <= data[n_obs - min_pt_tail - 1]]
        if pool.size <= 2 * n_free:
            warn(
                "Insufficient data due to too many points reserved for the tail. "
                "Ignoring 'min_pt_tail'.",
                CandidatePoolWarning,
                stacklevel=3,
            )
            pool = data

    if exclude_int is not None:
        low, high = (float(value) for value in exclude_int)
        pool = data[(data < low) | (data > high)]
        if pool.size <= 2 * n_free:
            warn(
                "Insufficient data due to wide coverage of 'exclude_int'. Ignoring 'exclude_int'.",
                CandidatePoolWarning,
                stacklevel=3,
            )
            pool = data
    return pool


def _fit_candidate(
    data: np.ndarray,
    partition: np.ndarray,
    maximize: Maximizer,
    rng: np.random.Generator,
) -> np.ndarray | None:
    """Return ``(partition, alphas, loglik)`` or ``None`` when the candidate is unusable."""
    counts, log_sums = interval_statistics(data, partition)
    if np.any(counts <= 1):
        logger.debug("Skipping candidate %s: partition counts %s.", partition, counts)
        return None

    def objective(alpha: np.ndarray) -> float:
        return loglik_from_statistics(alpha, partition, counts, log_sums)

    start = rng.uniform(*START_RANGE, size=partition.size)
    try:
        outcome = maximize(objective, start, LOWER_BOUND)
    except (ValueError, ArithmeticError) as exc:
        logger.debug("Optimizer failed for candidate %s: %s", partition, exc)
        return None
    if not np.isfinite(outcome.maximum):
        logger.debug("Non-finite log-likelihood for candidate %s.", partition)
        return None
    if not outcome.converged:
        logger.debug("Optimizer did not report convergence for candidate %s.", partition)
    return np.concatenate([partition, outcome.argmax, [outcome.maximum]])


def fit_pwpldis(
    time: ArrayLike,
    breakpoints: ArrayLike | None = None,
    n_break: int | None = None,
    *,
    exclude_int: tuple[float, float] | None = None,
    min_pt_tail: int = 2,
    max_set: int = 10000,
    trace: bool = False,
    tol: float = 1e-4,
    optimizer: str | Maximizer = "scipy",
    random_state: RandomState = None,
) -> FitResult:
    """Fit the discrete piecewise power-law model by maximum likelihood.

    Parameters
    ----------
    time:
        Observations (positive counts). Values are sorted internally.
    breakpoints:
        Fixed change points. Breakpoints that leave a partition with fewer
        than two observations are dropped or merged with a
        :class:`DegenerateBreakpointWarning`.
    n_break:
        Total number of change points. Defaults to the number of fixed
        breakpoints, or ``ceil(8 * N ** 0.2)`` when none are given. Change
        points beyond the fixed ones are searched over the observed values.
    exclude_int:
        ``(low, high)`` interval whose values may not serve as estimated change
        points.
    min_pt_tail:
        Number of largest observations that may not serve as estimated change
        points.
    max_set:
        Upper bound on the number of candidate change-point combinations.
    trace:
        Keep every evaluated candidate instead of only the best one.
    tol:
        Relative tolerance used to coalesce near-tied candidate values.
    optimizer:
        ``"scipy"``, ``"lmfit"`` or a callable ``(objective, start, lower)``
        returning :class:`MaximizeResult`.
    random_state:
        Seed or generator for candidate subsampling and starting values.

    Returns
    -------
    FitResult
        A row with ``-inf`` breakpoints, exponents and likelihood signals
        that no feasible fit exists.
    """
    rng = np.random.default_rng(random_state)
    maximize = _resolve_optimizer(optimizer)
    data = prepare_observations(time)
    n_obs = data.size
    tau_0 = float(data[0])
    if min_pt_tail < 0:
        raise InvalidParameterError("min_pt_tail must be non-negative.")
    if max_set < 1:
        raise InvalidParameterError("max_set must be at least 1.")

    fixed = np.empty(0, dtype=float)
    if breakpoints is not None:
        fixed = np.sort(np.asarray(breakpoints, dtype=float).ravel())
    if n_break is None:
        if fixed.size:
            n_break = int(fixed.size)
        else:
            n_break = int(ceil(8 * n_obs**0.2))
            logger.info("Number of change points = %d", n_break)
    elif n_break < fixed.size:
        raise InvalidParameterError(
            "n_break is the total number of change points and must be at least the "
            "number of fixed breakpoints."
        )
    n_break = int(n_break)

    fixed = _validate_fixed_breakpoints(data, fixed, tau_0)
    n_fixed = int(fixed.size)

    if n_fixed and n_fixed == n_break:
        grid = fixed.reshape(1, -1)
    else:
        pool = _candidate_pool(data, n_break - n_fixed, exclude_int, min_pt_tail)
        if tol:
            pool = combine_close_values(pool, tol)
        grid = breakpoint_grid(pool, fixed, n_break, max_set, random_state=rng)

    width = grid.shape[1]
    rows = np.full((grid.shape[0], 2 * width + 3), -np.inf)
    if width and np.isinf(grid[0, 0]):
        logger.info("No feasible change-point candidate for %d change points.", n_break)
        rows = rows[:1]
    else:
        for idx, candidate in enumerate(grid):
            partition = np.concatenate([[tau_0], candidate])
            fitted = _fit_candidate(data, partition, maximize, rng)
            if fitted is not None:
                rows[idx] = fitted

    if not trace:
        best = int(np.argmax(rows[:, -1]))
        rows = rows[best : best + 1]

    n_k = 2 * max(n_fixed, n_break) + 1
    n_params = n_k - n_fixed
    loglik = rows[:, -1]
    aic = 2 * n_params - 2 * loglik
    bic = n_params * log(n_obs) - 2 * loglik
    table = pd.DataFrame(np.column_stack([rows, aic, bic]), columns=result_columns(width))

    return FitResult(
        table=table,
        n_break=width,
        n_obs=n_obs,
        fixed_breakpoints=fixed,
        params={
            "time": data,
            "breakpoint": grid,
            "n_break": n_break,
            "exclude_int": exclude_int,
            "min_pt_tail": min_pt_tail,
            "max_set": max_set,
            "tol": tol,
            "optimizer": optimizer,
        },
    )


__all__ = [
    "LOWER_BOUND",
    "MaximizeResult",
    "OPTIMIZERS",
    "breakpoint_grid",
    "fit_pwpldis",
    "loglik_pwpl",
    "maximize_lmfit",
    "maximize_scipy",
]
