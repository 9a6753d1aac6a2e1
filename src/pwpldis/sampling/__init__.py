"""Sampling and bootstrap utilities built on the piecewise power-law fitter."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any

import numpy as np
import pandas as pd

from ..core import (
    ArrayLike,
    BootstrapResult,
    CandidatePoolWarning,
    DegenerateBreakpointWarning,
    InvalidParameterError,
    RandomState,
)
from ..dataprep import combine_close_values, prepare_observations
from ..distfit import Maximizer, fit_pwpldis
from ..distributions import count_each_interval, sample_pwpl

logger = logging.getLogger(__name__)

Progress = Callable[[int, int], None]

__all__ = [
    "Progress",
    "bootstrap_pwpldis",
    "sample_pwpl",
]


def _replicate_row(
    data: np.ndarray,
    rng: np.random.Generator,
    fit_kwargs: dict[str, Any],
    guard: np.ndarray | None,
) -> np.ndarray | None:
    """Resample ``data`` with replacement and return the refitted row.

    ``None`` marks a resample skipped because a partition of ``guard`` would
    hold fewer than two observations.
    """
    resample = data[rng.integers(0, data.size, size=data.size)]
    if guard is not None and np.any(count_each_interval(resample, guard) <= 1):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DegenerateBreakpointWarning)
        warnings.simplefilter("ignore", CandidatePoolWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        fit = fit_pwpldis(resample, random_state=rng, **fit_kwargs)
    return fit.table.iloc[0].to_numpy(dtype=float)


def _impute_failed(matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Replace failed rows by the column means of the successful rows."""
    failed = ~np.isfinite(matrix[:, 0])
    successes = matrix[~failed]
    if successes.shape[0]:
        means = successes.mean(axis=0)
    else:
        means = np.full(matrix.shape[1], np.nan)
    imputed = matrix.copy()
    imputed[failed] = means
    return imputed, failed


def bootstrap_pwpldis(
    time: ArrayLike,
    n_sim: int = 100,
    breakpoints: ArrayLike | None = None,
    n_break: int = 1,
    *,
    exclude_int: tuple[float, float] | None = None,
    min_pt_tail: int = 5,
    max_set: int = 1000,
    tol: float = 1e-4,
    parallel: bool = False,
    workers: int = 4,
    optimizer: str | Maximizer = "scipy",
    random_state: RandomState = None,
    progress: Progress | None = None,
) -> BootstrapResult:
    """Bootstrap the piecewise power-law fit.

    The first row is the fit on the original data; ``n_sim - 1`` resamples
    drawn with replacement from the (optionally coalesced) data follow. Failed
    or skipped replicates are replaced by the mean of the successful rows, so
    the result always holds ``n_sim`` rows. In parallel mode rows appear in
    completion order.

    ``n_break`` counts all change points and is raised to the number of fixed
    ``breakpoints`` when those are more.

    ``progress(done, total)`` is called once per finished replicate. A custom
    ``optimizer`` callable must be picklable when ``parallel`` is set.
    """
    if n_sim < 1:
        raise InvalidParameterError("n_sim must be at least 1.")
    if workers < 1:
        raise InvalidParameterError("workers must be at least 1.")

    if breakpoints is not None:
        n_break = max(int(n_break), int(np.size(breakpoints)))

    rng = np.random.default_rng(random_state)
    children = rng.spawn(n_sim)
    reference = fit_pwpldis(
        time,
        breakpoints,
        n_break,
        exclude_int=exclude_int,
        min_pt_tail=min_pt_tail,
        max_set=max_set,
        trace=False,
        tol=tol,
        optimizer=optimizer,
        random_state=children[0],
    )

    data = prepare_observations(time)
    if tol != 0:
        data = combine_close_values(data, tol)

    fit_kwargs: dict[str, Any] = {
        "breakpoints": breakpoints,
        "n_break": reference.params["n_break"],
        "exclude_int": exclude_int,
        "min_pt_tail": min_pt_tail,
        "max_set": max_set,
        "trace": False,
        "tol": 0.0,
        "optimizer": optimizer,
    }
    guard = None
    if reference.fixed_breakpoints.size:
        guard = np.concatenate([[data[0]], reference.fixed_breakpoints])

    rows: list[np.ndarray | None] = [reference.table.iloc[0].to_numpy(dtype=float)]
    total = n_sim - 1
    if parallel and total:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(_replicate_row, data, child, fit_kwargs, None)
                for child in children[1:]
            ]
            for done, future in enumerate(as_completed(futures), start=1):
                try:
                    rows.append(future.result())
                except Exception as exc:  # noqa: BLE001 - dropped replicates are imputed
                    logger.debug("Dropping bootstrap replicate: %s", exc)
                    rows.append(None)
                if progress is not None:
                    progress(done, total)
    else:
        for done, child in enumerate(children[1:], start=1):
            try:
                row = _replicate_row(data, child, fit_kwargs, guard)
            except Exception as exc:  # noqa: BLE001 - failed replicates are imputed
                logger.warning("Bootstrap replicate %d failed: %s", done, exc)
                row = None
            if row is None:
                logger.debug("Bootstrap replicate %d produced no estimate.", done)
            rows.append(row)
            if progress is not None:
                progress(done, total)

    columns = reference.table.columns
    matrix = np.full((n_sim, len(columns)), np.nan)
    for idx, row in enumerate(rows):
        if row is not None and row.size == len(columns):
            matrix[idx] = row
    imputed, failed = _impute_failed(matrix)

    k = reference.n_break
    table = pd.DataFrame(imputed, columns=columns)
    return BootstrapResult(
        table=table,
        breakpoints=imputed[:, 1 : k + 1],
        alphas=imputed[:, k + 1 : 2 * k + 2],
        failed=failed,
        reference=reference,
        diagnostics={
            "n_failed": int(failed.sum()),
            "parallel": bool(parallel and total),
            "workers": workers if parallel else 1,
        },
    )
