"""Observation preparation helpers: coalescing near ties and CSV loading."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from ..core import ArrayLike, InvalidParameterError


def combine_close_values(values: ArrayLike, tol: float) -> np.ndarray:
    """Merge sorted values that sit within ``tol * range`` of the previous anchor.

    Every value closer than the threshold to the last retained value is
    replaced by that value; otherwise it becomes the new anchor. ``values``
    must already be sorted.
    """
    data = np.array(values, dtype=float, copy=True)
    if data.size < 2 or tol == 0:
        return data
    threshold = (data[-1] - data[0]) * tol
    anchor = data[0]
    for idx in range(1, data.size):
        value = data[idx]
        if (value - anchor) < threshold:
            data[idx] = anchor
        else:
            anchor = value
    return data


def prepare_observations(values: ArrayLike) -> np.ndarray:
    """Return sorted float observations after checking the model support."""
    data = np.sort(np.asarray(values, dtype=float).ravel())
    if data.size == 0:
        raise InvalidParameterError("At least one observation is required.")
    if not np.all(np.isfinite(data)):
        raise InvalidParameterError("Observations must be finite.")
    if data[0] < 1:
        raise InvalidParameterError("Observations must be at least 1.")
    return data


def load_observations(path: str | Path, column: str | None = None) -> np.ndarray:
    """Read observations from a CSV file.

    ``column`` selects the data column; when omitted the first numeric column
    is used. Missing values are dropped.
    """
    frame = pd.read_csv(path)
    if column is None:
        numeric = frame.select_dtypes(include="number").columns
        if len(numeric) == 0:
            raise ValueError(f"No numeric column found in {path}.")
        column = str(numeric[0])
    if column not in frame.columns:
        raise KeyError(f"Column '{column}' not found in {path}.")
    series = pd.to_numeric(frame[column], errors="coerce").dropna()
    return prepare_observations(series.to_numpy(dtype=float))


__all__ = ["combine_close_values", "load_observations", "prepare_observations"]
