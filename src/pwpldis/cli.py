"""Typer-based CLI entry point."""

from __future__ import annotations

import logging
import math
import numbers
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from .config import load_settings
from .core import FitResult, InvalidParameterError
from .dataprep import load_observations
from .distfit import fit_pwpldis
from .distributions import sample_pwpl
from .sampling import bootstrap_pwpldis

app = typer.Typer(help="Discrete piecewise power-law fitting CLI.")
console = Console()

DATA_FILE_ARGUMENT = typer.Argument(
    ...,
    exists=True,
    readable=True,
    help="CSV file holding the observations.",
)
COLUMN_OPTION = typer.Option(
    None,
    "--column",
    "-c",
    help="Column with the observations (defaults to the first numeric column).",
    show_default=False,
)
BREAKPOINT_OPTION = typer.Option(
    None,
    "--breakpoint",
    "-b",
    help="Fixed change point (repeat for multiples).",
    show_default=False,
)
N_BREAK_OPTION = typer.Option(
    None,
    "--n-break",
    "-k",
    help="Total number of change points.",
    show_default=False,
)
EXCLUDE_LOW_OPTION = typer.Option(
    None,
    "--exclude-low",
    help="Lower end of the interval where change points may not be placed.",
    show_default=False,
)
EXCLUDE_HIGH_OPTION = typer.Option(
    None,
    "--exclude-high",
    help="Upper end of the excluded interval (defaults to infinity).",
    show_default=False,
)
MIN_PT_TAIL_OPTION = typer.Option(
    None,
    "--min-pt-tail",
    help="Largest observations reserved for the last partition.",
    show_default=False,
)
MAX_SET_OPTION = typer.Option(
    None,
    "--max-set",
    help="Maximum number of candidate change-point combinations.",
    show_default=False,
)
TOL_OPTION = typer.Option(
    None,
    "--tol",
    help="Relative tolerance for coalescing near-tied values.",
    show_default=False,
)
OPTIMIZER_OPTION = typer.Option(
    None,
    "--optimizer",
    help="Optimizer backend: scipy or lmfit.",
    show_default=False,
)
SEED_OPTION = typer.Option(None, "--seed", help="Random seed.", show_default=False)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="YAML settings file (defaults to $PWPLDIS_CONFIG when set).",
    show_default=False,
)
TRACE_OPTION = typer.Option(
    False,
    "--trace/--best-only",
    help="Show every evaluated candidate instead of the best one.",
    show_default=True,
)
N_SIM_OPTION = typer.Option(None, "--n-sim", help="Number of bootstrap rows.", show_default=False)
PARALLEL_OPTION = typer.Option(
    None,
    "--parallel/--sequential",
    help="Run bootstrap replicates in a process pool.",
    show_default=False,
)
WORKERS_OPTION = typer.Option(
    None,
    "--workers",
    help="Worker processes for parallel bootstrap.",
    show_default=False,
)
P_OPTION = typer.Option(
    ...,
    "--p",
    help="Minimum value followed by the change points (repeat in increasing order).",
)
ALPHA_OPTION = typer.Option(..., "--alpha", help="Scaling exponent per partition (repeat).")
SIZE_OPTION = typer.Option(100, "--size", "-n", help="Number of observations to draw.")
SAMPLE_OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    help="Optional CSV path for the sample.",
    show_default=False,
)

VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose output.")
VERSION_OPTION = typer.Option(False, "--version", help="Show version and exit.")


@app.callback(invoke_without_command=True)
def cli_callback(  # noqa: B008
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,
    version: bool = VERSION_OPTION,
) -> None:
    if verbose or version:
        console.print(f"[bold green]pwpldis {__version__}[/bold green]")
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    if ctx.invoked_subcommand is None and not ctx.resilient_parsing:
        raise typer.Exit()


def _merge(defaults: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    merged = dict(defaults)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def _exclusion(low: float | None, high: float | None) -> tuple[float, float] | None:
    if low is None and high is None:
        return None
    return (-math.inf if low is None else low, math.inf if high is None else high)


def _format_metric(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, numbers.Real):
        val = float(value)
        if math.isnan(val) or math.isinf(val):
            return "-"
        return f"{val:.4f}"
    return str(value)


def _fit_table(result: FitResult, title: str) -> Table:
    table = Table(title=title, expand=True)
    for column in result.table.columns:
        table.add_column(str(column), justify="right", no_wrap=True)
    for _, row in result.table.iterrows():
        table.add_row(*(_format_metric(value) for value in row))
    return table


def _load(data_file: Path, column: str | None) -> np.ndarray:
    try:
        return load_observations(data_file, column)
    except (KeyError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


@app.command()
def fit(  # noqa: B008
    data_file: Path = DATA_FILE_ARGUMENT,
    column: str | None = COLUMN_OPTION,
    breakpoints: list[float] | None = BREAKPOINT_OPTION,
    n_break: int | None = N_BREAK_OPTION,
    exclude_low: float | None = EXCLUDE_LOW_OPTION,
    exclude_high: float | None = EXCLUDE_HIGH_OPTION,
    min_pt_tail: int | None = MIN_PT_TAIL_OPTION,
    max_set: int | None = MAX_SET_OPTION,
    tol: float | None = TOL_OPTION,
    optimizer: str | None = OPTIMIZER_OPTION,
    trace: bool = TRACE_OPTION,
    seed: int | None = SEED_OPTION,
    config: Path | None = CONFIG_OPTION,
) -> None:
    """Fit the piecewise power-law model to observations stored in a CSV file."""
    time = _load(data_file, column)
    try:
        settings = load_settings(config)
        kwargs = _merge(
            settings.fit.as_kwargs(),
            n_break=n_break,
            exclude_int=_exclusion(exclude_low, exclude_high),
            min_pt_tail=min_pt_tail,
            max_set=max_set,
            tol=tol,
            optimizer=optimizer,
        )
        n_break_value = kwargs.pop("n_break")
        result = fit_pwpldis(
            time,
            breakpoints or None,
            n_break_value,
            trace=trace,
            random_state=seed,
            **kwargs,
        )
    except (InvalidParameterError, KeyError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(_fit_table(result, f"Piecewise power-law fit (N={result.n_obs})"))
    if not result.feasible:
        console.print("[yellow]No feasible fit for the requested change points.[/yellow]")


@app.command()
def bootstrap(  # noqa: B008
    data_file: Path = DATA_FILE_ARGUMENT,
    column: str | None = COLUMN_OPTION,
    breakpoints: list[float] | None = BREAKPOINT_OPTION,
    n_break: int | None = N_BREAK_OPTION,
    n_sim: int | None = N_SIM_OPTION,
    exclude_low: float | None = EXCLUDE_LOW_OPTION,
    exclude_high: float | None = EXCLUDE_HIGH_OPTION,
    min_pt_tail: int | None = MIN_PT_TAIL_OPTION,
    max_set: int | None = MAX_SET_OPTION,
    tol: float | None = TOL_OPTION,
    optimizer: str | None = OPTIMIZER_OPTION,
    parallel: bool | None = PARALLEL_OPTION,
    workers: int | None = WORKERS_OPTION,
    seed: int | None = SEED_OPTION,
    config: Path | None = CONFIG_OPTION,
) -> None:
    """Bootstrap the fit and report bias-corrected exponents with 95% intervals."""
    time = _load(data_file, column)
    try:
        settings = load_settings(config)
        kwargs = _merge(
            settings.bootstrap.as_kwargs(),
            n_sim=n_sim,
            n_break=n_break,
            exclude_int=_exclusion(exclude_low, exclude_high),
            min_pt_tail=min_pt_tail,
            max_set=max_set,
            tol=tol,
            optimizer=optimizer,
            parallel=parallel,
            workers=workers,
        )
        n_sim_value = kwargs.pop("n_sim")
        n_break_value = kwargs.pop("n_break")
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as bar:
            task = bar.add_task("Bootstrap", total=max(n_sim_value - 1, 0))
            result = bootstrap_pwpldis(
                time,
                n_sim_value,
                breakpoints or None,
                n_break_value,
                random_state=seed,
                progress=lambda done, total: bar.update(task, completed=done),
                **kwargs,
            )
    except (InvalidParameterError, KeyError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    corrected = result.bias_corrected()
    intervals = result.confidence_intervals()
    original = result.reference.best
    table = Table(title=f"Bootstrap summary (rows={result.n_sim})", expand=True)
    table.add_column("Parameter", no_wrap=True)
    table.add_column("Estimate", justify="right", no_wrap=True)
    table.add_column("Bias-corrected", justify="right", no_wrap=True)
    table.add_column("2.5%", justify="right", no_wrap=True)
    table.add_column("97.5%", justify="right", no_wrap=True)
    for label, value in corrected.items():
        lower = intervals["lower"].get(label)
        upper = intervals["upper"].get(label)
        table.add_row(
            str(label),
            _format_metric(original[label]),
            _format_metric(value),
            _format_metric(lower),
            _format_metric(upper),
        )
    console.print(table)
    if result.diagnostics["n_failed"]:
        console.print(f"[yellow]Imputed rows:[/yellow] {result.diagnostics['n_failed']}")


@app.command()
def sample(  # noqa: B008
    p: list[float] = P_OPTION,
    alpha: list[float] = ALPHA_OPTION,
    size: int = SIZE_OPTION,
    seed: int | None = SEED_OPTION,
    output: Path | None = SAMPLE_OUTPUT_OPTION,
) -> None:
    """Draw observations from a piecewise power-law distribution."""
    try:
        draws = sample_pwpl(size, p, alpha, random_state=seed)
    except (InvalidParameterError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    frame = pd.DataFrame({"x": draws})
    if output is not None:
        frame.to_csv(output, index=False)
        console.print(f"[green]Sample written[/green] {output} (rows={len(frame)})")
    else:
        console.print(" ".join(f"{value:g}" for value in frame["x"]))


def main() -> None:  # pragma: no cover - console entry
    app()
