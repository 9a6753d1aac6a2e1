"""Default settings for fitting and bootstrapping, optionally loaded from YAML."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PWPLDIS_CONFIG"


@dataclass(slots=True)
class FitSettings:
    """Keyword defaults forwarded to :func:`pwpldis.distfit.fit_pwpldis`."""

    n_break: int | None = None
    exclude_int: tuple[float, float] | None = None
    min_pt_tail: int = 2
    max_set: int = 10000
    tol: float = 1e-4
    optimizer: str = "scipy"

    def as_kwargs(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class BootstrapSettings:
    """Keyword defaults forwarded to :func:`pwpldis.sampling.bootstrap_pwpldis`."""

    n_sim: int = 100
    n_break: int = 1
    exclude_int: tuple[float, float] | None = None
    min_pt_tail: int = 5
    max_set: int = 1000
    tol: float = 1e-4
    parallel: bool = False
    workers: int = 4
    optimizer: str = "scipy"

    def as_kwargs(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class Settings:
    fit: FitSettings = field(default_factory=FitSettings)
    bootstrap: BootstrapSettings = field(default_factory=BootstrapSettings)


def _build(section: type[Any], values: Any, label: str) -> Any:
    if values is None:
        return section()
    if not isinstance(values, dict):
        raise ValueError(f"Section '{label}' must be a mapping.")
    known = {item.name for item in fields(section)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys in section '{label}': {', '.join(unknown)}.")
    cleaned = dict(values)
    if cleaned.get("exclude_int") is not None:
        low, high = cleaned["exclude_int"]
        cleaned["exclude_int"] = (float(low), float(high))
    return section(**cleaned)


def load_settings(path: str | os.PathLike[str] | None = None) -> Settings:
    """Load settings from ``path`` or from the file named by ``PWPLDIS_CONFIG``.

    Missing files fall back to the built-in defaults.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return Settings()
        path = env_path
    path = Path(path)
    if not path.exists():
        logger.debug("Skipping settings file %s (file not found)", path)
        return Settings()

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping.")
    unknown = sorted(set(data) - {"fit", "bootstrap"})
    if unknown:
        raise ValueError(f"Unknown sections in {path}: {', '.join(unknown)}.")
    return Settings(
        fit=_build(FitSettings, data.get("fit"), "fit"),
        bootstrap=_build(BootstrapSettings, data.get("bootstrap"), "bootstrap"),
    )


__all__ = [
    "CONFIG_ENV_VAR",
    "BootstrapSettings",
    "FitSettings",
    "Settings",
    "load_settings",
]
