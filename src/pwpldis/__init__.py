"""Top-level package exports for pwpldis."""

from __future__ import annotations

from importlib import metadata

__version__ = "0.1.0"

try:
    __version__ = metadata.version("pwpldis")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
    pass

from . import core as core  # noqa: F401
from . import distfit as distfit  # noqa: F401
from . import distributions as distributions  # noqa: F401
from .core import (  # noqa: F401
    BootstrapResult,
    CandidatePoolWarning,
    DegenerateBreakpointWarning,
    FitResult,
    InvalidParameterError,
)
from .distfit import fit_pwpldis, loglik_pwpl  # noqa: F401
from .distributions import (  # noqa: F401
    normalizing_constants,
    pwpl_cdf,
    pwpl_density,
    pwpl_hazard,
    pwpl_quantile,
    pwpl_survival,
    sample_pwpl,
)
from .sampling import bootstrap_pwpldis  # noqa: F401

__all__ = [
    "__version__",
    "core",
    "distfit",
    "distributions",
    "BootstrapResult",
    "CandidatePoolWarning",
    "DegenerateBreakpointWarning",
    "FitResult",
    "InvalidParameterError",
    "bootstrap_pwpldis",
    "fit_pwpldis",
    "loglik_pwpl",
    "normalizing_constants",
    "pwpl_cdf",
    "pwpl_density",
    "pwpl_hazard",
    "pwpl_quantile",
    "pwpl_survival",
    "sample_pwpl",
]
