"""
Configuration
=============
Engine-wide defaults and resolution of the fitting arguments passed
through `fmmc(...)` down to the time-series factor model fitter.

Defaults:
    fit_method          "LS"       (ordinary least squares)
    variable_selection  "subsets"  (best-subset search by BIC)
    nvmax               floor((K - 1) / 2), at least 1
"""

import warnings
from dataclasses import dataclass
from typing import Optional

from fmmc.errors import FmmcWarning


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
DEFAULT_FIT_METHOD: str = "LS"
DEFAULT_VARIABLE_SELECTION: str = "subsets"
DEFAULT_DLS_DECAY: float = 0.95
DEFAULT_NBOOT: int = 100
DEFAULT_SE_NBOOT: int = 50
DEFAULT_SEED: int = 42

VALID_FIT_METHODS = ("LS", "DLS", "Robust")
VALID_VARIABLE_SELECTIONS = ("none", "subsets")


@dataclass(frozen=True)
class FitArgs:
    """Resolved fitting configuration for one asset."""

    fit_method: str = DEFAULT_FIT_METHOD
    variable_selection: str = DEFAULT_VARIABLE_SELECTION
    nvmax: Optional[int] = None
    decay: float = DEFAULT_DLS_DECAY

    def to_dict(self) -> dict:
        return {
            "fit_method": self.fit_method,
            "variable_selection": self.variable_selection,
            "nvmax": self.nvmax,
            "decay": self.decay,
        }


def default_nvmax(n_factors: int) -> int:
    """
    Default maximum subset size for best-subset selection.

    floor((K - 1) / 2), floored at 1 so that one- and two-factor
    models still have a subset to choose.
    """
    return max(1, (n_factors - 1) // 2)


def resolve_fit_args(
    n_factors: int,
    fit_method: Optional[str] = None,
    variable_selection: Optional[str] = None,
    nvmax: Optional[int] = None,
    decay: Optional[float] = None,
) -> FitArgs:
    """
    Fill in defaults for the fitting arguments.

    Unrecognised selection policies are coerced to "subsets" with a
    warning rather than rejected.

    Parameters
    ----------
    n_factors : int
        Number of candidate factors after the complete-case filter.
    fit_method : str, optional
        One of "LS", "DLS", "Robust" (default: "LS").
    variable_selection : str, optional
        "none" or "subsets" (default: "subsets").
    nvmax : int, optional
        Maximum subset size for "subsets".
    decay : float, optional
        Exponential decay for "DLS" weights (default: 0.95).

    Returns
    -------
    FitArgs
        Resolved configuration.

    Raises
    ------
    ValueError
        If `fit_method` is unknown or `decay` is outside (0, 1].
    """
    if fit_method is None:
        fit_method = DEFAULT_FIT_METHOD
    if fit_method not in VALID_FIT_METHODS:
        raise ValueError(
            f"fit_method must be one of {VALID_FIT_METHODS}, got {fit_method!r}"
        )

    if variable_selection is None:
        variable_selection = DEFAULT_VARIABLE_SELECTION
    elif variable_selection not in VALID_VARIABLE_SELECTIONS:
        warnings.warn(
            f"Unsupported variable_selection {variable_selection!r}; "
            f"using 'subsets'.",
            FmmcWarning,
            stacklevel=2,
        )
        variable_selection = "subsets"

    if variable_selection == "subsets":
        if nvmax is None:
            nvmax = default_nvmax(n_factors)
    else:
        nvmax = None

    if decay is None:
        decay = DEFAULT_DLS_DECAY
    if not 0 < decay <= 1:
        raise ValueError(f"decay must be in (0, 1], got {decay}")

    return FitArgs(
        fit_method=fit_method,
        variable_selection=variable_selection,
        nvmax=nvmax,
        decay=float(decay),
    )
