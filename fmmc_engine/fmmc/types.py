"""
Core Value Types
================
Immutable containers passed between the distribution builder, the
bootstrap and the batch orchestrator.

    FmmcObject      joint empirical distribution for one asset
    Ok / Failed     tagged result of building an FmmcObject
    BootstrapConfig per-asset settings shared by every replicate
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

import pandas as pd

from fmmc.config import FitArgs


Estimator = Callable[[pd.Series], object]


@dataclass(frozen=True)
class BootDist:
    """Simulated returns and the factor rows that generated them."""

    returns: pd.Series
    factors: pd.DataFrame

    def joint(self) -> pd.DataFrame:
        """Factor columns followed by the return column."""
        return pd.concat([self.factors, self.returns], axis=1)


@dataclass(frozen=True)
class FmmcData:
    """Original inputs the distribution was built from."""

    R: pd.Series
    factors: pd.DataFrame


@dataclass(frozen=True)
class FmmcObject:
    """
    Factor Model Monte Carlo object for a single asset.

    Attributes
    ----------
    bootdist : BootDist
        Joint empirical sample; `returns` and `factors` have equal length.
    data : FmmcData
        Observed return series and complete-case factor matrix
        (restricted to factors with a fitted beta).
    args : FitArgs
        Fitting configuration used, reused when refitting replicates.
    alpha : float
        Fitted intercept.
    beta : pd.Series
        Fitted exposures for the surviving factors.
    """

    bootdist: BootDist
    data: FmmcData
    args: FitArgs
    alpha: float
    beta: pd.Series

    def __post_init__(self):
        if len(self.bootdist.returns) != len(self.bootdist.factors):
            raise ValueError(
                "bootdist returns and factors must have the same number of rows"
            )

    @property
    def asset(self) -> str:
        return self.data.R.name

    @property
    def factor_names(self) -> list:
        return list(self.bootdist.factors.columns)


@dataclass(frozen=True)
class Ok:
    value: FmmcObject

    ok = True

    @property
    def asset(self):
        return self.value.asset


@dataclass(frozen=True)
class Failed:
    asset: object
    reason: str
    error: Optional[BaseException] = None

    ok = False


FmmcResult = Union[Ok, Failed]


@dataclass(frozen=True)
class BootstrapConfig:
    """
    Settings for every replicate of one standard-error computation.

    TR is the full factor-history length and TR1 the asset's
    non-missing history length; the first TR - TR1 returns of each
    resample are blanked to reproduce the short history.
    """

    TR: int
    TR1: int
    estimator: Estimator
    fit_method: str
    variable_selection: str = "none"
    decay: Optional[float] = None

    def __post_init__(self):
        if not 0 < self.TR1 <= self.TR:
            raise ValueError(
                f"Need 0 < TR1 <= TR, got TR={self.TR}, TR1={self.TR1}"
            )

    @property
    def n_missing(self) -> int:
        return self.TR - self.TR1
