"""
Time-Series Factor Model Fitter
===============================
Regresses one asset's returns on a matrix of factor returns.

Mathematical Foundation:
    Model:      r_t = α + β^T f_t + ε_t
    LS:         min Σ ε_t²
    DLS:        min Σ λ^(n-1-t) ε_t²        (exponentially discounted)
    Robust:     min Σ ρ(ε_t / s)            (Huber M-estimator)
    Subsets:    exhaustive search over factor subsets of size 1..nvmax,
                best subset = argmin BIC

Factors that are not selected for the asset carry a NaN beta.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from fmmc.config import DEFAULT_DLS_DECAY, VALID_FIT_METHODS
from fmmc.errors import FactorFitError


@dataclass(frozen=True)
class FitResult:
    """Fitted single-asset factor model."""

    asset: str
    alpha: float
    beta: pd.Series
    residuals: pd.Series
    fit_method: str
    selected: Tuple[str, ...]

    @property
    def has_missing_beta(self) -> bool:
        return bool(self.beta.isna().any())


def _observation_weights(n_obs: int, fit_method: str, decay: float) -> np.ndarray:
    """Regression weights: λ^(n-1-t) for DLS, ones otherwise."""
    if fit_method == "DLS":
        return decay ** np.arange(n_obs - 1, -1, -1, dtype=float)
    return np.ones(n_obs)


def _design(X: pd.DataFrame) -> pd.DataFrame:
    return sm.add_constant(X, has_constant="add")


def _subset_bic(y: pd.Series, X: pd.DataFrame, weights: np.ndarray) -> float:
    """BIC of a (weighted) least-squares fit; used to rank subsets."""
    result = sm.WLS(y, _design(X), weights=weights).fit()
    return float(result.bic)


def select_best_subset(
    y: pd.Series,
    X: pd.DataFrame,
    nvmax: int,
    weights: Optional[np.ndarray] = None,
) -> List[str]:
    """
    Exhaustive best-subset selection.

    Every subset of size 1..nvmax is fitted by (weighted) least
    squares and the subset with the lowest BIC is returned.

    Parameters
    ----------
    y : pd.Series
        Asset returns with no missing values.
    X : pd.DataFrame
        Candidate factors aligned with `y`.
    nvmax : int
        Maximum subset size.
    weights : np.ndarray, optional
        Observation weights (default: equal).

    Returns
    -------
    list of str
        Selected factor names, in the column order of `X`.
    """
    if nvmax < 1:
        raise FactorFitError(f"nvmax must be at least 1, got {nvmax}")
    if weights is None:
        weights = np.ones(len(y))

    names = list(X.columns)
    max_size = min(nvmax, len(names), len(y) - 2)
    if max_size < 1:
        raise FactorFitError(
            f"Too few observations ({len(y)}) for subset selection"
        )

    best_bic = np.inf
    best: Tuple[str, ...] = ()
    for size in range(1, max_size + 1):
        for subset in combinations(names, size):
            bic = _subset_bic(y, X[list(subset)], weights)
            if bic < best_bic:
                best_bic, best = bic, subset

    if not best:
        raise FactorFitError("Subset selection found no finite BIC")
    return list(best)


def _fit(
    y: pd.Series,
    X: pd.DataFrame,
    fit_method: str,
    weights: np.ndarray,
):
    design = _design(X)
    if fit_method == "LS":
        return sm.OLS(y, design).fit()
    if fit_method == "DLS":
        return sm.WLS(y, design, weights=weights).fit()
    return sm.RLM(y, design, M=sm.robust.norms.HuberT()).fit()


def fit_time_series_model(
    asset: str,
    factor_names: Sequence[str],
    data: pd.DataFrame,
    fit_method: str = "LS",
    variable_selection: str = "none",
    nvmax: Optional[int] = None,
    decay: float = DEFAULT_DLS_DECAY,
) -> FitResult:
    """
    Fit a time-series factor model for one asset.

    Rows with a missing asset return or factor value are dropped before
    fitting, so an asset with a shorter history is fitted on its own
    span only.

    Parameters
    ----------
    asset : str
        Name of the asset column in `data`.
    factor_names : sequence of str
        Names of the factor columns in `data`.
    data : pd.DataFrame
        Asset and factor returns on a common index.
    fit_method : str
        "LS", "DLS" or "Robust".
    variable_selection : str
        "none" (all factors) or "subsets" (best subset by BIC).
    nvmax : int, optional
        Maximum subset size, required for "subsets".
    decay : float
        Discount factor for "DLS".

    Returns
    -------
    FitResult
        alpha, beta over all `factor_names` (NaN where not selected),
        residuals indexed like the fitting sample.

    Raises
    ------
    FactorFitError
        If the configuration is invalid or there are too few
        observations to fit.
    """
    if fit_method not in VALID_FIT_METHODS:
        raise FactorFitError(f"Unknown fit_method {fit_method!r}")

    factor_names = list(factor_names)
    if not factor_names:
        raise FactorFitError("At least one factor is required")

    reg = data[[asset] + factor_names].dropna()
    y = reg[asset].astype(float)
    X = reg[factor_names].astype(float)
    weights = _observation_weights(len(reg), fit_method, decay)

    if variable_selection == "subsets":
        if nvmax is None:
            raise FactorFitError("nvmax is required for subset selection")
        selected = select_best_subset(y, X, nvmax, weights)
    elif variable_selection == "none":
        selected = factor_names
    else:
        raise FactorFitError(
            f"Unknown variable_selection {variable_selection!r}"
        )

    # Need at least one residual degree of freedom
    if len(reg) <= len(selected) + 1:
        raise FactorFitError(
            f"{asset}: {len(reg)} observations for {len(selected)} factors"
        )

    result = _fit(y, X[selected], fit_method, weights)

    params = result.params
    alpha = float(params["const"])
    beta = params.drop("const").reindex(factor_names).astype(float)
    beta.name = asset

    if not np.all(np.isfinite(beta[selected].values)) or not np.isfinite(alpha):
        raise FactorFitError(f"{asset}: non-finite coefficients")

    residuals = pd.Series(
        np.asarray(result.resid, dtype=float), index=reg.index, name=asset
    )

    return FitResult(
        asset=asset,
        alpha=alpha,
        beta=beta,
        residuals=residuals,
        fit_method=fit_method,
        selected=tuple(selected),
    )
