"""
FMMC Distribution Builder (Flagship Module)
===========================================
Fits a time-series factor model to one asset and builds the joint
empirical distribution of factor returns and residuals, from which the
simulated (backfilled) return series is derived.

Mathematical Foundation:
    Fit:          r_t = α + β^T f_t + ε_t        (asset's own span)
    Joint sample: {(f_s, ε_u)} for every factor date s and residual u
    Simulation:   r̃_{s,u} = α + β^T f_s + ε_u

The factor history may be longer than the asset history; pairing every
factor observation with every residual uses the full factor history
while the residual shocks come from the asset's shorter span.
"""

import warnings
from typing import Tuple

import numpy as np
import pandas as pd

from fmmc.config import FitArgs, resolve_fit_args
from fmmc.errors import (
    FactorFitError,
    FmmcError,
    FmmcWarning,
    InputShapeError,
    InsufficientHistoryError,
)
from fmmc.factor_fit import FitResult, fit_time_series_model
from fmmc.types import BootDist, Failed, FmmcData, FmmcObject, FmmcResult, Ok


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
DEFAULT_ASSET_NAME: str = "asset"


def as_return_series(R) -> pd.Series:
    """
    Coerce a single-asset input to a named Series.

    Raises
    ------
    InputShapeError
        If `R` is not a Series or a one-column DataFrame.
    """
    if isinstance(R, pd.DataFrame):
        if R.shape[1] != 1:
            raise InputShapeError(
                f"Expected a single asset column, got {R.shape[1]}"
            )
        R = R.iloc[:, 0]
    if not isinstance(R, pd.Series):
        raise InputShapeError(
            f"Returns must be a pandas Series or DataFrame, got {type(R).__name__}"
        )
    if R.name is None:
        R = R.rename(DEFAULT_ASSET_NAME)
    return R


def as_factor_frame(factors) -> pd.DataFrame:
    """
    Coerce a factor input to a DataFrame with at least one column.

    Raises
    ------
    InputShapeError
        If `factors` is not a pandas object or has no columns.
    """
    if isinstance(factors, pd.Series):
        factors = factors.to_frame()
    if not isinstance(factors, pd.DataFrame):
        raise InputShapeError(
            f"Factors must be a pandas DataFrame, got {type(factors).__name__}"
        )
    if factors.shape[1] < 1:
        raise InputShapeError("At least one factor column is required")
    return factors


def available_history(R: pd.Series) -> int:
    """
    Length of the non-missing suffix of a return series.

    TR1 = len(R) - position of the first non-missing value.
    """
    values = R.to_numpy(dtype=float)
    valid = np.flatnonzero(~np.isnan(values))
    if valid.size == 0:
        return 0
    return len(values) - int(valid[0])


def drop_missing_betas(
    fit: FitResult,
    factors_data: pd.DataFrame,
) -> Tuple[pd.Series, pd.DataFrame]:
    """
    Keep only factors whose beta was estimated.

    Parameters
    ----------
    fit : FitResult
        Fitted model; beta may contain NaN for unselected factors.
    factors_data : pd.DataFrame
        Complete-case factor matrix.

    Returns
    -------
    tuple
        (beta restricted to present entries, factors_data restricted
        to the same columns).
    """
    beta = fit.beta
    if not fit.has_missing_beta:
        return beta, factors_data

    dropped = list(beta.index[beta.isna()])
    warnings.warn(
        f"Some betas were NA for {fit.asset}; dropping factors {dropped}",
        FmmcWarning,
        stacklevel=3,
    )
    beta = beta.dropna()
    return beta, factors_data[list(beta.index)]


def joint_empirical_sample(
    alpha: float,
    beta: pd.Series,
    factors_data: pd.DataFrame,
    residuals: pd.Series,
) -> BootDist:
    """
    Build the joint empirical sample of factors and residuals.

    Algorithm:
        1. F = complete-case factor rows (T x K), ε = residuals (n,)
        2. Pair every row of F with every residual: T·n rows,
           factor rows varying fastest
        3. r̃ = α + F β + ε on each pair

    Parameters
    ----------
    alpha : float
        Fitted intercept.
    beta : pd.Series
        Fitted exposures indexed by factor name (no NaN).
    factors_data : pd.DataFrame
        Factor returns restricted to `beta.index`.
    residuals : pd.Series
        Residuals of the asset's fit.

    Returns
    -------
    BootDist
        Simulated returns and matching factor rows.
    """
    names = list(beta.index)
    F = factors_data[names].to_numpy(dtype=float)
    eps = residuals.dropna().to_numpy(dtype=float)
    n_factor_rows, n_resid = F.shape[0], eps.shape[0]

    joint_factors = np.tile(F, (n_resid, 1))
    joint_resid = np.repeat(eps, n_factor_rows)

    # r̃ = α + F β + ε
    simulated = alpha + joint_factors @ beta.to_numpy(dtype=float) + joint_resid

    index = pd.RangeIndex(len(simulated))
    return BootDist(
        returns=pd.Series(simulated, index=index, name=residuals.name),
        factors=pd.DataFrame(joint_factors, index=index, columns=names),
    )


def _build(R, factors, **fit_args) -> FmmcObject:
    R = as_return_series(R)
    factors = as_factor_frame(factors)
    asset = R.name

    # Complete-case filter on the factor history
    factors_data = factors.dropna()
    T, T1 = len(factors_data), len(R)
    if T < T1:
        raise InsufficientHistoryError(
            f"Length of factors ({T}) cannot be less than assets ({T1}) "
            f"for {asset}"
        )

    data = pd.concat([R, factors_data], axis=1, join="outer")
    args: FitArgs = resolve_fit_args(factors_data.shape[1], **fit_args)

    try:
        fit = fit_time_series_model(
            asset,
            list(factors_data.columns),
            data,
            **args.to_dict(),
        )
    except Exception as exc:
        raise FactorFitError(
            f"Time-series model fitting failed for {asset}: {exc}"
        ) from exc

    beta, factors_data = drop_missing_betas(fit, factors_data)
    bootdist = joint_empirical_sample(fit.alpha, beta, factors_data, fit.residuals)

    return FmmcObject(
        bootdist=bootdist,
        data=FmmcData(R=R, factors=factors_data),
        args=args,
        alpha=fit.alpha,
        beta=beta,
    )


def build_fmmc(R, factors, **fit_args) -> FmmcResult:
    """
    Build the FMMC object for a single asset.

    Parameters
    ----------
    R : pd.Series or single-column pd.DataFrame
        Asset returns; leading NaN mark a shorter history.
    factors : pd.DataFrame
        Factor returns, one column per factor.
    **fit_args
        fit_method, variable_selection, nvmax, decay
        (see `fmmc.config.resolve_fit_args`).

    Returns
    -------
    Ok or Failed
        Ok(FmmcObject) on success. Input shape problems, a factor
        history shorter than the asset history, and fitter failures
        emit a warning and return Failed.
    """
    asset = getattr(R, "name", None)
    try:
        return Ok(_build(R, factors, **fit_args))
    except FmmcError as exc:
        warnings.warn(str(exc), FmmcWarning, stacklevel=2)
        return Failed(asset=asset, reason=str(exc), error=exc)
