"""
Risk & Performance Estimators
=============================
Estimator functions applied to FMMC simulated return series. Each
maps a return series to a scalar and ignores missing values, so they
can be passed directly to `fmmc_estimate_se`.

Mathematical Foundation:
    Historical VaR:   Quantile of empirical loss distribution
    Parametric VaR:   VaR_α = z_α · σ - μ
    Expected Shortfall: ES = E[L | L > VaR]
    Sharpe:           (μ - r_f) / σ · √P
    Sortino:          (μ - r_f) / σ_down · √P
"""

from functools import partial
from typing import Callable

import numpy as np
import pandas as pd
from scipy import stats


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
DEFAULT_CONFIDENCE: float = 0.95
TRADING_DAYS_PER_YEAR: int = 252


def _clean(returns) -> np.ndarray:
    values = np.asarray(returns, dtype=float).ravel()
    return values[~np.isnan(values)]


def make_estimator(func: Callable, **kwargs) -> Callable:
    """
    Bind keyword arguments to an estimator.

    The result is a `functools.partial`, which pickles as long as
    `func` does, so it can be used with parallel bootstraps.
    """
    return partial(func, **kwargs)


# ─────────────────────────────────────────────────────────────
# Moments & ratios
# ─────────────────────────────────────────────────────────────

def mean_return(returns: pd.Series) -> float:
    """Sample mean of the returns."""
    return float(np.mean(_clean(returns)))


def volatility(returns: pd.Series, periods_per_year: int = 1) -> float:
    """
    Sample standard deviation (ddof=1), optionally annualized.

    Parameters
    ----------
    returns : pd.Series
        Return series.
    periods_per_year : int
        Annualization factor; 1 leaves the volatility per period.
    """
    return float(np.std(_clean(returns), ddof=1) * np.sqrt(periods_per_year))


def sharpe_ratio(
    returns: pd.Series,
    risk_free: float = 0.0,
    periods_per_year: int = 1,
) -> float:
    """
    Sharpe ratio of excess returns.

    Parameters
    ----------
    returns : pd.Series
        Return series.
    risk_free : float
        Per-period risk-free rate.
    periods_per_year : int
        Annualization factor (e.g. 252 for daily data).

    Returns
    -------
    float
        Sharpe ratio; 0.0 when volatility is zero.
    """
    excess = _clean(returns) - risk_free
    sigma = np.std(excess, ddof=1)
    if sigma == 0:
        return 0.0
    return float(np.mean(excess) / sigma * np.sqrt(periods_per_year))


def sortino_ratio(
    returns: pd.Series,
    risk_free: float = 0.0,
    periods_per_year: int = 1,
) -> float:
    """Sortino ratio: excess mean over downside deviation."""
    excess = _clean(returns) - risk_free
    downside = np.minimum(excess, 0.0)
    downside_dev = np.sqrt(np.mean(downside ** 2))
    if downside_dev == 0:
        return 0.0
    return float(np.mean(excess) / downside_dev * np.sqrt(periods_per_year))


# ─────────────────────────────────────────────────────────────
# Historical VaR / ES
# ─────────────────────────────────────────────────────────────

def historical_var(
    returns: pd.Series,
    confidence_level: float = DEFAULT_CONFIDENCE,
) -> float:
    """
    Value-at-Risk from the empirical loss distribution.

    Algorithm:
        1. Convert returns to losses: L = -R
        2. Extract the quantile at confidence_level

    Parameters
    ----------
    returns : pd.Series
        Return series.
    confidence_level : float
        Confidence level (default: 0.95).

    Returns
    -------
    float
        VaR (positive = loss magnitude).
    """
    losses = -_clean(returns)
    return float(np.percentile(losses, confidence_level * 100))


def historical_es(
    returns: pd.Series,
    confidence_level: float = DEFAULT_CONFIDENCE,
) -> float:
    """
    Expected Shortfall from the empirical loss distribution.

    ES = E[L | L >= VaR]
    """
    losses = -_clean(returns)
    var = np.percentile(losses, confidence_level * 100)
    return float(np.mean(losses[losses >= var]))


# ─────────────────────────────────────────────────────────────
# Parametric (Gaussian) VaR / ES
# ─────────────────────────────────────────────────────────────

def parametric_var(
    returns: pd.Series,
    confidence_level: float = DEFAULT_CONFIDENCE,
) -> float:
    """
    Gaussian VaR using the sample mean and standard deviation.

    VaR_α = z_α · σ - μ
    """
    values = _clean(returns)
    z_alpha = stats.norm.ppf(confidence_level)
    return float(z_alpha * np.std(values, ddof=1) - np.mean(values))


def parametric_es(
    returns: pd.Series,
    confidence_level: float = DEFAULT_CONFIDENCE,
) -> float:
    """
    Gaussian Expected Shortfall.

    ES_α = -μ + σ · φ(z_α) / (1 - α)
    """
    values = _clean(returns)
    z_alpha = stats.norm.ppf(confidence_level)
    phi_z = stats.norm.pdf(z_alpha)
    sigma = np.std(values, ddof=1)
    return float(-np.mean(values) + sigma * phi_z / (1 - confidence_level))


def risk_summary(returns: pd.Series) -> np.ndarray:
    """
    Vector estimator: [mean, volatility, 95% VaR, 95% ES].

    Useful for bootstrapping several statistics from one set of
    replicates.
    """
    return np.array([
        mean_return(returns),
        volatility(returns),
        historical_var(returns, 0.95),
        historical_es(returns, 0.95),
    ])


RISK_SUMMARY_LABELS = ["mean", "volatility", "var_95", "es_95"]
