"""
Data Module
===========
Loads asset and factor prices, computes returns while keeping unequal
histories intact, and generates synthetic factor panels.

Unequal histories:
    Assets that start trading later than the factor history are kept
    as columns with leading NaN. The FMMC builder treats the
    non-missing suffix as the asset's available history.

Mathematical Foundation:
    Log return:    r_t = ln(P_t / P_{t-1})
    Simple return: r_t = (P_t - P_{t-1}) / P_{t-1}
    Synthetic:     r_t = α + B f_t + ε_t,  f_t ~ N(μ_f, Σ_f),  ε_t ~ t(ν)
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import yfinance as yf

from fmmc.distribution import available_history


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
# Factor proxies with long histories
DEFAULT_FACTOR_TICKERS: List[str] = ["SPY", "IWM", "IWD", "TLT", "GLD"]

# Assets with staggered listing dates
DEFAULT_ASSET_TICKERS: List[str] = ["AAPL", "JPM", "META", "SNOW", "ABNB"]

DEFAULT_START: str = "2015-01-01"
DEFAULT_END: str = "2026-01-01"


def fetch_data(
    tickers: List[str],
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
    save_path: Optional[str] = None,
) -> pd.DataFrame:
    """
    Download adjusted close prices from Yahoo Finance.

    Rows are dropped only when every ticker is missing, so late
    listings keep their leading NaN.

    Parameters
    ----------
    tickers : list of str
        Ticker symbols to download.
    start : str
        Start date in YYYY-MM-DD format.
    end : str
        End date in YYYY-MM-DD format.
    save_path : str, optional
        If provided, saves the DataFrame as CSV.

    Returns
    -------
    pd.DataFrame
        Adjusted close prices indexed by date.
    """
    raw = yf.download(tickers, start=start, end=end, auto_adjust=True, progress=False)

    # Handle multi-level columns from yfinance
    if isinstance(raw.columns, pd.MultiIndex):
        prices = raw["Close"].copy()
    else:
        prices = raw[["Close"]].copy()
        prices.columns = tickers

    prices = prices.dropna(how="all")

    if save_path:
        prices.to_csv(save_path)

    return prices


def load_data(path: str) -> pd.DataFrame:
    """
    Load price data from CSV file.

    Parameters
    ----------
    path : str
        Path to the CSV file with Date index and one column per series.

    Returns
    -------
    pd.DataFrame
        Prices indexed by date; all-empty rows removed.
    """
    df = pd.read_csv(path, index_col=0, parse_dates=True)
    return df.dropna(how="all")


def to_monthly(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Month-end prices from a daily price panel.

    The joint FMMC sample has T x T1 rows, so monthly data keeps it
    small for long histories.
    """
    return prices.resample("ME").last()


def compute_log_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute logarithmic returns, keeping leading NaN per column.

    r_t = ln(P_t / P_{t-1})

    Returns
    -------
    pd.DataFrame
        Log returns with the first row dropped.
    """
    return np.log(prices / prices.shift(1)).iloc[1:]


def compute_simple_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute simple returns, keeping leading NaN per column.

    r_t = (P_t - P_{t-1}) / P_{t-1}
    """
    return (prices / prices.shift(1) - 1.0).iloc[1:]


def history_lengths(returns: pd.DataFrame) -> pd.Series:
    """Length of the non-missing suffix of every column."""
    return pd.Series(
        {col: available_history(returns[col]) for col in returns.columns},
        name="history_length",
    )


def align_to_factors(
    asset_returns: pd.DataFrame,
    factor_returns: pd.DataFrame,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Restrict both panels to the complete-case factor dates.

    Returns
    -------
    tuple
        (asset returns reindexed on the factor dates, factor returns
        without missing rows).
    """
    factors = factor_returns.dropna()
    return asset_returns.reindex(factors.index), factors


def simulate_factor_panel(
    n_obs: int = 200,
    n_factors: int = 5,
    n_assets: int = 3,
    missing: Optional[Sequence[int]] = None,
    seed: int = 42,
    residual_vol: float = 0.01,
    residual_dof: float = 5.0,
) -> Tuple[pd.DataFrame, pd.DataFrame, Dict[str, np.ndarray]]:
    """
    Generate a synthetic factor model panel with unequal histories.

    Algorithm:
        1. Draw factor returns f_t ~ N(μ_f, Σ_f) with mild correlation
        2. Draw exposures B ~ N(0.5, 0.3²) and intercepts α ~ N(0, 1e-4²)
        3. Residuals ε_t: Student-t(ν) scaled to `residual_vol`
        4. r = α + B f + ε; blank the first `missing[i]` rows of asset i

    Parameters
    ----------
    n_obs : int
        Number of time points.
    n_factors : int
        Number of factors (≥ 1).
    n_assets : int
        Number of assets.
    missing : sequence of int, optional
        Leading missing observations per asset (default: none).
    seed : int
        Random seed.
    residual_vol : float
        Residual standard deviation.
    residual_dof : float
        Degrees of freedom of the residual t-distribution (> 2).

    Returns
    -------
    tuple
        (asset_returns, factor_returns, params) where params holds the
        true "alpha" (n_assets,) and "beta" (n_assets x n_factors).
    """
    if n_factors < 1:
        raise ValueError("n_factors must be at least 1")
    if missing is None:
        missing = [0] * n_assets
    if len(missing) != n_assets:
        raise ValueError("missing must have one entry per asset")

    rng = np.random.default_rng(seed)
    index = pd.RangeIndex(n_obs, name="t")
    factor_names = [f"F{i + 1}" for i in range(n_factors)]
    asset_names = [f"A{i + 1}" for i in range(n_assets)]

    mu_f = rng.normal(0.0005, 0.0005, size=n_factors)
    vols = rng.uniform(0.005, 0.02, size=n_factors)
    corr = np.full((n_factors, n_factors), 0.2)
    np.fill_diagonal(corr, 1.0)
    cov_f = np.outer(vols, vols) * corr
    F = rng.multivariate_normal(mu_f, cov_f, size=n_obs)

    beta = rng.normal(0.5, 0.3, size=(n_assets, n_factors))
    alpha = rng.normal(0.0, 1e-4, size=n_assets)

    scale = residual_vol * np.sqrt((residual_dof - 2) / residual_dof)
    eps = rng.standard_t(residual_dof, size=(n_obs, n_assets)) * scale

    R = alpha + F @ beta.T + eps
    for j, n_missing in enumerate(missing):
        R[:n_missing, j] = np.nan

    assets = pd.DataFrame(R, index=index, columns=asset_names)
    factors = pd.DataFrame(F, index=index, columns=factor_names)
    return assets, factors, {"alpha": alpha, "beta": beta}
