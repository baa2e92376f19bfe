"""
Shared fixtures: synthetic factor panels with unequal histories.
"""

import numpy as np
import pandas as pd
import pytest

from fmmc.data import simulate_factor_panel


@pytest.fixture
def panel_5x200():
    """5 factors, 200 time points, one asset missing its first 20 returns."""
    assets, factors, params = simulate_factor_panel(
        n_obs=200, n_factors=5, n_assets=1, missing=[20], seed=7
    )
    return assets["A1"], factors, params


@pytest.fixture
def panel_4x100():
    """4 factors, 100 time points, three assets with staggered starts."""
    assets, factors, params = simulate_factor_panel(
        n_obs=100, n_factors=4, n_assets=3, missing=[0, 10, 30], seed=11
    )
    return assets, factors, params


@pytest.fixture
def exact_linear():
    """Noise-free single-factor data: r = 0.01 + 2 f."""
    rng = np.random.default_rng(3)
    index = pd.RangeIndex(120)
    factors = pd.DataFrame({"MKT": rng.normal(0, 0.02, size=120)}, index=index)
    returns = pd.Series(0.01 + 2.0 * factors["MKT"].values, index=index, name="X")
    return returns, factors
