"""
Tests for return computation and synthetic panels.
"""

import numpy as np
import pandas as pd
import pytest

from fmmc.data import (
    align_to_factors,
    compute_log_returns,
    compute_simple_returns,
    history_lengths,
    simulate_factor_panel,
    to_monthly,
)


@pytest.fixture
def prices():
    index = pd.date_range("2024-01-01", periods=5, freq="D")
    return pd.DataFrame(
        {"OLD": [100.0, 101.0, 102.0, 101.0, 103.0],
         "NEW": [np.nan, np.nan, 50.0, 51.0, 52.0]},
        index=index,
    )


class TestReturns:

    def test_log_returns_keep_leading_missing(self, prices):
        returns = compute_log_returns(prices)

        assert len(returns) == 4
        assert returns["NEW"].isna().sum() == 2
        assert returns["OLD"].iloc[0] == pytest.approx(np.log(1.01))

    def test_simple_returns(self, prices):
        returns = compute_simple_returns(prices)
        assert returns["NEW"].iloc[-1] == pytest.approx(52.0 / 51.0 - 1)

    def test_history_lengths(self, prices):
        lengths = history_lengths(compute_log_returns(prices))
        assert lengths.to_dict() == {"OLD": 4, "NEW": 2}

    def test_to_monthly_takes_month_end(self):
        index = pd.date_range("2024-01-30", periods=4, freq="D")
        daily = pd.DataFrame({"X": [1.0, 2.0, 3.0, 4.0]}, index=index)

        monthly = to_monthly(daily)

        assert list(monthly["X"]) == [2.0, 4.0]


class TestAlignToFactors:

    def test_restricts_to_complete_factor_dates(self):
        index = pd.RangeIndex(4)
        factors = pd.DataFrame({"F": [0.1, np.nan, 0.2, 0.3]}, index=index)
        assets = pd.DataFrame({"A": [np.nan, 0.1, 0.2, 0.3]}, index=index)

        aligned_assets, aligned_factors = align_to_factors(assets, factors)

        assert list(aligned_factors.index) == [0, 2, 3]
        assert list(aligned_assets.index) == [0, 2, 3]


class TestSimulateFactorPanel:

    def test_shapes_and_missing(self):
        assets, factors, params = simulate_factor_panel(
            n_obs=50, n_factors=3, n_assets=2, missing=[0, 10], seed=1
        )

        assert assets.shape == (50, 2)
        assert factors.shape == (50, 3)
        assert params["beta"].shape == (2, 3)
        assert assets["A1"].notna().all()
        assert assets["A2"].iloc[:10].isna().all()
        assert assets["A2"].iloc[10:].notna().all()

    def test_reproducible(self):
        first = simulate_factor_panel(n_obs=20, seed=4)[0]
        second = simulate_factor_panel(n_obs=20, seed=4)[0]
        pd.testing.assert_frame_equal(first, second)

    def test_rejects_mismatched_missing(self):
        with pytest.raises(ValueError, match="missing"):
            simulate_factor_panel(n_assets=2, missing=[1])
