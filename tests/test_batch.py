"""
Tests for the batch entry points `fmmc` and `fmmc_estimate_se`.
"""

from contextlib import contextmanager

import numpy as np
import pandas as pd
import pytest

import fmmc.batch as batch
from fmmc.batch import fmmc, fmmc_estimate_se, fmmc_results
from fmmc.estimators import historical_var, make_estimator, mean_return, risk_summary
from fmmc.types import FmmcObject


@pytest.fixture
def panel_with_failure(panel_4x100):
    """Three fittable assets plus one with no data at all."""
    assets, factors, _ = panel_4x100
    assets = assets.copy()
    assets["BAD"] = np.nan
    return assets, factors


@pytest.mark.filterwarnings("ignore")
class TestFmmc:

    def test_one_object_per_fittable_asset(self, panel_with_failure):
        assets, factors = panel_with_failure
        objs = fmmc(assets, factors)

        assert [obj.asset for obj in objs] == ["A1", "A2", "A3"]
        assert all(isinstance(obj, FmmcObject) for obj in objs)

    def test_tagged_results_keep_failures(self, panel_with_failure):
        assets, factors = panel_with_failure
        results = fmmc_results(assets, factors)

        assert [res.ok for res in results] == [True, True, True, False]
        assert results[-1].asset == "BAD"

    def test_fit_args_forwarded(self, panel_4x100):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, fit_method="Robust", variable_selection="none")

        assert all(obj.args.fit_method == "Robust" for obj in objs)
        assert all(obj.bootdist.factors.shape[1] == 4 for obj in objs)

    def test_parallel_matches_sequential_membership(self, panel_with_failure):
        assets, factors = panel_with_failure
        sequential = fmmc(assets, factors)
        parallel = fmmc(assets, factors, parallel=True, n_workers=2)

        assert [o.asset for o in parallel] == [o.asset for o in sequential]
        for seq, par in zip(sequential, parallel):
            assert np.allclose(seq.bootdist.returns.values, par.bootdist.returns.values)

    def test_short_factor_history_filtered(self, panel_4x100):
        assets, factors, _ = panel_4x100
        factors = factors.copy()
        factors.iloc[0, 0] = np.nan

        assert fmmc(assets, factors) == []


class TestEstimateSe:

    def test_no_estimator_gives_all_missing_column(self, panel_4x100):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, variable_selection="none")

        table = fmmc_estimate_se(objs)

        assert list(table.columns) == ["estimate"]
        assert len(table) == len(objs)
        assert table["estimate"].isna().all()
        assert list(table.index) == ["A1", "A2", "A3"]

    def test_point_estimates_only(self, panel_4x100):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, variable_selection="none")

        table = fmmc_estimate_se(objs, mean_return)

        assert list(table.columns) == ["estimate"]
        expected = [obj.bootdist.returns.mean() for obj in objs]
        assert np.allclose(table["estimate"].values, expected)

    @pytest.mark.filterwarnings("ignore")
    def test_end_to_end_with_standard_errors(self, panel_with_failure):
        assets, factors = panel_with_failure
        objs = fmmc(assets, factors)

        table = fmmc_estimate_se(objs, mean_return, se=True, n_boot=50, seed=0)

        assert list(table.columns) == ["estimate", "se"]
        assert list(table.index) == ["A1", "A2", "A3"]
        assert np.isfinite(table["estimate"]).all()
        assert (table["se"] >= 0).all()
        assert "BAD" not in table.index

    def test_vector_estimator_columns(self, panel_4x100):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, variable_selection="none")

        table = fmmc_estimate_se(objs, risk_summary, se=True, n_boot=5, seed=0)

        assert list(table.columns) == [
            "estimate_0", "estimate_1", "estimate_2", "estimate_3",
            "se_0", "se_1", "se_2", "se_3",
        ]

    def test_parallel_matches_sequential(self, panel_4x100):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, variable_selection="none")
        var_95 = make_estimator(historical_var, confidence_level=0.95)

        sequential = fmmc_estimate_se(objs, var_95, se=True, n_boot=6, seed=9)
        parallel = fmmc_estimate_se(
            objs, var_95, se=True, n_boot=6, parallel=True, n_workers=2, seed=9
        )

        pd.testing.assert_frame_equal(sequential, parallel)

    def test_empty_input(self):
        table = fmmc_estimate_se([], mean_return, se=True)

        assert len(table) == 0
        assert list(table.columns) == ["estimate", "se"]

    def test_pool_torn_down_when_an_asset_fails(self, panel_4x100, monkeypatch):
        assets, factors, _ = panel_4x100
        objs = fmmc(assets, factors, variable_selection="none")
        events = []

        @contextmanager
        def recording_pool(n_workers=None):
            events.append("open")
            try:
                yield None
            finally:
                events.append("close")

        def failing_se(obj, estimator, n_boot, pool, seed):
            raise RuntimeError("replicate failed")

        monkeypatch.setattr(batch, "worker_pool", recording_pool)
        monkeypatch.setattr(batch, "fmmc_standard_error", failing_se)

        with pytest.raises(RuntimeError, match="replicate failed"):
            fmmc_estimate_se(objs, mean_return, se=True, parallel=True)

        assert events == ["open", "close"]
