"""
Tests for the FMMC bootstrap statistic and standard errors.
"""

import numpy as np
import pandas as pd
import pytest

from fmmc.bootstrap import (
    BootstrapResult,
    bootstrap,
    bootstrap_config,
    fmmc_boot_statistic,
    fmmc_standard_error,
    resample_joint,
)
from fmmc.distribution import build_fmmc
from fmmc.errors import FmmcBootstrapError
from fmmc.estimators import mean_return, risk_summary
from fmmc.parallel import worker_pool
from fmmc.types import BootstrapConfig


@pytest.fixture
def fmmc_obj(panel_5x200):
    returns, factors, _ = panel_5x200
    return build_fmmc(returns, factors, variable_selection="none").value


def _failing_estimator(returns):
    raise ArithmeticError("estimator failed")


class TestBootstrapConfig:

    def test_lengths_from_short_history(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, mean_return)

        assert config.TR == 200
        assert config.TR1 == 180
        assert config.n_missing == 20
        assert config.variable_selection == "none"
        assert config.fit_method == "LS"

    def test_rejects_inconsistent_lengths(self):
        with pytest.raises(ValueError):
            BootstrapConfig(TR=10, TR1=11, estimator=mean_return, fit_method="LS")


class TestResampleJoint:
    """Every resample blanks exactly the leading TR - TR1 returns."""

    @pytest.mark.parametrize("seed", range(5))
    def test_marks_first_rows_missing(self, fmmc_obj, seed):
        config = bootstrap_config(fmmc_obj, mean_return)
        data = fmmc_obj.bootdist.joint()
        rng = np.random.default_rng(seed)
        indices = rng.integers(0, len(data), size=len(data))

        sample = resample_joint(data, indices, config, rng)

        assert len(sample) == 200
        assert sample.iloc[:20, -1].isna().all()
        assert sample.iloc[20:, -1].notna().all()
        assert not sample.iloc[:, :-1].isna().any().any()
        assert sample.index.equals(pd.RangeIndex(200))

    def test_complete_history_keeps_all_returns(self, panel_4x100):
        assets, factors, _ = panel_4x100
        obj = build_fmmc(assets["A1"], factors, variable_selection="none").value
        config = bootstrap_config(obj, mean_return)
        data = obj.bootdist.joint()
        rng = np.random.default_rng(0)

        sample = resample_joint(data, np.arange(len(data)), config, rng)

        assert config.n_missing == 0
        assert sample.iloc[:, -1].notna().all()

    def test_draws_only_from_given_indices(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, mean_return)
        data = fmmc_obj.bootdist.joint()
        pool = np.array([3, 5])
        sample = resample_joint(data, pool, config, np.random.default_rng(1))

        allowed = data.iloc[pool, 0].values
        assert np.isin(sample.iloc[:, 0].values, allowed).all()


class TestBootStatistic:

    def test_returns_estimator_value(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, mean_return)
        data = fmmc_obj.bootdist.joint()
        rng = np.random.default_rng(2)

        stat = fmmc_boot_statistic(data, np.arange(len(data)), config, rng)

        assert stat.shape == (1,)
        assert np.isfinite(stat).all()

    def test_vector_estimator(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, risk_summary)
        data = fmmc_obj.bootdist.joint()

        stat = fmmc_boot_statistic(
            data, np.arange(len(data)), config, np.random.default_rng(2)
        )
        assert stat.shape == (4,)

    def test_estimator_failure_propagates(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, _failing_estimator)
        data = fmmc_obj.bootdist.joint()

        with pytest.raises(ArithmeticError, match="estimator failed"):
            fmmc_boot_statistic(
                data, np.arange(len(data)), config, np.random.default_rng(0)
            )

    @pytest.mark.filterwarnings("ignore")
    def test_refit_failure_raises(self, fmmc_obj):
        # Two observations cannot support a five-factor refit
        config = BootstrapConfig(TR=200, TR1=2, estimator=mean_return, fit_method="LS")
        data = fmmc_obj.bootdist.joint()

        with pytest.raises(FmmcBootstrapError):
            fmmc_boot_statistic(
                data, np.arange(len(data)), config, np.random.default_rng(0)
            )


class TestBootstrap:

    def test_replicate_matrix_shape(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, risk_summary)
        result = bootstrap(
            fmmc_obj.bootdist.joint(), fmmc_boot_statistic, 6, config, seed=1
        )

        assert result.n_boot == 6
        assert result.replicates.shape == (6, 4)

    def test_same_seed_same_replicates(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, mean_return)
        data = fmmc_obj.bootdist.joint()

        first = bootstrap(data, fmmc_boot_statistic, 4, config, seed=123)
        second = bootstrap(data, fmmc_boot_statistic, 4, config, seed=123)

        assert np.array_equal(first.replicates, second.replicates)

    def test_rejects_zero_replicates(self, fmmc_obj):
        config = bootstrap_config(fmmc_obj, mean_return)
        with pytest.raises(ValueError, match="n_boot"):
            bootstrap(fmmc_obj.bootdist.joint(), fmmc_boot_statistic, 0, config)

    def test_statistic_failure_propagates(self, fmmc_obj):
        def statistic(data, indices, config, rng):
            raise RuntimeError("replicate failed")

        config = bootstrap_config(fmmc_obj, mean_return)
        with pytest.raises(RuntimeError, match="replicate failed"):
            bootstrap(fmmc_obj.bootdist.joint(), statistic, 3, config)


class TestStandardError:

    def test_non_negative(self, fmmc_obj):
        se = fmmc_standard_error(fmmc_obj, mean_return, n_boot=20, seed=0)

        assert se.shape == (1,)
        assert (se >= 0).all()
        assert se[0] > 0

    def test_single_replicate_has_zero_spread(self, fmmc_obj):
        se = fmmc_standard_error(fmmc_obj, mean_return, n_boot=1, seed=0)
        assert np.array_equal(se, np.zeros(1))

    def test_vector_estimator(self, fmmc_obj):
        se = fmmc_standard_error(fmmc_obj, risk_summary, n_boot=10, seed=0)

        assert se.shape == (4,)
        assert (se >= 0).all()

    def test_parallel_matches_sequential(self, fmmc_obj):
        sequential = fmmc_standard_error(fmmc_obj, mean_return, n_boot=8, seed=5)
        with worker_pool(2) as pool:
            parallel = fmmc_standard_error(
                fmmc_obj, mean_return, n_boot=8, pool=pool, seed=5
            )

        assert np.allclose(sequential, parallel)


class TestBootstrapResult:

    def test_standard_error_is_column_sd(self):
        reps = np.array([[1.0, 10.0], [3.0, 10.0], [5.0, 10.0]])
        se = BootstrapResult(replicates=reps).standard_error()

        assert np.allclose(se, [2.0, 0.0])
