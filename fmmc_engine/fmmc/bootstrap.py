"""
FMMC Bootstrap
==============
Standard errors for FMMC risk and performance estimates.

Each replicate resamples the joint (factor, return) sample, blanks the
leading TR - TR1 returns to reproduce the asset's short history,
refits the factor model on the resample and re-applies the estimator:

    1. idx*  ~ resample of size TR from the bootstrap indices
    2. D*    = joint[idx*],  D*[0 : TR-TR1, return] = NaN
    3. FMMC(D*) → r̃*
    4. θ*_b  = estimator(r̃*)
    SE = sd(θ*_1, ..., θ*_B)

Replicates get independent child seeds, so a sequential and a
parallel run with the same seed produce the same replicates.
"""

from dataclasses import dataclass
from concurrent.futures import Executor
from functools import partial
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd

from fmmc.config import DEFAULT_SE_NBOOT
from fmmc.distribution import available_history, build_fmmc
from fmmc.errors import FmmcBootstrapError
from fmmc.parallel import map_tasks
from fmmc.types import BootstrapConfig, Estimator, FmmcObject


Seed = Union[None, int, np.random.SeedSequence]


@dataclass(frozen=True)
class BootstrapResult:
    """Replicate statistics, one row per replicate."""

    replicates: np.ndarray

    @property
    def n_boot(self) -> int:
        return self.replicates.shape[0]

    def standard_error(self) -> np.ndarray:
        """Per-statistic sample standard deviation (zero for one replicate)."""
        if self.n_boot < 2:
            return np.zeros(self.replicates.shape[1])
        return np.std(self.replicates, axis=0, ddof=1)


def resample_joint(
    data: pd.DataFrame,
    indices: np.ndarray,
    config: BootstrapConfig,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """
    Draw one truncated resample of the joint sample.

    Parameters
    ----------
    data : pd.DataFrame
        Factor columns followed by the return column.
    indices : np.ndarray
        Row positions to draw from.
    config : BootstrapConfig
        Supplies TR (rows drawn) and TR1 (returns kept).
    rng : np.random.Generator
        Random source.

    Returns
    -------
    pd.DataFrame
        TR rows on a RangeIndex; the first TR - TR1 entries of the
        return column are NaN.
    """
    drawn = rng.choice(np.asarray(indices), size=config.TR, replace=True)
    sample = data.iloc[drawn].reset_index(drop=True)

    if config.n_missing > 0:
        sample.iloc[: config.n_missing, -1] = np.nan

    return sample


def fmmc_boot_statistic(
    data: pd.DataFrame,
    indices: np.ndarray,
    config: BootstrapConfig,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Bootstrap statistic: refit FMMC on a truncated resample.

    Variable selection is switched off for the refit; the fit method
    of the original object is reused.

    Returns
    -------
    np.ndarray
        Estimator value(s) on the rebuilt simulated returns.

    Raises
    ------
    FmmcBootstrapError
        If the resample cannot be refitted. Estimator errors are not
        caught.
    """
    sample = resample_joint(data, indices, config, rng)

    result = build_fmmc(
        R=sample.iloc[:, -1],
        factors=sample.iloc[:, :-1],
        fit_method=config.fit_method,
        variable_selection=config.variable_selection,
        decay=config.decay,
    )
    if not result.ok:
        raise FmmcBootstrapError(f"Bootstrap refit failed: {result.reason}")

    estimate = config.estimator(result.value.bootdist.returns)
    return np.atleast_1d(np.asarray(estimate, dtype=float))


def _run_replicate(
    statistic: Callable,
    data: pd.DataFrame,
    config: BootstrapConfig,
    seed: np.random.SeedSequence,
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    n = len(data)
    indices = rng.integers(0, n, size=n)
    return statistic(data, indices, config, rng)


def _seed_sequence(seed: Seed) -> np.random.SeedSequence:
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def bootstrap(
    data: pd.DataFrame,
    statistic: Callable,
    n_boot: int,
    config: BootstrapConfig,
    pool: Optional[Executor] = None,
    seed: Seed = None,
) -> BootstrapResult:
    """
    Ordinary nonparametric bootstrap over the rows of `data`.

    Parameters
    ----------
    data : pd.DataFrame
        Sample to resample.
    statistic : callable
        statistic(data, indices, config, rng) -> array-like.
    n_boot : int
        Number of replicates.
    config : BootstrapConfig
        Passed through to `statistic`.
    pool : Executor, optional
        Distributes replicates across workers; sequential if None.
    seed : int or SeedSequence, optional
        Root seed; each replicate gets its own child seed.

    Returns
    -------
    BootstrapResult
        Replicate statistics (n_boot x k).

    Raises
    ------
    ValueError
        If n_boot < 1 or replicates disagree on the statistic length.
    """
    if n_boot < 1:
        raise ValueError(f"n_boot must be >= 1, got {n_boot}")

    seeds = _seed_sequence(seed).spawn(n_boot)
    task = partial(_run_replicate, statistic, data, config)
    stats = map_tasks(task, seeds, pool)

    return BootstrapResult(replicates=np.vstack(stats))


def bootstrap_config(obj: FmmcObject, estimator: Estimator) -> BootstrapConfig:
    """Bootstrap settings for one FMMC object (selection turned off)."""
    return BootstrapConfig(
        TR=len(obj.data.factors),
        TR1=available_history(obj.data.R),
        estimator=estimator,
        fit_method=obj.args.fit_method,
        variable_selection="none",
        decay=obj.args.decay,
    )


def fmmc_standard_error(
    obj: FmmcObject,
    estimator: Estimator,
    n_boot: int = DEFAULT_SE_NBOOT,
    pool: Optional[Executor] = None,
    seed: Seed = None,
) -> np.ndarray:
    """
    Bootstrap standard error of `estimator` for one FMMC object.

    Parameters
    ----------
    obj : FmmcObject
        Built by `build_fmmc`.
    estimator : callable
        Maps a returns Series to a scalar or vector; must be picklable
        when `pool` is given.
    n_boot : int
        Number of bootstrap replicates (default: 50).
    pool : Executor, optional
        Worker pool for the replicates.
    seed : int or SeedSequence, optional
        Root seed for reproducibility.

    Returns
    -------
    np.ndarray
        Standard deviation of the replicates, one per statistic.
    """
    config = bootstrap_config(obj, estimator)
    result = bootstrap(
        obj.bootdist.joint(),
        fmmc_boot_statistic,
        n_boot,
        config,
        pool=pool,
        seed=seed,
    )
    return result.standard_error()
