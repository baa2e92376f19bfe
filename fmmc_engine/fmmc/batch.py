"""
Batch Orchestration
===================
Public entry points of the FMMC engine.

    fmmc(R, factors, ...)               one FMMC object per asset
    fmmc_estimate_se(objs, estimator)   estimates and bootstrap SEs

Reference:
    Y. Jiang and R. D. Martin, "Better Risk and Performance Estimates
    with Factor Model Monte Carlo", SSRN, July 2013.
"""

from functools import partial
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from fmmc.bootstrap import Seed, fmmc_standard_error
from fmmc.config import DEFAULT_NBOOT
from fmmc.distribution import build_fmmc
from fmmc.parallel import map_tasks, worker_pool
from fmmc.types import Estimator, FmmcObject, FmmcResult


def _fmmc_worker(asset_returns: pd.Series, factors: pd.DataFrame, fit_args: dict) -> FmmcResult:
    return build_fmmc(asset_returns, factors, **fit_args)


def fmmc_results(
    R: pd.DataFrame,
    factors: pd.DataFrame,
    parallel: bool = False,
    n_workers: Optional[int] = None,
    **fit_args,
) -> List[FmmcResult]:
    """
    Build tagged FMMC results for every asset column, in column order.

    Failed assets are kept as `Failed` entries; see `fmmc` for the
    filtered list.
    """
    if isinstance(R, pd.Series):
        R = R.to_frame()
    columns = [R[col] for col in R.columns]
    task = partial(_fmmc_worker, factors=factors, fit_args=fit_args)

    if parallel:
        with worker_pool(n_workers) as pool:
            return map_tasks(task, columns, pool)
    return map_tasks(task, columns)


def fmmc(
    R: pd.DataFrame,
    factors: pd.DataFrame,
    parallel: bool = False,
    n_workers: Optional[int] = None,
    **fit_args,
) -> List[FmmcObject]:
    """
    Compute FMMC objects for a panel of assets with unequal histories.

    Parameters
    ----------
    R : pd.DataFrame
        Asset returns (T x N); shorter histories are padded with
        leading NaN.
    factors : pd.DataFrame
        Factor returns (T x K).
    parallel : bool
        Fit assets in a process pool (default: False).
    n_workers : int, optional
        Pool size when `parallel` (default: all cores).
    **fit_args
        fit_method, variable_selection, nvmax, decay.

    Returns
    -------
    list of FmmcObject
        One object per asset that fitted successfully, in column
        order. Failed assets are dropped.
    """
    results = fmmc_results(R, factors, parallel=parallel, n_workers=n_workers, **fit_args)
    return [res.value for res in results if res.ok]


def _estimate_columns(prefix: str, width: int) -> List[str]:
    if width == 1:
        return [prefix]
    return [f"{prefix}_{i}" for i in range(width)]


def _stack(values: Sequence[np.ndarray]) -> np.ndarray:
    widths = {len(v) for v in values}
    if len(widths) > 1:
        raise ValueError(f"Estimator returned inconsistent lengths: {sorted(widths)}")
    return np.vstack(values)


def fmmc_estimate_se(
    fmmc_objs: Sequence[FmmcObject],
    estimator: Optional[Estimator] = None,
    se: bool = False,
    n_boot: int = DEFAULT_NBOOT,
    parallel: bool = False,
    n_workers: Optional[int] = None,
    seed: Seed = None,
) -> pd.DataFrame:
    """
    Risk/performance estimates and their bootstrap standard errors.

    Parameters
    ----------
    fmmc_objs : sequence of FmmcObject
        Output of `fmmc`.
    estimator : callable, optional
        Maps a returns Series to a scalar or vector. Without one the
        result is an all-NaN "estimate" column.
    se : bool
        Also compute bootstrap standard errors (default: False).
    n_boot : int
        Bootstrap replicates per asset (default: 100).
    parallel : bool
        Run replicates in one process pool shared by all assets.
    n_workers : int, optional
        Pool size when `parallel` (default: all cores).
    seed : int, optional
        Root seed; each asset gets an independent child seed.

    Returns
    -------
    pd.DataFrame
        Indexed by asset. Columns "estimate" and, with `se`, "se";
        vector estimators give "estimate_i" / "se_i".
    """
    assets = [obj.asset for obj in fmmc_objs]
    index = pd.Index(assets, name="asset")

    if estimator is None:
        return pd.DataFrame({"estimate": np.full(len(assets), np.nan)}, index=index)

    estimates = [
        np.atleast_1d(np.asarray(estimator(obj.bootdist.returns), dtype=float))
        for obj in fmmc_objs
    ]
    if not estimates:
        return pd.DataFrame(columns=["estimate", "se"] if se else ["estimate"], index=index)

    est = _stack(estimates)
    result = pd.DataFrame(est, index=index, columns=_estimate_columns("estimate", est.shape[1]))

    if not se:
        return result

    seeds = np.random.SeedSequence(seed).spawn(len(fmmc_objs))

    def standard_errors(pool=None):
        return [
            fmmc_standard_error(obj, estimator, n_boot=n_boot, pool=pool, seed=s)
            for obj, s in zip(fmmc_objs, seeds)
        ]

    if parallel:
        with worker_pool(n_workers) as pool:
            errors = standard_errors(pool)
    else:
        errors = standard_errors()

    serr = _stack(errors)
    for i, col in enumerate(_estimate_columns("se", serr.shape[1])):
        result[col] = serr[:, i]

    return result
