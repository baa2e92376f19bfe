"""
Worker Pools
============
Scoped process pools for the two parallel axes of the engine
(one task per asset, one task per bootstrap replicate).

Pools are always passed explicitly; `worker_pool` guarantees shutdown
even when a task raises.
"""

import os
from concurrent.futures import Executor, ProcessPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional


def default_worker_count() -> int:
    """Number of workers used when none is requested (all cores)."""
    return os.cpu_count() or 1


@contextmanager
def worker_pool(n_workers: Optional[int] = None) -> Iterator[Executor]:
    """
    Create a process pool and shut it down on exit.

    Parameters
    ----------
    n_workers : int, optional
        Pool size (default: number of CPU cores).

    Yields
    ------
    concurrent.futures.Executor
        The live pool.
    """
    if n_workers is None:
        n_workers = default_worker_count()
    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")

    pool = ProcessPoolExecutor(max_workers=n_workers)
    try:
        yield pool
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


def map_tasks(
    func: Callable,
    items: Iterable,
    pool: Optional[Executor] = None,
) -> List:
    """
    Apply `func` to every item, in order.

    Runs sequentially when `pool` is None. The first task exception
    propagates to the caller.
    """
    if pool is None:
        return [func(item) for item in items]
    return list(pool.map(func, items))
