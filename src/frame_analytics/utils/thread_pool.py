"""
Shared worker pool and the parallel execution gate.

The pool is owned by the application: visitors only borrow it for fork-join
dispatch. ``run_loop`` decides between calling a range function once
(sequential path) or splitting the range into contiguous chunks that run on
the pool (parallel path). Both paths call the same range function, so they
evaluate identical per-element formulas.

Usage:
    pool = get_thread_pool()

    def fill(lo, hi):
        out[lo:hi] = np.sqrt(values[lo:hi])

    pool.run_loop(0, len(out), fill)
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from ..config import ParallelConfig, get_parallel_config
from .logging_config import get_logger

logger = get_logger(__name__)

# Dispatch only when the concurrency level is strictly above this floor.
PARALLEL_LEVEL_FLOOR = 2

RangeFunc = Callable[[int, int], None]


def partition_range(begin: int, end: int, n_chunks: int) -> List[Tuple[int, int]]:
    """
    Split ``[begin, end)`` into at most *n_chunks* contiguous chunks.

    Every chunk but the last has ``(end - begin) // n_chunks`` elements; the
    last one absorbs the remainder. Empty ranges produce no chunks.

    Args:
        begin: First position (inclusive)
        end: Last position (exclusive)
        n_chunks: Requested number of chunks

    Returns:
        List of ``(lo, hi)`` pairs covering the range in order
    """
    size = end - begin
    if size <= 0:
        return []
    n_chunks = max(1, min(n_chunks, size))
    step = size // n_chunks
    bounds = []
    lo = begin
    for i in range(n_chunks):
        hi = end if i == n_chunks - 1 else lo + step
        bounds.append((lo, hi))
        lo = hi
    return bounds


class ThreadPool:
    """
    Worker pool with a concurrency level and a minimum dispatch size.

    The underlying ``ThreadPoolExecutor`` is created on first dispatch and
    sized to ``thread_level`` workers.
    """

    def __init__(
        self,
        thread_level: Optional[int] = None,
        min_parallel_size: Optional[int] = None,
        parallel_config: Optional[ParallelConfig] = None,
    ):
        """
        Initialize the pool.

        Args:
            thread_level: Number of workers/chunks; defaults to the config value
            min_parallel_size: Smallest problem size that is dispatched in
                parallel; defaults to the config value
            parallel_config: Settings used for omitted arguments
        """
        cfg = get_parallel_config(parallel_config)
        settings = ParallelConfig(
            thread_level=cfg.thread_level if thread_level is None else thread_level,
            min_parallel_size=(
                cfg.min_parallel_size if min_parallel_size is None else min_parallel_size
            ),
        )
        self._thread_level = settings.thread_level
        self._min_parallel_size = settings.min_parallel_size
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @property
    def thread_level(self) -> int:
        return self._thread_level

    @property
    def min_parallel_size(self) -> int:
        return self._min_parallel_size

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._thread_level,
                    thread_name_prefix="frame-analytics",
                )
            return self._executor

    def should_parallelize(self, size: int, thread_level: Optional[int] = None) -> bool:
        """
        Decide whether a problem of *size* elements is dispatched in parallel.

        Args:
            size: Problem size checked against ``min_parallel_size``
            thread_level: Concurrency level to test; defaults to the pool's

        Returns:
            True for the chunked-parallel path
        """
        level = self._thread_level if thread_level is None else thread_level
        return level > PARALLEL_LEVEL_FLOOR and size >= self._min_parallel_size

    def parallel_loop(
        self,
        begin: int,
        end: int,
        func: RangeFunc,
        n_chunks: Optional[int] = None,
    ) -> List[Future]:
        """
        Submit ``func(lo, hi)`` once per contiguous chunk of ``[begin, end)``.

        Args:
            begin: First position (inclusive)
            end: Last position (exclusive)
            func: Range function; must only write inside its own chunk
            n_chunks: Number of chunks; defaults to ``thread_level``

        Returns:
            One future per chunk, in chunk order
        """
        executor = self._get_executor()
        chunks = partition_range(begin, end, n_chunks or self._thread_level)
        return [executor.submit(func, lo, hi) for lo, hi in chunks]

    def run_loop(
        self,
        begin: int,
        end: int,
        func: RangeFunc,
        size: Optional[int] = None,
        thread_level: Optional[int] = None,
    ) -> None:
        """
        Run *func* over ``[begin, end)`` through the parallel gate.

        Blocks until all chunks have finished. If any chunk raised, the first
        failure (in chunk order) is re-raised after every chunk completed.

        Args:
            begin: First position (inclusive)
            end: Last position (exclusive)
            func: Range function ``(lo, hi) -> None``
            size: Problem size for the gate; defaults to ``end - begin``
            thread_level: Concurrency level; defaults to the pool's
        """
        size = end - begin if size is None else size
        level = self._thread_level if thread_level is None else thread_level
        if not self.should_parallelize(size, level):
            func(begin, end)
            return

        futures = self.parallel_loop(begin, end, func, n_chunks=level)
        wait(futures)
        for fut in futures:
            fut.result()

    def shutdown(self, wait_for_workers: bool = True) -> None:
        """Stop the executor; a later dispatch starts a new one."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_workers)

    def __repr__(self) -> str:
        return (
            f"ThreadPool(thread_level={self._thread_level}, "
            f"min_parallel_size={self._min_parallel_size})"
        )


_shared_pool: Optional[ThreadPool] = None
_shared_lock = threading.Lock()


def get_thread_pool() -> ThreadPool:
    """Return the shared pool, creating it from config on first use."""
    global _shared_pool
    with _shared_lock:
        if _shared_pool is None:
            _shared_pool = ThreadPool()
            logger.debug("Created shared %r", _shared_pool)
        return _shared_pool


def set_thread_pool(pool: Optional[ThreadPool]) -> Optional[ThreadPool]:
    """
    Install *pool* as the shared pool.

    Args:
        pool: New shared pool, or None to recreate from config on next use

    Returns:
        The previously installed pool (not shut down)
    """
    global _shared_pool
    with _shared_lock:
        previous, _shared_pool = _shared_pool, pool
    return previous


@contextmanager
def thread_pool_override(pool: ThreadPool) -> Iterator[ThreadPool]:
    """Temporarily install *pool* as the shared pool, restoring it on exit.

    Usage::

        with thread_pool_override(ThreadPool(thread_level=4, min_parallel_size=8)):
            visitor = FastFourierTransVisitor()
            ...
    """
    previous = set_thread_pool(pool)
    try:
        yield pool
    finally:
        set_thread_pool(previous)
