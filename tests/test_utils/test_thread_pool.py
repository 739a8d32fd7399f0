"""
Tests for the shared worker pool and the parallel gate.
"""

import threading

import numpy as np
import pytest

from frame_analytics.config import ParallelConfig
from frame_analytics.utils.thread_pool import (
    PARALLEL_LEVEL_FLOOR,
    ThreadPool,
    get_thread_pool,
    partition_range,
    set_thread_pool,
    thread_pool_override,
)


# ------------------------------------------------------------------
# partition_range
# ------------------------------------------------------------------


def test_partition_range_even():
    """Even splits produce equal chunks."""
    assert partition_range(0, 8, 4) == [(0, 2), (2, 4), (4, 6), (6, 8)]


def test_partition_range_remainder_goes_last():
    """The last chunk absorbs the remainder."""
    assert partition_range(1, 12, 3) == [(1, 4), (4, 7), (7, 12)]


def test_partition_range_more_chunks_than_elements():
    """Never more chunks than elements."""
    assert partition_range(0, 2, 8) == [(0, 1), (1, 2)]


def test_partition_range_empty():
    """Empty ranges have no chunks."""
    assert partition_range(5, 5, 4) == []


# ------------------------------------------------------------------
# Gate
# ------------------------------------------------------------------


def test_should_parallelize():
    """Both the level and the size must pass the gate."""
    pool = ThreadPool(thread_level=4, min_parallel_size=100)
    assert pool.should_parallelize(100)
    assert not pool.should_parallelize(99)
    assert not pool.should_parallelize(1000, thread_level=PARALLEL_LEVEL_FLOOR)
    assert pool.should_parallelize(1000, thread_level=PARALLEL_LEVEL_FLOOR + 1)


def test_low_level_pool_never_parallelizes():
    """Pools at or below the floor always run sequentially."""
    pool = ThreadPool(thread_level=2, min_parallel_size=1)
    assert not pool.should_parallelize(10**9)


def test_pool_defaults_from_config():
    """Omitted settings come from the supplied configuration."""
    pool = ThreadPool(parallel_config=ParallelConfig(thread_level=6, min_parallel_size=42))
    assert pool.thread_level == 6
    assert pool.min_parallel_size == 42
    assert repr(pool) == "ThreadPool(thread_level=6, min_parallel_size=42)"


def test_pool_validation():
    """Non-positive settings are rejected."""
    with pytest.raises(ValueError, match="thread_level"):
        ThreadPool(thread_level=0)
    with pytest.raises(ValueError, match="min_parallel_size"):
        ThreadPool(thread_level=2, min_parallel_size=0)


# ------------------------------------------------------------------
# run_loop
# ------------------------------------------------------------------


def test_run_loop_sequential_is_one_call(sequential_pool):
    """Below the gate the range function is called once for the whole range."""
    calls = []
    sequential_pool.run_loop(0, 50, lambda lo, hi: calls.append((lo, hi)))
    assert calls == [(0, 50)]


def test_run_loop_parallel_covers_range(parallel_pool):
    """Above the gate every position is written exactly once."""
    values = np.arange(103, dtype=np.float64)
    out = np.zeros_like(values)
    calls = []
    lock = threading.Lock()

    def fill(lo, hi):
        with lock:
            calls.append((lo, hi))
        out[lo:hi] += np.sqrt(values[lo:hi])

    parallel_pool.run_loop(0, len(values), fill)

    np.testing.assert_array_equal(out, np.sqrt(values))
    assert sorted(calls) == partition_range(0, 103, 4)


def test_run_loop_parallel_matches_sequential(sequential_pool, parallel_pool, rng):
    """Both paths produce identical values."""
    values = rng.normal(size=64)
    seq = np.empty_like(values)
    par = np.empty_like(values)

    def make(out):
        def fill(lo, hi):
            out[lo:hi] = np.exp(values[lo:hi]) * 3.0 - 1.0

        return fill

    sequential_pool.run_loop(0, 64, make(seq))
    parallel_pool.run_loop(0, 64, make(par))
    np.testing.assert_array_equal(seq, par)


def test_run_loop_size_overrides_range_length(parallel_pool):
    """An explicit size drives the gate instead of the range length."""
    calls = []
    parallel_pool.run_loop(0, 4, lambda lo, hi: calls.append((lo, hi)), size=1000)
    assert len(calls) == 4

    calls.clear()
    parallel_pool.run_loop(0, 100, lambda lo, hi: calls.append((lo, hi)), size=2)
    assert calls == [(0, 100)]


def test_run_loop_propagates_errors(parallel_pool):
    """A failing chunk re-raises in the caller."""

    def boom(lo, hi):
        if lo > 0:
            raise ArithmeticError(f"chunk {lo}")

    with pytest.raises(ArithmeticError, match="chunk"):
        parallel_pool.run_loop(0, 40, boom)


def test_parallel_loop_returns_futures(parallel_pool):
    """parallel_loop hands back one future per chunk."""
    futures = parallel_pool.parallel_loop(0, 10, lambda lo, hi: hi - lo, n_chunks=3)
    assert [f.result() for f in futures] == [3, 3, 4]


def test_shutdown_allows_reuse(parallel_pool):
    """A shut-down pool starts a new executor on the next dispatch."""
    parallel_pool.run_loop(0, 16, lambda lo, hi: None)
    parallel_pool.shutdown()
    futures = parallel_pool.parallel_loop(0, 8, lambda lo, hi: lo)
    assert [f.result() for f in futures] == [0, 2, 4, 6]


# ------------------------------------------------------------------
# Shared pool
# ------------------------------------------------------------------


def test_shared_pool_is_created_once():
    """get_thread_pool returns the same pool on every call."""
    assert get_thread_pool() is get_thread_pool()


def test_set_thread_pool_returns_previous():
    """Installing a pool hands back the old one."""
    pool = ThreadPool(thread_level=1, min_parallel_size=1)
    shared = get_thread_pool()
    assert set_thread_pool(pool) is shared
    assert get_thread_pool() is pool


def test_thread_pool_override_restores():
    """The override is undone on exit, even after an error."""
    original = get_thread_pool()
    pool = ThreadPool(thread_level=5, min_parallel_size=1)
    with pytest.raises(KeyError):
        with thread_pool_override(pool) as active:
            assert active is pool
            assert get_thread_pool() is pool
            raise KeyError("stop")
    assert get_thread_pool() is original
