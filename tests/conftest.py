"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import numpy as np
import pytest

from frame_analytics.utils.thread_pool import ThreadPool, set_thread_pool


@pytest.fixture
def rng():
    """Deterministic random generator for test data."""
    return np.random.default_rng(42)


@pytest.fixture
def sequential_pool():
    """
    Pool whose concurrency level never passes the parallel gate.
    """
    pool = ThreadPool(thread_level=1, min_parallel_size=1)
    yield pool
    pool.shutdown()


@pytest.fixture
def parallel_pool():
    """
    Pool that dispatches anything with 8 or more elements in parallel.

    Small inputs still exercise the chunked path without making tests slow.
    """
    pool = ThreadPool(thread_level=4, min_parallel_size=8)
    yield pool
    pool.shutdown()


@pytest.fixture(autouse=True)
def isolated_shared_pool():
    """
    Make sure no test leaks a shared pool into the next one.
    """
    previous = set_thread_pool(None)
    yield
    leaked = set_thread_pool(previous)
    if leaked is not None and leaked is not previous:
        leaked.shutdown()
