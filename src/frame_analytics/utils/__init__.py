"""Utility modules for Frame Analytics."""

from .logging_config import get_logger, setup_logging
from .thread_pool import (
    PARALLEL_LEVEL_FLOOR,
    ThreadPool,
    get_thread_pool,
    partition_range,
    set_thread_pool,
    thread_pool_override,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "PARALLEL_LEVEL_FLOOR",
    "ThreadPool",
    "get_thread_pool",
    "partition_range",
    "set_thread_pool",
    "thread_pool_override",
]
