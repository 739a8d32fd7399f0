"""
Configuration management for Frame Analytics.

Loads configuration from environment variables (typically from a .env file).
Uses python-dotenv to load .env automatically.

Usage:
    from frame_analytics.config import config

    # Concurrency settings consulted by the parallel gate
    level = config.parallel.thread_level

    # Logging level used by setup_logging()
    log_level = config.logging.level
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Look for .env in project root (parent of src/)
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


THREAD_LEVEL_ENV = "FRAME_ANALYTICS_THREAD_LEVEL"
PARALLEL_THRESHOLD_ENV = "FRAME_ANALYTICS_PARALLEL_THRESHOLD"
LOG_LEVEL_ENV = "FRAME_ANALYTICS_LOG_LEVEL"

DEFAULT_PARALLEL_THRESHOLD = 150_000
DEFAULT_LOG_LEVEL = "WARNING"


def _int_from_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to *default*."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(
            f"Environment variable {name} must be an integer, got {raw!r}"
        ) from e


@dataclass
class ParallelConfig:
    """Settings for the shared worker pool and its dispatch gate."""
    thread_level: int
    min_parallel_size: int = DEFAULT_PARALLEL_THRESHOLD

    def __post_init__(self):
        """Validate concurrency settings."""
        if self.thread_level < 1:
            raise ValueError(
                f"thread_level must be >= 1, got {self.thread_level}"
            )
        if self.min_parallel_size < 1:
            raise ValueError(
                f"min_parallel_size must be >= 1, got {self.min_parallel_size}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        """Normalize and validate the level name."""
        self.level = (self.level or DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(self.level), int):
            raise ValueError(f"Unknown log level: {self.level}")


class Config:
    """
    Application configuration loaded from environment variables.

    Environment variables can be set:
    1. In a .env file in the project root
    2. In the system environment
    3. In a container/deployment environment
    """

    def __init__(self):
        """Load configuration from environment."""
        self.parallel = ParallelConfig(
            thread_level=_int_from_env(THREAD_LEVEL_ENV, os.cpu_count() or 1),
            min_parallel_size=_int_from_env(
                PARALLEL_THRESHOLD_ENV, DEFAULT_PARALLEL_THRESHOLD
            ),
        )
        self.logging = LoggingConfig(
            level=os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)
        )

    def reload(self) -> None:
        """Re-read every setting from the environment."""
        self.__init__()


# Global config instance
config = Config()


def get_parallel_config(override: Optional[ParallelConfig] = None) -> ParallelConfig:
    """
    Return the parallel settings to use.

    Args:
        override: Explicit settings; when omitted the global config is used

    Returns:
        ParallelConfig
    """
    return override if override is not None else config.parallel
