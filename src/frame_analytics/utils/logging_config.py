"""
Logging helpers for Frame Analytics.

Library modules obtain loggers through ``get_logger(__name__)``. Nothing is
printed unless the application (or a script) calls ``setup_logging()``.
"""

import logging
from typing import Optional, Union

PACKAGE_LOGGER = "frame_analytics"
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_package_logger = logging.getLogger(PACKAGE_LOGGER)
_package_logger.addHandler(logging.NullHandler())

# Stream handler installed by setup_logging(), if any
_stream_handler: Optional[logging.Handler] = None


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for a module of this package.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        logging.Logger
    """
    return logging.getLogger(name)


def setup_logging(
    level: Optional[Union[str, int]] = None,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Calling this more than once replaces the level but never stacks handlers.

    Args:
        level: Level name or number; defaults to ``config.logging.level``
        fmt: Log record format string

    Returns:
        The configured package logger
    """
    global _stream_handler

    if level is None:
        from ..config import config

        level = config.logging.level
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    if _stream_handler is None:
        _stream_handler = logging.StreamHandler()
    handler = _stream_handler
    if handler not in logger.handlers:
        logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level)
    return logger
