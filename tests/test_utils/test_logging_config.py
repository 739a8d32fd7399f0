"""
Tests for the package logging helpers.
"""

import logging

import pytest

from frame_analytics.utils.logging_config import PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture
def package_logger():
    """Restore the package logger after the test."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_get_logger_is_child_of_package():
    """Module loggers propagate to the package logger."""
    logger = get_logger("frame_analytics.algorithms.kmeans")
    assert logger.parent.name.startswith(PACKAGE_LOGGER)


def test_setup_logging_sets_level(package_logger):
    """The requested level is applied to the package logger."""
    setup_logging("debug")
    assert package_logger.level == logging.DEBUG


def test_setup_logging_is_idempotent(package_logger):
    """Repeated setup does not stack handlers."""
    setup_logging("INFO")
    count = len(package_logger.handlers)
    setup_logging("WARNING")
    assert len(package_logger.handlers) == count
    assert package_logger.level == logging.WARNING


def test_setup_logging_defaults_to_config(package_logger, monkeypatch):
    """Without a level the configured one is used."""
    from frame_analytics.config import config

    monkeypatch.setattr(config.logging, "level", "ERROR")
    setup_logging()
    assert package_logger.level == logging.ERROR


def test_library_logs_reach_caplog(caplog):
    """Records from package modules can be captured."""
    with caplog.at_level(logging.INFO, logger=PACKAGE_LOGGER):
        get_logger("frame_analytics.tests").info("hello %s", "world")
    assert "hello world" in caplog.text


def test_setup_logging_reuses_its_own_handler(package_logger):
    """Only the handler installed by setup_logging is reused, never a foreign one."""
    foreign = logging.StreamHandler()
    package_logger.addHandler(foreign)

    def streams():
        return [
            h for h in package_logger.handlers
            if isinstance(h, logging.StreamHandler) and h is not foreign
        ]

    setup_logging("INFO")
    ours = streams()
    assert len(ours) == 1

    package_logger.removeHandler(ours[0])
    setup_logging("INFO")
    assert streams() == ours
    assert foreign.level == logging.NOTSET
