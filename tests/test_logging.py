"""Tests for the logging helpers."""

from __future__ import annotations

import logging

import pytest

from callsense.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_root_level():
    root = logging.getLogger()
    previous = root.level
    yield root
    root.setLevel(previous)


def test_explicit_level_applies_after_modules_configured_logging(restore_root_level):
    get_logger("callsense.example")

    configure_logging("debug")
    assert restore_root_level.level == logging.DEBUG

    configure_logging(logging.ERROR)
    assert restore_root_level.level == logging.ERROR


def test_configure_without_level_keeps_the_current_level(restore_root_level):
    configure_logging("WARNING")

    configure_logging()
    get_logger("callsense.other")

    assert restore_root_level.level == logging.WARNING


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("chatty")


def test_http_client_loggers_stay_quiet():
    get_logger()

    for name in ("httpx", "httpcore", "openai"):
        assert logging.getLogger(name).level == logging.WARNING


def test_default_logger_name():
    assert get_logger().name == "callsense"
