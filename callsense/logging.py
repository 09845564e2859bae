"""Logging setup shared by the CLI and the library modules."""

from __future__ import annotations

import logging
from typing import Optional, Union

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# HTTP clients log each request at INFO, query-string API keys included.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")

_LOGGER_CONFIGURED = False


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(level: Union[int, str, None] = None) -> None:
    """Install the console format once and apply ``level`` to the root logger.

    Modules call this without a level when they import ``get_logger``, which
    sets INFO. A command that later passes ``Settings.log_level`` changes the
    root level without installing a second handler.
    """

    global _LOGGER_CONFIGURED
    if not _LOGGER_CONFIGURED:
        logging.basicConfig(format=_FORMAT)
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        _LOGGER_CONFIGURED = True
        if level is None:
            level = logging.INFO

    if level is not None:
        logging.getLogger().setLevel(_resolve_level(level))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "callsense")


__all__ = ["configure_logging", "get_logger"]
