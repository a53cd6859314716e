"""Logging setup for the finder's log stream."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "ROMFINDER_LOG_LEVEL"
PACKAGE_LOGGER = "rom_finder"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_handler_installed = False


def resolve_level(level: str | int | None) -> int:
    """Map a level name or number to a ``logging`` level; unknown names mean INFO."""

    if level is None or isinstance(level, bool):
        return logging.INFO
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    named = logging.getLevelName(text.upper())
    return named if isinstance(named, int) else logging.INFO


def configure_logging(level: Optional[str | int] = None, *, force: bool = False) -> int:
    """Set the ``rom_finder`` level, installing the root handler on first use.

    Dataset loads and searches run on a background worker, so their progress
    is only visible through the log stream. ``ROMFINDER_LOG_LEVEL`` is used
    when ``level`` is not given. The root handler is installed once (again
    with ``force``); every call applies its level to the package logger, so
    a command line override wins over the environment.
    """

    global _handler_installed

    resolved = resolve_level(level if level is not None else os.environ.get(LOG_LEVEL_ENV))
    if force or not _handler_installed:
        logging.basicConfig(level=resolved, format=_DEFAULT_FORMAT, force=force)
        _handler_installed = True

    logging.getLogger(PACKAGE_LOGGER).setLevel(resolved)
    return resolved


__all__ = ["LOG_LEVEL_ENV", "PACKAGE_LOGGER", "configure_logging", "resolve_level"]
