"""Logging setup for the taskboard CLI and API server.

Everything under the ``taskboard`` logger namespace goes to a rotating log
file, and optionally to stderr. Settings come from the ``logging`` section
of taskboard.yaml; TASKBOARD_LOG_DIR and TASKBOARD_LOG_LEVEL fill in
whatever the file leaves unset.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from taskboard.config import LoggingConfig

ROOT_LOGGER = "taskboard"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(settings: LoggingConfig, verbose: bool = False) -> int:
    """Effective numeric level: verbose, then config, then environment."""
    if verbose:
        return logging.DEBUG
    name = settings.level or os.environ.get("TASKBOARD_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def resolve_log_path(settings: LoggingConfig) -> Path:
    log_dir = settings.dir or os.environ.get("TASKBOARD_LOG_DIR") or DEFAULT_LOG_DIR
    return Path(log_dir) / settings.file


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    settings: LoggingConfig | None = None,
    *,
    verbose: bool = False,
    console: bool | None = None,
    also: Iterable[str] = (),
) -> logging.Logger:
    """Attach file and console handlers to the taskboard logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        settings: Logging section of the loaded config; defaults apply when None.
        verbose: Force DEBUG level regardless of the configured level.
        console: Override ``settings.console`` for this process.
        also: Further logger names (e.g. ``uvicorn.error``) that should
            write through the same handlers.

    Returns:
        The ``taskboard`` logger.
    """
    if settings is None:
        from taskboard.config import LoggingConfig  # noqa: PLC0415

        settings = LoggingConfig()

    level = resolve_level(settings, verbose)
    log_path = resolve_log_path(settings)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    ]
    if settings.console if console is None else console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in (ROOT_LOGGER, *also):
        target = logging.getLogger(name)
        _reset_handlers(target)
        target.setLevel(level)
        for handler in handlers:
            target.addHandler(handler)
        if name != ROOT_LOGGER:
            target.propagate = False

    logger = logging.getLogger(ROOT_LOGGER)
    logger.debug("Logging to %s at %s", log_path, logging.getLevelName(level))
    return logger
