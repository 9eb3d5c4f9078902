# termflex/log.py
"""
Logging setup for termflex.

Levels follow the configuration vocabulary: trace, debug, info, warn,
error and none (default warn). ``trace`` is registered as a custom level
below DEBUG. Resolution order, highest first:

    1. Explicit ``level`` argument
    2. TERMFLEX_LOG_LEVEL environment variable
    3. WARNING

Usage:
    from termflex.log import configure_logging
    configure_logging("debug")
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER = "termflex"

LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "none": logging.CRITICAL + 10,
}

VALID_LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "none")

_FILE_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"


def resolve_level(level: Optional[Union[str, int]] = None) -> int:
    """Map a configuration level name (or a numeric level) to a logging level."""
    if level is None or level == "":
        level = os.environ.get("TERMFLEX_LOG_LEVEL", "warn")
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[str(level).lower()]
    except KeyError:
        raise ValueError(
            f"invalid log level: {level!r} (must be one of: {', '.join(VALID_LOG_LEVELS)})"
        ) from None


def trace(logger: logging.Logger, msg: str, *args) -> None:
    """Log at TRACE level."""
    if logger.isEnabledFor(TRACE):
        logger.log(TRACE, msg, *args)


def configure_logging(
    level: Optional[Union[str, int]] = None,
    console: Optional[Console] = None,
    log_file: Optional[Union[str, Path]] = None,
    full_screen: bool = False,
) -> logging.Logger:
    """
    Configure the ``termflex`` logger tree.

    :param level: Level name from the configuration vocabulary, or a number.
    :param console: Rich console for the handler (stderr by default).
    :param log_file: Write plain-text records here instead of the console.
                     Used while the full-screen loop owns the terminal.
    :param full_screen: The terminal is drawn by a live screen; without
                        ``log_file`` records are dropped rather than
                        written over it.
    :return: The configured ``termflex`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    numeric = resolve_level(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(str(log_file), encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    elif full_screen:
        handler = logging.NullHandler()
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    handler.setLevel(numeric)
    logger.addHandler(handler)
    logger.setLevel(numeric)
    logger.propagate = False
    return logger


__all__ = ["TRACE", "LOG_LEVELS", "VALID_LOG_LEVELS", "resolve_level", "trace", "configure_logging"]
