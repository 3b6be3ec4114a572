# === FILE: site_mirror/logger.py ===
"""Logging setup for **SiteMirror**.

Every module logs through a child of the ``SiteMirror`` logger::

    from site_mirror.logger import get_logger
    log = get_logger("pool")          # -> "SiteMirror.pool"

Records go to stdout and, when a log file is given, to a rotating file as
well.  The CLI calls :func:`init_logging` once per invocation; tests may
call :func:`configure` to attach extra handlers.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Optional, Union

# --------------------------------------------------------------------------- #
# Constants                                                                   #
# --------------------------------------------------------------------------- #

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteMirror"

#: a long crawl writes a line per URL; keep a few rotated files of 5 MB
LOG_FILE_MAX_BYTES: Final[int] = 5 * 1024 * 1024
LOG_FILE_BACKUPS: Final[int] = 3

Level = Union[int, str]


# --------------------------------------------------------------------------- #
# Handlers                                                                    #
# --------------------------------------------------------------------------- #


def _handlers(log_file: Optional[Union[str, Path]], fmt: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(fmt)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def configure(
    *,
    level: Level = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """Set level and handlers of the ``SiteMirror`` logger.

    With *replace_handlers* the previous handlers are closed and removed,
    otherwise the new ones are appended.  Records never propagate to the
    root logger.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    if replace_handlers:
        while root.handlers:
            old = root.handlers[0]
            root.removeHandler(old)
            old.close()
    for handler in _handlers(log_file, log_format):
        root.addHandler(handler)
    root.propagate = False
    return root


def init_logging(
    level: Level = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Fresh configuration for one CLI run."""
    return configure(level=level, log_file=log_file, log_format=log_format)


def get_logger(part: str) -> logging.Logger:
    """Child logger ``SiteMirror.<part>``."""
    return logging.getLogger(f"{LOGGER_NAME}.{part}")


logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "get_logger", "LOGGER_NAME", "DEFAULT_FORMAT"]
