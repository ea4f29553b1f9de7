# src/config/logging_config.py

"""Logging for one pharma_search session.

A session gets its own file under ``Settings.LOGS_DIR``, so one log holds
the mode probes, fallbacks and cache failures of a single search session
in order.  The terminal only shows warnings and errors, because stdout
carries JSON results in CLI mode and the TUI owns the screen.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER = "pharma_search"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configured(
    handler: logging.Handler, level: int, fmt: str,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    return handler


def setup_logging() -> Path:
    """Attach the session file and stderr handlers to ``pharma_search``.

    Returns the path of this session's log file.  The handlers are only
    attached once per process; later calls just compute a fresh path.
    """
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    session = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = Settings.LOGS_DIR / f"run_{session}.log"

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    if root.handlers:
        return log_file

    root.addHandler(_configured(
        logging.FileHandler(log_file, encoding="utf-8"),
        logging.DEBUG,
        _FILE_FORMAT,
    ))
    root.addHandler(_configured(
        logging.StreamHandler(sys.stderr),
        logging.WARNING,
        _STDERR_FORMAT,
    ))
    root.info("Session log: %s", log_file)
    return log_file
