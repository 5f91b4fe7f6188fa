"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  DEVDUCK_LOG_LEVEL env var  >  WARNING (default)

Optional file output via DEVDUCK_LOG_FILE / DEVDUCK_LOG_FILE_LEVEL env
vars; ``install`` also logs to ``.cache/install.log`` at INFO.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

# WARNING level — minimal, no noise
_FMT_MINIMAL = "%(message)s"

# INFO level — timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output — always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
    """
    numeric_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(_console_formatter(numeric_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    if log_file:
        add_file_handler(log_file, log_file_level or level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def add_file_handler(log_file: str | Path, level: str = "INFO") -> logging.Handler:
    """Attach a detailed file handler to the root logger.

    The root level is lowered if needed so the file sees everything at
    ``level`` while the console keeps its own threshold.
    """
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_level = _parse_level(level)

    fh = logging.FileHandler(path, encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))

    root = logging.getLogger()
    root.addHandler(fh)
    root.setLevel(min(root.level or logging.WARNING, file_level))
    return fh


def _console_formatter(numeric_level: int) -> logging.Formatter:
    """Pick the console format for a level: more context the lower it goes."""
    if numeric_level <= logging.DEBUG:
        return logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_DEBUG)
    if numeric_level <= logging.INFO:
        return logging.Formatter(_FMT_VERBOSE, datefmt=_DATEFMT_VERBOSE)
    return logging.Formatter(_FMT_MINIMAL)


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
