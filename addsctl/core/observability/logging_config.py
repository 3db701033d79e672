"""
Logging configuration — central setup for all entrypoints.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config, and
components that accept an explicit ``log`` argument can be handed a
child of the operation's logger instead.

Levels are resolved in precedence order:
    CLI flag  >  ADDSCTL_LOG_LEVEL env var  >  addsctl.yml  >  WARNING

Level → channel mapping:
    DEBUG, INFO, SUCCESS  → stdout
    WARNING and above     → stderr

Optional file output via --log-file / ADDSCTL_LOG_FILE. File lines look
like ``[2024-05-01 13:37:00] [INFO] message``.
"""

from __future__ import annotations

import logging
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

# ── Format strings ──────────────────────────────────────────────

# WARNING level: message only
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped
_FMT_VERBOSE = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: logger name and line number
_FMT_DEBUG = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: full date, level, message
_FMT_FILE = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")


class _MaxLevelFilter(logging.Filter):
    """Pass only records strictly below a level."""

    def __init__(self, below: int):
        super().__init__()
        self._below = below

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self._below


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= SUCCESS:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None
    formatter = logging.Formatter(fmt, datefmt=datefmt)

    # ── Console handlers (stdout below WARNING, stderr above) ───
    out = logging.StreamHandler(sys.stdout)
    out.setLevel(numeric_level)
    out.addFilter(_MaxLevelFilter(logging.WARNING))
    out.setFormatter(formatter)

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(max(numeric_level, logging.WARNING))
    err.setFormatter(formatter)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.addHandler(out)
    root.addHandler(err)

    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
