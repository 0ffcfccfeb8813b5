"""
Logging configuration — set up once by the CLI.

Every module does ``logger = logging.getLogger(__name__)`` and
inherits what is configured here. Console level precedence:

    --debug / -v / -q  >  CARCLAW_LOG_LEVEL  >  WARNING

``CARCLAW_LOG_FILE`` adds a file handler (full detail, level from
``CARCLAW_LOG_FILE_LEVEL`` or the console level). The console handler
writes to stderr; stdout is reserved for command output and ``--json``.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LEVEL_ENV = "CARCLAW_LOG_LEVEL"
FILE_ENV = "CARCLAW_LOG_FILE"
FILE_LEVEL_ENV = "CARCLAW_LOG_FILE_LEVEL"

# ── Formats by console level ────────────────────────────────────

_CONSOLE_FORMATS: list[tuple[int, str, str | None]] = [
    # (max level, format, datefmt)
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s: %(message)s", None),
]

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty at DEBUG, irrelevant to an install
_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name.
        log_file: Optional file to also log to.
        log_file_level: Level for the file handler (default: ``level``).
    """
    console_level = parse_level(level)
    fmt, datefmt = next(
        (f, d) for max_level, f, d in _CONSOLE_FORMATS if console_level <= max_level
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else console_level
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LEVEL_ENV, "WARNING")


def setup_from_environment(debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """``setup_logging`` driven by CLI flags and CARCLAW_* env vars."""
    setup_logging(
        level=resolve_level(debug, verbose, quiet),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
    )


def parse_level(level: str | None) -> int:
    """Level name → numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
