"""
Logging configuration: one setup call per process.

main.py hands over the global CLI flags; everything else comes from
the environment. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Console level, in precedence order:
    --debug / --verbose / --quiet  >  TOOLSYNC_LOG_LEVEL  >  WARNING

A second, file-only handler is attached when TOOLSYNC_LOG_FILE is set.
Its level is TOOLSYNC_LOG_FILE_LEVEL, else the console level.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

ENV_LEVEL = "TOOLSYNC_LOG_LEVEL"
ENV_FILE = "TOOLSYNC_LOG_FILE"
ENV_FILE_LEVEL = "TOOLSYNC_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

_CONSOLE_FORMATS = (
    # (max level, format, datefmt), first match wins
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_FMT_MINIMAL = "%(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def setup_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> int:
    """Configure the root logger from the global CLI flags and env.

    Returns the numeric console level.
    """
    env = os.environ if env is None else env
    console_level = _parse_level(resolve_level(debug, verbose, quiet, env))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))
    effective_level = console_level

    log_file = env.get(ENV_FILE)
    if log_file:
        file_level = _parse_level(env.get(ENV_FILE_LEVEL)) if env.get(ENV_FILE_LEVEL) else console_level
        root.addHandler(_file_handler(Path(log_file), file_level))
        effective_level = min(effective_level, file_level)

    root.setLevel(effective_level)

    if not debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False
    return console_level


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from CLI flags, then TOOLSYNC_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if env is None else env
    return env.get(ENV_LEVEL, "WARNING").upper()


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _FMT_MINIMAL, None
    for ceiling, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= ceiling:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
    return handler


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
