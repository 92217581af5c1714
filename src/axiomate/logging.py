"""Package logger for axiomate.

Everything logs under the ``axiomate`` logger tree. `setup_logging` attaches
at most one handler: a file handler when a log path is configured (or given
through ``AXIOMATE_LOG``), otherwise a stderr handler when stderr is a
terminal. Piped stderr gets no handler.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from axiomate.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_ENV_VAR = "AXIOMATE_LOG"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

logger = logging.getLogger("axiomate")

_configured = False


def resolve_level(name: str | None, default: int = logging.INFO) -> int:
    """Map a level name from config to a logging level constant.

    Accepts the stdlib names, ``WARN``, and the custom ``TRACE``/``VERBOSE``
    levels in any case. Unknown names fall back to `default`.
    """
    if not name:
        return default
    key = name.strip().upper()
    if key == "WARN":
        key = "WARNING"
    level = logging.getLevelName(key)
    return level if isinstance(level, int) else default


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")


def _file_handler(path: str) -> logging.Handler | None:
    target = Path(path).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, mode="a", encoding="utf-8")
    except OSError as exc:
        if sys.stderr.isatty():
            print(f"[axiomate] cannot open log file {target}: {exc}", file=sys.stderr)
        return None
    handler.setFormatter(_formatter())
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter())
    return handler


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the axiomate logger once; later calls do nothing.

    Args:
        config: Optional LoggingConfig. ``config.file`` wins over the
            ``AXIOMATE_LOG`` environment variable.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = resolve_level(config.level if config else None)
    logger.setLevel(level)

    path = (config.file if config else None) or os.environ.get(LOG_ENV_VAR)
    handler = _file_handler(path) if path else None
    if handler is None and sys.stderr.isatty():
        handler = _console_handler()
    if handler is None:
        return

    handler.setLevel(level)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child such as ``axiomate.llm``."""
    return logger.getChild(name) if name else logger
