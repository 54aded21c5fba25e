"""Logging setup for hosts embedding aicore.

Every aicore module logs through ``logging.getLogger(__name__)``; this module
only decides where those records go. Hosts call :func:`setup_logging` once at
startup.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Iterable

__all__ = ["setup_logging", "get_logger", "get_log_path", "COMPONENT_LOGGERS"]

LOG_FILE_NAME = "aicore.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_DEFAULT_LOG_DIR = Path.home() / ".aicore" / "logs"
_THIRD_PARTY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

# Short names accepted by ``debug_components``.
COMPONENT_LOGGERS: dict[str, str] = {
    "pipeline": "aicore.ai.plugins",
    "tools": "aicore.ai.tools",
    "bridge": "aicore.services",
    "page": "aicore.page",
}

_log_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    debug_components: Iterable[str] = (),
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route records to a rotating ``aicore.log`` and, optionally, stderr.

    The directory is ``log_dir``, else ``$AICORE_LOG_DIR``, else
    ``~/.aicore/logs``. Repeated calls return the first log path unless
    ``force`` is set.

    ``debug_components`` names entries of :data:`COMPONENT_LOGGERS` (or full
    ``aicore.*`` logger names) that emit DEBUG records regardless of
    ``level``; ``("bridge",)`` traces every command envelope.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get("AICORE_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    debug_loggers = [name for name in map(_component_logger, debug_components) if name]
    handler_level = logging.DEBUG if debug_loggers else level
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    third_party_level = max(level, logging.WARNING)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
    for name in debug_loggers:
        logging.getLogger(name).setLevel(logging.DEBUG)

    _log_path = path
    return path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Log file chosen by the last :func:`setup_logging` call, if any."""

    return _log_path


def _component_logger(component: str) -> str | None:
    key = str(component).strip().lower()
    if key in COMPONENT_LOGGERS:
        return COMPONENT_LOGGERS[key]
    return key if key.startswith("aicore") else None
