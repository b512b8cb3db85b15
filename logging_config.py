"""Logging setup for the Jobbers client.

- File log: UTF-8 rotating file, on by default (``logs/jobbers.log``).
- Console log: off unless asked for; the CLI turns it on so lifecycle
  callbacks are visible while playing.
- Repeated calls reuse the named handlers instead of stacking new ones.

Usage:
    from logging_config import setup_logging
    setup_logging(enable_console=True)

Environment overrides:
    JOBBERS_LOG_LEVEL=DEBUG|INFO|WARNING|ERROR
    JOBBERS_LOG_FILE=path/to/file.log
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_FILE_HANDLER_NAME = "jobbers_file"
_CONSOLE_HANDLER_NAME = "jobbers_console"
_DEFAULT_LOG_PATH = Path("logs") / "jobbers.log"

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 第三方库的帧级日志太吵
_NOISY_LOGGERS = ("websockets", "asyncio")


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = (level or "").strip().upper()
    return logging._nameToLevel.get(name, logging.INFO) if name else logging.INFO


def _find_handler(root: logging.Logger, name: str) -> logging.Handler | None:
    for handler in root.handlers:
        if getattr(handler, "name", "") == name:
            return handler
    return None


def _resolve_log_path(log_file: str | None) -> Path:
    path = Path(log_file) if log_file else _DEFAULT_LOG_PATH
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def _install_file_handler(
    root: logging.Logger, path: Path, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = _find_handler(root, _FILE_HANDLER_NAME)
    if handler is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            str(path), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        handler.name = _FILE_HANDLER_NAME
        root.addHandler(handler)
    return handler


def _install_console_handler(root: logging.Logger) -> logging.Handler:
    handler = _find_handler(root, _CONSOLE_HANDLER_NAME)
    if handler is None:
        handler = logging.StreamHandler()
        handler.name = _CONSOLE_HANDLER_NAME
        root.addHandler(handler)
    return handler


def setup_logging(
    *,
    level: str | int = "INFO",
    log_file: str | None = None,
    enable_file: bool = True,
    enable_console: bool = False,
    console_level: str | int = "WARNING",
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the root logger and return it.

    ``level`` applies to the file handler, ``console_level`` to the console
    handler. The root logger itself stays at DEBUG so each handler filters.
    """
    level = os.environ.get("JOBBERS_LOG_LEVEL") or level
    log_file = os.environ.get("JOBBERS_LOG_FILE") or log_file

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = _resolve_log_path(log_file) if enable_file else None
    if log_path is not None:
        handler = _install_file_handler(root, log_path, max_bytes, backup_count)
        handler.setFormatter(formatter)
        handler.setLevel(_parse_level(level))

    if enable_console:
        handler = _install_console_handler(root)
        handler.setFormatter(formatter)
        handler.setLevel(_parse_level(console_level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized | level=%s file=%s console=%s",
        level,
        log_path,
        enable_console,
    )
    return root
