# flowpatch/utils/logger.py
from __future__ import annotations

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT = "flowpatch"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ANSI = (
    (logging.ERROR, "\033[91m"),    # red
    (logging.WARNING, "\033[93m"),  # yellow
    (logging.INFO, "\033[92m"),     # green
)

_SECRET_KEYS = re.compile(r"^(authorization|x-n8n-api-key|password|token|secret|api_key|apikey)$", re.I)
_SECRET_SHAPES = [
    (re.compile(r"(X-N8N-API-KEY=)(\S+)", re.I), r"\1***"),
    (re.compile(r"(Authorization: )(\S+)", re.I), r"\1***"),
    (re.compile(r"(api_key|token|password|apikey|secret)(\"?\s*[:=]\s*\"?)([^\"\s]+)", re.I), r"\1\2***"),
]


def redact(value: Any) -> Any:
    """
    Mask credentials before they reach a log line.

    Dict keys that name a secret are replaced wholesale; strings are scrubbed
    for `key=value` / `Authorization: ...` shapes. Other values pass through.
    """
    if isinstance(value, str):
        for pattern, repl in _SECRET_SHAPES:
            value = pattern.sub(repl, value)
        return value
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if hasattr(value, "items"):
        return {
            k: ("***" if _SECRET_KEYS.match(str(k)) else redact(v))
            for k, v in value.items()
        }
    return value


class _RedactingFilter(logging.Filter):
    """Last line of defence: scrub the rendered message of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if not sys.stdout.isatty():
            return text
        for threshold, code in _ANSI:
            if record.levelno >= threshold:
                return f"{code}{text}\033[0m"
        return text


def _env_level(default: str = "INFO") -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", default).upper())
    return level if isinstance(level, int) else logging.INFO


def init_logger(
    name: str = ROOT,
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowpatch.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    (Re)configure a logger:
      - colored stdout handler
      - rotating file handler when LOG_DIR (or log_dir) is set
    Both handlers redact secrets.
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level())

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(_ColorFormatter(fmt=_FORMAT, datefmt=_DATEFMT))
    handlers: list[logging.Handler] = [stream]

    log_dir = log_dir or os.getenv("LOG_DIR")
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            filename=str(directory / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        rotating.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
        handlers.append(rotating)

    for handler in handlers:
        handler.setLevel(logger.level)
        handler.addFilter(_RedactingFilter())
        logger.addHandler(handler)
    return logger


log = init_logger()


def get_logger(child: str) -> logging.Logger:
    """Child of the project logger, e.g. get_logger("store") -> flowpatch.store."""
    return logging.getLogger(ROOT).getChild(child)
