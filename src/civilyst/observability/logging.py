"""Structured logging with request correlation.

Production runs emit one JSON object per line; development runs use a
compact single-line console format. Either way each record carries the
request, correlation and user ids of the request that produced it, plus
any ``extra`` fields the caller passed (cache keys, campaign ids, triggers).

Usage:
    configure_logging(json_format=True, level="INFO")

    with log_context(request_id="req-1", user_id="u1"):
        logger.warning("Cache read failed", extra={"cache_key": key})
"""

from __future__ import annotations

import contextvars
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import orjson

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="")

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "request_id": request_id_var,
    "correlation_id": correlation_id_var,
    "user_id": user_id_var,
}

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.INFO,
    "asyncio": logging.WARNING,
}


def current_context() -> dict[str, str]:
    """Correlation ids set for the running task."""
    return {name: value for name, var in _CONTEXT_VARS.items() if (value := var.get())}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


@contextmanager
def log_context(**values: str) -> Iterator[None]:
    """Set correlation ids for the duration of a block.

    Only ``request_id``, ``correlation_id`` and ``user_id`` are recognized.
    Previous values are restored on exit, so blocks nest.
    """
    tokens = [
        (_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(value))
        for name, value in values.items()
        if name in _CONTEXT_VARS
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    {"ts": "...", "level": "WARNING", "logger": "civilyst.cache.accessor",
     "msg": "Cache read failed ...", "request_id": "...", "cache_key": "search:q=park"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(current_context())
        entry.update(_extra_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exc_type"] = record.exc_info[0].__name__
            entry["traceback"] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """Readable single-line format for development.

    12:34:56 WARNING civilyst.cache.accessor: Cache read failed [req=1a2b3c4d cache_key=...]
    """

    _LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {record.levelname:<7} {record.name}: {record.getMessage()}"

        fields = current_context()
        if "request_id" in fields:
            fields["req"] = fields.pop("request_id")[:8]
        fields.pop("correlation_id", None)
        fields.update({k: str(v) for k, v in _extra_fields(record).items()})
        if fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        color = self._LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{line}\033[0m" if color else line


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_format: JSON lines (production) instead of the console format
        level: Root log level name
        use_colors: Colorize console output when stderr is a terminal
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter(use_colors))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
