"""
Logging setup for SaaSBoard.

Loggers are wrapped in ``ContextLogger`` so call sites can attach a ``data``
dict. Request, user and stream ids live in context variables and are stamped
onto every record by the formatters.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
stream_id_ctx: ContextVar[Optional[str]] = ContextVar("stream_id", default=None)

_CONTEXT_VARS = (request_id_ctx, user_id_ctx, stream_id_ctx)

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _context_fields() -> Dict[str, str]:
    """Non-empty context ids, keyed by variable name."""
    fields = {}
    for var in _CONTEXT_VARS:
        value = var.get()
        if value:
            fields[var.name] = value
    return fields


def _record_data(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    return getattr(record, "data", None) or None


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        data = _record_data(record)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line colored output for local development."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        color = self.LEVEL_COLORS.get(record.levelname, "")
        short_request_id = (request_id_ctx.get() or "-")[:8]

        parts = [
            stamp,
            f"{color}{record.levelname:<8}{self.RESET}",
            short_request_id,
            record.name,
            record.getMessage(),
        ]
        data = _record_data(record)
        if data:
            parts.append(" ".join(f"{key}={value}" for key, value in data.items()))

        line = " | ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class ContextLogger(logging.LoggerAdapter):
    """Adapter turning ``logger.info(msg, data={...})`` into a record attribute."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        data = kwargs.pop("data", None)
        if data is not None:
            kwargs["extra"] = {**kwargs.get("extra", {}), "data": data}
        return msg, kwargs


_loggers: Dict[str, ContextLogger] = {}


def get_logger(name: str) -> ContextLogger:
    """Return the (cached) ``ContextLogger`` for ``name``."""
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = ContextLogger(logging.getLogger(name), {})
    return logger


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Install handlers on the root logger, replacing any existing ones.

    Stdout gets JSON or console lines depending on ``json_output``; the
    optional ``log_file`` always receives JSON.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(StructuredFormatter() if json_output else ConsoleFormatter())
    root.addHandler(stdout)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
