"""JSON logging with per-run context fields."""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("lumina_log_context", default={})

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class ContextFilter(logging.Filter):
    """Stamp the service name and the fields bound by :func:`log_context`."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - inherited docstring
        for key, value in _LOG_CONTEXT.get().items():
            # Explicit ``extra`` values win over the bound context.
            if key not in _RECORD_ATTRS and not hasattr(record, key):
                setattr(record, key, value)
        if getattr(record, "service", None) is None:
            record.service = self.service_name
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited docstring
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or value is None:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def setup_logging(service_name: str, level: str | int | None = None) -> None:
    """Route the root and uvicorn loggers through one JSON stdout handler.

    ``LUMINA_LOG_LEVEL`` is used when ``level`` is not given.
    """

    level = level or os.getenv("LUMINA_LOG_LEVEL", "INFO").upper()
    handlers = ["default"]
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": "lumina_observability.logging.JsonFormatter"}},
            "filters": {
                "context": {
                    "()": "lumina_observability.logging.ContextFilter",
                    "service_name": service_name,
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "json",
                    "filters": ["context"],
                }
            },
            "root": {"level": level, "handlers": handlers},
            "loggers": {
                "uvicorn": {"handlers": handlers, "level": level, "propagate": False},
                "uvicorn.access": {"handlers": handlers, "level": level, "propagate": False},
                "httpx": {"level": "WARNING"},
            },
        }
    )


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind fields such as ``run_id`` or ``project_id`` to every log line in the block.

    A ``None`` value unbinds the field for the duration of the block.
    """

    updated = dict(_LOG_CONTEXT.get())
    for key, value in kwargs.items():
        if value is None:
            updated.pop(key, None)
        else:
            updated[key] = value
    token = _LOG_CONTEXT.set(updated)
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)
