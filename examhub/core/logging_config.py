"""
Logging setup.

Every record passes through RequestIdFilter, which stamps it with the id of
the request being served ("-" outside a request). Development output is one
readable line per record; production output is one JSON object per record
carrying the execution/plan/user context that services pass via ``extra``.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from examhub.core.config import settings

# Set by RequestLoggingMiddleware for the duration of a request
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Request fields logged by RequestLoggingMiddleware
REQUEST_FIELDS = ("method", "path", "status_code", "duration_ms")

# Domain context passed by services, the analytics tracker and error handlers
CONTEXT_FIELDS = ("execution_id", "plan_id", "user_id", "error_id", "event_data")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the current request id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_context.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        for field in REQUEST_FIELDS + CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def build_logging_config(level_name: str, json_output: bool) -> Dict[str, Any]:
    """dictConfig for the given level and output style."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "filters": ["request_id"],
                "formatter": "json" if json_output else "text",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "examhub": {"level": level, "handlers": ["console"], "propagate": False},
            # RequestLoggingMiddleware already logs every request
            "uvicorn.access": {"level": logging.WARNING},
            "sqlalchemy.engine": {"level": logging.WARNING},
        },
    }


def setup_logging() -> None:
    """Configure logging from settings. JSON output in production."""
    logging.config.dictConfig(
        build_logging_config(settings.LOG_LEVEL, settings.ENV == "production")
    )
