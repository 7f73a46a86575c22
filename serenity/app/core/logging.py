"""Logging configuration for the proxy.

Plain-text console logging by default, with an optional JSON formatter for
log aggregation. Request context is passed through ``extra=`` and filled in
with defaults by ``ContextFilter`` so format strings never fail.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from serenity.app.core.config import Settings, settings as default_settings


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as single-line JSON objects.
    """

    # Contextual fields for request tracking
    CONTEXT_FIELDS = [
        "client_key",       # Rate limit key (client IP)
        "path",             # Request path
        "method",           # HTTP method
        "status_code",      # HTTP response status
        "upstream_status",  # Status returned by the completion API
        "duration_ms",      # Upstream call duration in milliseconds
    ]

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "asctime", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {}
        record.message = record.getMessage()

        log_data["timestamp"] = datetime.now().astimezone().isoformat()
        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.message
        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Adds default values for context fields missing from a record."""

    CONTEXT_DEFAULTS = {field: None for field in JSONFormatter.CONTEXT_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config(config: Optional[Settings] = None) -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Args:
        config: Settings to read ``log_level`` and ``log_format`` from,
            defaults to the process settings

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    config = config or default_settings
    log_format = config.log_format.lower()
    log_level = config.log_level.upper()

    formatters: Dict[str, Any] = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s - client_key=%(client_key)s - status_code=%(status_code)s"
        },
    }

    if log_format == "json":
        formatters["json"] = {"()": "serenity.app.core.logging.JSONFormatter"}
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {"()": "serenity.app.core.logging.ContextFilter"},
        },
        "handlers": handlers,
        "loggers": {
            "serenity": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config(config))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "serenity") -> logging.Logger:
    return logging.getLogger(name)
