"""Logging configuration with structured JSON formatter.

This module provides a JSON formatter and a `logging.config.dictConfig`
configuration for hosts embedding the connector runtime. Every module logs
through a standard library logger named after its module; structured context
(connector name, endpoint, status code, attempt number) is passed with the
`extra` parameter and flattened into the JSON document by the formatter.
"""

import json
import logging
import logging.config
from typing import Any

# Attribute names whose values must never reach a log sink.
REDACTED_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "access_key",
        "secret_key",
        "session_token",
        "credential",
        "authorization",
        "pemfile_contents",
    }
)

REDACTED_VALUE = "***"

# Standard LogRecord attributes to exclude (already handled or internal)
_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "taskName",
        "invocation",
        "error",
    }
)


class CustomJSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging.

    This formatter converts log records to JSON format, including:
    - Standard log fields (time, level, message, etc.)
    - Invocation context (connector, endpoint, method, status code)
    - Error information with the formatted traceback
    - All extra attributes passed via the extra parameter
    """

    def __init__(self, fmt: str) -> None:
        """Initialize the formatter.

        Args:
            fmt: Format string (used for asctime, but output is JSON).
        """
        logging.Formatter.__init__(self, fmt)

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON string representation of the log record.
        """
        logging.Formatter.format(self, record)
        return json.dumps(self.get_log(record), indent=None, default=str)

    def get_log(self, record: logging.LogRecord) -> dict[str, Any]:
        """Extract log data from record into a dictionary.

        Args:
            record: The log record to extract data from.

        Returns:
            Dictionary containing log data.
        """
        d: dict[str, Any] = {
            "time": record.asctime,
            "process_name": record.processName,
            "process_id": record.process,
            "thread_name": record.threadName,
            "thread_id": record.thread,
            "level": record.levelname,
            "logger_name": record.name,
            "pathname": record.pathname,
            "line": record.lineno,
            "message": record.message,
        }

        # Invocation context: {"connector": ..., "endpoint": ..., "method": ...}
        invocation = getattr(record, "invocation", None)
        if isinstance(invocation, dict):
            for key in ("connector", "protocol", "endpoint", "method", "status_code", "since"):
                value = invocation.get(key)
                if value is not None:
                    d[key] = value

        error_data = getattr(record, "error", None)
        if error_data is not None:
            if isinstance(error_data, dict):
                error_dict: dict[str, Any] = error_data.copy()
                if record.exc_info:
                    error_dict["trace"] = self.formatException(record.exc_info)
                d["error"] = error_dict
            else:
                d["error"] = error_data

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            d[key] = REDACTED_VALUE if key in REDACTED_ATTRIBUTES else value

        return d


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,  # Keep existing loggers, just configure them
    "formatters": {
        "standard": {"()": lambda: CustomJSONFormatter(fmt="%(asctime)s")},
    },
    "handlers": {
        "default": {
            "formatter": "standard",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "mlconnect": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "mlconnect.foundation.circuit_breaker": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
        "botocore": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
        "oci": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
}


def configure_logging(level: str | None = None) -> None:
    """Apply `LOGGING_CONFIG` to the running process.

    Args:
        level: Optional level override for the `mlconnect` logger
            (e.g. "DEBUG").
    """
    logging.config.dictConfig(LOGGING_CONFIG)
    if level is not None:
        logging.getLogger("mlconnect").setLevel(level.upper())
