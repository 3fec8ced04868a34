"""Structured JSON logging configuration (infrastructure layer)."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Context variables for connection tracing
endpoint_id_var: ContextVar[str | None] = ContextVar("endpoint_id", default=None)
namespace_var: ContextVar[str | None] = ContextVar("namespace", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add service from extra or derive from logger name
        log_data["service"] = getattr(record, "service", record.name.split(".")[0])

        # Add context from context variables
        if endpoint_id := endpoint_id_var.get():
            log_data["endpoint_id"] = endpoint_id
        if namespace := namespace_var.get():
            log_data["namespace"] = namespace

        # Add extra fields from record
        extra_fields = [
            "endpoint_id",
            "namespace",
            "action_type",
            "binary_type",
            "payload_kind",
            "tags",
            "directive",
            "error_code",
            "error",
            "duration_ms",
            "status",
            "metadata",
        ]
        for field in extra_fields:
            if hasattr(record, field) and getattr(record, field) is not None:
                log_data[field] = getattr(record, field)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class NamespaceFilter(logging.Filter):
    """Filter that enables debug logging for specific namespaces."""

    def __init__(self, debug_namespaces: list[str]):
        super().__init__()
        self.debug_namespaces = set(debug_namespaces)

    def filter(self, record: logging.LogRecord) -> bool:
        """Allow all INFO+ logs, but only DEBUG for enabled namespaces."""
        if record.levelno >= logging.INFO:
            return True
        # For DEBUG level, check if namespace is enabled
        namespace = record.name.split(".")[0]
        return namespace in self.debug_namespaces


def setup_logging(log_level: str = "INFO", debug_namespaces: list[str] | None = None) -> None:
    """Configure structured logging for the bridge.

    Args:
        log_level: Default log level (DEBUG, INFO, WARNING, ERROR)
        debug_namespaces: List of logger namespaces to enable DEBUG logging for
    """

    debug_namespaces = debug_namespaces or []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(NamespaceFilter(debug_namespaces))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    # DEBUG is let through for the filter; everything else honours log_level
    root_logger.setLevel(logging.DEBUG if debug_namespaces else log_level)

    for noisy_logger in ["asyncio", "uvicorn.access", "httpx", "httpcore"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logger = logging.getLogger("logging")
    logger.info(
        "Logging configured",
        extra={
            "service": "logging",
            "status": log_level,
            "metadata": {"debug_namespaces": debug_namespaces},
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically the service name: "bridge", "ws", "store")

    Returns:
        Configured logger instance
    """

    return logging.getLogger(name)


def set_log_context(endpoint_id: str | None = None, namespace: str | None = None) -> None:
    """Set context variables for connection tracing."""

    if endpoint_id is not None:
        endpoint_id_var.set(endpoint_id)
    if namespace is not None:
        namespace_var.set(namespace)


def clear_log_context() -> None:
    """Clear all connection context variables."""

    endpoint_id_var.set(None)
    namespace_var.set(None)


__all__ = [
    "StructuredFormatter",
    "NamespaceFilter",
    "setup_logging",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "endpoint_id_var",
    "namespace_var",
]
