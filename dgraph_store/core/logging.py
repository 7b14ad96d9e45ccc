"""Structured logging for dgraph-store.

DgraphClient logs every remote operation with ``extra={"address": ...,
"operation": ...}``. JSONFormatter renders those fields next to the
standard ones (timestamp, level, service, correlation_id, module, message)
so log lines can be filtered per Alpha and per operation.

The library never installs handlers; host applications opt in with
setup_structured_logging(). Level comes from DGRAPH_STORE_LOG_LEVEL.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any


SERVICE_NAME = "dgraph_store"

# Fields DgraphClient attaches through ``extra``
DGRAPH_FIELDS = ("address", "operation")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str) -> None:
    """Tag log records emitted in the current context."""
    _correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def operation_extra(address: str, operation: str) -> dict[str, str]:
    """Build the ``extra`` mapping attached to client log records."""
    return {"address": address, "operation": operation}


class JSONFormatter(logging.Formatter):
    """JSON log formatter with standard and Dgraph operation fields."""

    def __init__(self, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "module": record.module,
            "message": record.getMessage(),
        }

        for name in DGRAPH_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class CorrelationIdFilter(logging.Filter):
    """Filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "-"
        return True


def get_log_level_from_env(env_var: str = "DGRAPH_STORE_LOG_LEVEL") -> int:
    level = getattr(logging, os.environ.get(env_var, "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def setup_structured_logging(
    service_name: str = SERVICE_NAME,
    log_level: int | None = None,
) -> logging.Logger:
    """Install a JSON stdout handler on the package logger."""
    logger = logging.getLogger(service_name)
    logger.setLevel(get_log_level_from_env() if log_level is None else log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)

    logger.propagate = False
    return logger
