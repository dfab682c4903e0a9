"""
Structured Logging Configuration Module

Every ledger mutation is logged as one JSON line. Lines emitted while an
HTTP request is being served carry that request's correlation id, method
and path, taken from a context variable bound by the API middleware, so
the action log of one request can be pulled out of a shared stream.
"""

import contextvars
import json
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Per-request context; empty outside a request
_request_context: contextvars.ContextVar = contextvars.ContextVar(
    "daybook_request_context", default={}
)

# Structured fields travel on the record under this attribute
FIELDS_ATTR = "daybook_fields"


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_request_context() -> Dict[str, Any]:
    """Context fields bound for the current request"""
    return dict(_request_context.get())


@contextmanager
def request_context(correlation_id: Optional[str] = None, **fields):
    """
    Bind a correlation id (and any other fields, e.g. method and path) to
    every log line emitted inside the block.
    """
    context = {"correlation_id": correlation_id or new_correlation_id()}
    context.update({k: v for k, v in fields.items() if v is not None})
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line: request context, then the action's own fields"""

    def format(self, record):
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(get_request_context())
        entry.update(getattr(record, FIELDS_ATTR, None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "daybook") -> logging.Logger:
    """
    Install the JSON handler on the application logger.

    Service loggers (``daybook.banking`` etc.) propagate into it. Calling
    this again replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger(logger_name)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = "daybook") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, tenant: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a ledger action.

    Args:
        logger: Service logger
        level: Level name (info, warning, ...)
        message: Human readable summary
        user_id: Acting user
        action: Machine readable action name, e.g. ``bank_withdraw``
        resource: Affected record, e.g. ``bank_account:3``
        tenant: Tenant owning the resource
        extra: Action specific details (amounts, balances, field names)
    """
    fields = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "tenant": tenant,
        "extra": extra or None,
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    logger.log(getattr(logging, level.upper()), message, extra={FIELDS_ATTR: fields})
