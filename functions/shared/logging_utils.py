"""
Structured logging for the Lambda handlers.

Every line is one JSON document for CloudWatch Logs Insights. Fields bound
with ``bind()`` during a request (user id, action, Stripe event id) are
attached to every line logged until the next request starts.
"""

import functools
import json
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Optional

from shared.request_utils import get_method

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
log_context_var: ContextVar[dict] = ContextVar("log_context", default={})

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

# Credentials that must never reach the log stream
SENSITIVE_FIELDS = frozenset(
    {"authorization", "apikey", "token", "service_key", "stripe_signature", "api_key"}
)
REDACTED = "[redacted]"


def _scrub(key: str, value: Any) -> Any:
    return REDACTED if key.lower() in SENSITIVE_FIELDS and value else value


class StructuredFormatter(logging.Formatter):
    """JSON formatter carrying request id, bound context and `extra=` fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(),
            "function_name": os.environ.get("AWS_LAMBDA_FUNCTION_NAME", ""),
        }

        for key, value in log_context_var.get().items():
            log_entry[key] = _scrub(key, value)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = _scrub(key, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: Optional[int] = None) -> logging.Logger:
    """
    Install a single JSON handler on the root logger.

    The level defaults to LOG_LEVEL from the environment, then INFO.
    """
    if level is None:
        level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)

    return root_logger


def bind_request(event: dict) -> str:
    """
    Start a new logging scope for an API Gateway event.

    Uses the gateway request id, then X-Request-Id, then a fresh uuid.
    Clears anything bound during the previous invocation.
    """
    request_id = (event.get("requestContext") or {}).get("requestId")

    if not request_id:
        headers = event.get("headers") or {}
        request_id = headers.get("x-request-id") or headers.get("X-Request-Id")

    if not request_id:
        request_id = str(uuid.uuid4())

    request_id_var.set(request_id)
    log_context_var.set({})
    return request_id


def bind(**fields: Any) -> None:
    """Attach fields to every log line for the rest of the request."""
    log_context_var.set({**log_context_var.get(), **fields})


def log_api_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    latency_ms: float,
) -> None:
    """One summary line per request. Unauthenticated requests log as anonymous."""
    extra = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    }
    if "user_id" not in log_context_var.get():
        extra["user_id"] = "anonymous"
    level = logging.ERROR if status_code >= 500 else logging.INFO
    logger.log(level, f"{method} {path} -> {status_code}", extra=extra)


class ExternalCall:
    """
    Time one call to Supabase or Stripe and log the outcome on exit.

    An exception escaping the block, or an explicit ``fail()``, marks the
    call failed. Nothing is suppressed.

        with ExternalCall(logger, "supabase", "get_user") as call:
            response = client.get(...)
            if not response.is_success:
                call.fail(f"HTTP {response.status_code}")
    """

    def __init__(self, logger: logging.Logger, service: str, operation: str):
        self.logger = logger
        self.service = service
        self.operation = operation
        self.error: Optional[str] = None
        self.latency_ms = 0.0
        self._start = 0.0

    def fail(self, error: str) -> None:
        self.error = error

    def __enter__(self) -> "ExternalCall":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.latency_ms = (time.monotonic() - self._start) * 1000
        if exc is not None and self.error is None:
            self.error = str(exc) or exc_type.__name__

        success = self.error is None
        self.logger.log(
            logging.INFO if success else logging.WARNING,
            f"{self.service}.{self.operation} -> {'ok' if success else 'failed'}",
            extra={
                "service": self.service,
                "operation": self.operation,
                "success": success,
                "latency_ms": round(self.latency_ms, 2),
                "error": self.error,
            },
        )
        return False


def logged_handler(default_path: str) -> Callable:
    """
    Wrap a Lambda entry point with logging setup and a request summary line.
    """

    def decorator(func: Callable[[dict, Any], dict]) -> Callable[[dict, Any], dict]:
        @functools.wraps(func)
        def wrapper(event: dict, context: Any) -> dict:
            configure_structured_logging()
            bind_request(event)
            start = time.monotonic()

            response = func(event, context)

            log_api_request(
                logger,
                get_method(event),
                event.get("path") or event.get("rawPath") or default_path,
                response["statusCode"],
                (time.monotonic() - start) * 1000,
            )
            return response

        return wrapper

    return decorator
