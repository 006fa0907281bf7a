"""Logging configuration for the Document Chat service.

Every record emitted under the ``document_chat`` namespace carries the id of
the HTTP request being served and the caller (``X-User-Id``) it was made for,
so ingestion and chat logs can be correlated per user. Production emits one
JSON object per line; development uses a readable single-line format.
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from document_chat.config import get_settings

ROOT_LOGGER = "document_chat"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Libraries whose INFO output drowns the service's own logs
_QUIET_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "openai",
    "qdrant_client",
    "azure",
)

_configured = False


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request and user ids."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra_fields`` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        payload.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _console_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return JSONFormatter()
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)-7s %(name)s [req=%(request_id)s user=%(user_id)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def setup_logging() -> logging.Logger:
    """Configure the service logger once, based on the environment."""
    global _configured

    logger = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return logger

    settings = get_settings()
    level = getattr(logging, settings.log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(_console_formatter(settings.is_production))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database.echo else logging.WARNING
    )

    _configured = True
    logger.info(
        f"Logging configured: level={settings.log_level}, environment={settings.environment.value}"
    )
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the document_chat namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def bind_request_context(request_id: str, user_id: Optional[str] = None) -> None:
    """Attach request and caller ids to logs emitted by the current task."""
    request_id_var.set(request_id)
    user_id_var.set(user_id)


def log_request(method: str, path: str, status_code: int, duration_ms: float, **kwargs: Any) -> None:
    """Access log line for one HTTP request."""
    get_logger("http").info(
        f"{method} {path} -> {status_code} ({duration_ms:.1f}ms)",
        extra={
            "extra_fields": {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs,
            }
        },
    )


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an error raised while serving a request.

    Errors that carry an HTTP ``status_code`` are logged without a traceback,
    at WARNING for client errors and ERROR for server errors. Anything else is
    unexpected and logged with a traceback.
    """
    logger = get_logger("error")
    fields: Dict[str, Any] = {"error_type": type(error).__name__, **(context or {})}
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        code = getattr(error, "code", None) or type(error).__name__
        fields.update(code=code, status_code=status_code)
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(level, f"{code} ({status_code}): {error}", extra={"extra_fields": fields})
    else:
        logger.error(f"Unhandled {type(error).__name__}: {error}", exc_info=error, extra={"extra_fields": fields})
