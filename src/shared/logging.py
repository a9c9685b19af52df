"""Structured JSON logging with trace_id support.

``TraceIDMiddleware`` is for a FastAPI host that embeds the segment engine;
the engine itself only needs ``setup_logging``.
"""
from __future__ import annotations

import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.shared.constants import SEGMENT_ENGINE_SERVICE_NAME

# Context variable for trace_id
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "trace_id", default=""
)

# Module loggers all live under this package, so one handler here sees them.
ROOT_LOGGER_NAME = "src"


class JSONFormatter(logging.Formatter):
    """Custom JSON log formatter."""

    def __init__(self, service_name: str = "unknown") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service_name": self.service_name,
            "logger": record.name,
            "trace_id": trace_id_var.get(""),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


def setup_logging(
    service_name: str = SEGMENT_ENGINE_SERVICE_NAME,
    level: str = "INFO",
    logger_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """Configure structured JSON logging for the segment engine.

    Args:
        service_name: Name of the service stamped on every log entry.
        level: Log level string (e.g. "INFO", "DEBUG").
        logger_name: Logger to attach the handler to. Defaults to the
            package root so every module logger is covered.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service_name=service_name))
    logger.addHandler(handler)

    return logger


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Middleware that sets a unique trace_id per request.

    Reuses an incoming ``X-Trace-ID`` header when the caller supplies one.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        token = trace_id_var.set(request_trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_var.reset(token)
        response.headers["X-Trace-ID"] = request_trace_id
        return response
