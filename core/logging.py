"""Structured JSON logging with request and topology context."""

import contextvars
import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

log_ctx: contextvars.ContextVar[dict] = contextvars.ContextVar("log_ctx", default={})

_SECRET_RE = re.compile(r"(token|password|secret|key)([\s=:]+)\S+", re.IGNORECASE)
_DEV = os.getenv("MESHSCOPE_ENVIRONMENT", "development") == "development"

# Extra attributes copied from `logger.info(..., extra={...})` into the JSON body
_EXTRA_FIELDS = ("duration_ms", "topology_version", "paths_found", "truncated", "reasons")


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = log_ctx.get()
        obj = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "message": _SECRET_RE.sub(r"\1\2***", record.getMessage()),
            "logger": record.name,
            "request_id": ctx.get("request_id"),
            "topology_version": ctx.get("topology_version"),
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                obj[name] = getattr(record, name)
        if record.exc_info and record.exc_info[0]:
            obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(obj, indent=2 if _DEV else None, default=str)


def setup_logging(level: str | None = None) -> None:
    """Configure root logger with a single JSON handler."""
    lvl = level or os.getenv("MESHSCOPE_LOG_LEVEL", "INFO")
    root = logging.getLogger()
    root.setLevel(getattr(logging, lvl.upper(), logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)


def bind_context(**fields) -> contextvars.Token:
    """Merge fields into the current log context. Reset with `log_ctx.reset(token)`."""
    return log_ctx.set({**log_ctx.get(), **fields})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign request_id, propagate it to log records, echo X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        token = bind_context(request_id=rid)
        try:
            response = await call_next(request)
        finally:
            log_ctx.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
