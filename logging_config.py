"""
Structured logging for the engine.

Every record emitted while a request is being handled carries the request id
and the authenticated portal user, so ledger awards, timer completions and
homework transitions can be traced back to who triggered them.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request
from flask_login import current_user

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s user=%(user_id)s]: %(message)s"


def _request_user_id() -> str | None:
    if getattr(current_user, "is_authenticated", False):
        return str(current_user.id)
    return None


class RequestContextFilter(logging.Filter):
    """Stamp request_id/user_id onto records; "-" outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(record, "request_id", None) or g.get("request_id", "-")
            record.user_id = getattr(record, "user_id", None) or _request_user_id() or "-"
        else:
            record.request_id = getattr(record, "request_id", "-")
            record.user_id = getattr(record, "user_id", "-")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line. Placeholder "-" ids are left out."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("request_id", "user_id"):
            value = getattr(record, attr, "-")
            if value not in (None, "-"):
                entry[attr] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_root(log_format: str = "text", log_level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def init_logging(app: Flask) -> None:
    configure_root(
        app.config.get("LOG_FORMAT", "text"),
        app.config.get("LOG_LEVEL", "INFO"),
    )

    @app.before_request
    def _attach_request_id():
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def _log_request(response):
        duration_ms = (time.time() - g.get("request_start", time.time())) * 1000
        response.headers["X-Request-Id"] = g.get("request_id", "-")
        app.logger.info(
            "%s %s %s %.0fms",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={"request_id": g.get("request_id", "-"), "user_id": _request_user_id() or "-"},
        )
        return response
