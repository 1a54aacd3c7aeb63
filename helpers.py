"""
Shared helpers used across blueprints.

Extracted from the blueprints to keep identity and error mapping in one place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, jsonify, request
from flask_login import current_user

from errors import EngineError

logger = logging.getLogger(__name__)


def current_user_id() -> str:
    """Return the current authenticated user's ID."""
    return str(current_user.id)


def teacher_required(f: Callable) -> Callable:
    """Decorator that requires user to have teacher or admin role."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not getattr(current_user, "is_teacher", False):
            abort(403)
        return f(*args, **kwargs)
    return decorated


def admin_required(f: Callable) -> Callable:
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not getattr(current_user, "is_admin", False):
            abort(403)
        return f(*args, **kwargs)
    return decorated


def json_body() -> dict:
    """Request JSON as a dict; empty or malformed bodies read as {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(exc: EngineError):
    logger.info("Rejected %s %s: %s", request.method, request.path, exc)
    return jsonify({"error": str(exc), "code": exc.code}), exc.http_status


def bad_request(message: str):
    return jsonify({"error": message, "code": "bad_request"}), 400
