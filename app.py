"""
Study Portal — Session & Progress Engine API

JSON backend for the tutoring portal's focus timer, XP ledger and homework
lifecycle.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response

from auth import auth_bp, login_manager
from blueprints import register_blueprints
from errors import EngineError
from extensions import EngineManager, limiter
from helpers import error_response


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", "dev-key-change-in-production")

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Durable store (SQLite, Redis or in-memory) and engine services
    from durable_store import init_store
    init_store(app)
    EngineManager.init_app(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    # Request identity
    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    # Register all application blueprints
    register_blueprints(app)

    # Validation errors from the engine become JSON 4xx responses
    app.register_error_handler(EngineError, error_response)

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
