"""
Application configuration — environment-aware settings.

All environment variables are documented here. Values are read from the
process environment; a local .env file is loaded first when present.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")

    # Durable store: "sqlite" (default), "redis" or "memory"
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sqlite")
    STORE_PATH = os.environ.get("STORE_PATH", str(BASE_DIR / "portal_store.db"))
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Leveling
    LEVEL_STEP = _env_int("LEVEL_STEP", 1000)

    # Session timer (seconds)
    FOCUS_SECONDS = _env_int("FOCUS_SECONDS", 25 * 60)
    SHORT_BREAK_SECONDS = _env_int("SHORT_BREAK_SECONDS", 5 * 60)
    LONG_BREAK_SECONDS = _env_int("LONG_BREAK_SECONDS", 15 * 60)
    LONG_BREAK_EVERY = _env_int("LONG_BREAK_EVERY", 4)
    TIMER_AUTO_CONTINUE = _env_bool("TIMER_AUTO_CONTINUE", True)

    # XP awards
    FOCUS_BONUS_XP = _env_int("FOCUS_BONUS_XP", 25)
    SUBMIT_BONUS_XP = _env_int("SUBMIT_BONUS_XP", 50)

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.STORE_BACKEND not in ("sqlite", "redis", "memory"):
            errors.append(f"STORE_BACKEND must be sqlite, redis or memory (got {cls.STORE_BACKEND!r}).")

        if cls.STORE_BACKEND == "redis" and not cls.REDIS_URL:
            errors.append("REDIS_URL is required when STORE_BACKEND=redis.")

        if cls.LEVEL_STEP <= 0:
            errors.append("LEVEL_STEP must be positive.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    STORE_BACKEND = "memory"
    RATELIMIT_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
