"""
Singleton management for the engine services and rate limiter.

Replaces per-request construction of the ledger and lifecycle with
lazily-built instances bound to the active durable store.
"""

from __future__ import annotations

import time
from datetime import date

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["600 per hour"])


class EngineManager:
    """Lazy-loaded singletons for GamificationLedger and HomeworkLifecycle."""

    _config: dict = {}
    _ledger = None
    _homework = None

    # Injectable time sources (tests swap these for a fake clock)
    clock = staticmethod(time.time)
    today = staticmethod(date.today)

    @classmethod
    def init_app(cls, app) -> None:
        cls._config = dict(app.config)
        cls.reset()

    @classmethod
    def get_ledger(cls):
        if cls._ledger is None:
            from durable_store import get_store
            from gamification import GamificationLedger, LEVEL_STEP
            cls._ledger = GamificationLedger(
                get_store(),
                level_step=cls._config.get("LEVEL_STEP", LEVEL_STEP),
                today=lambda: cls.today(),
            )
        return cls._ledger

    @classmethod
    def get_homework(cls):
        if cls._homework is None:
            from durable_store import get_store
            from homework import HomeworkLifecycle, SUBMIT_BONUS
            cls._homework = HomeworkLifecycle(
                get_store(),
                cls.get_ledger(),
                submit_bonus=cls._config.get("SUBMIT_BONUS_XP", SUBMIT_BONUS),
            )
        return cls._homework

    @classmethod
    def timer_for(cls, user_id):
        """Timer state is small and per-user; build a fresh service each call."""
        from durable_store import get_store
        from session_timer import SessionTimer, TimerSettings, timer_key
        return SessionTimer(
            get_store(),
            cls.get_ledger(),
            user_id,
            key=timer_key(user_id),
            settings=TimerSettings.from_config(cls._config),
            clock=lambda: cls.clock(),
        )

    @classmethod
    def reset(cls):
        """Drop cached services — called after the store is swapped."""
        cls._ledger = None
        cls._homework = None
