"""Self-healing key/value store with SQLite / Redis / in-memory backends.

Every record is stored as a JSON document under a namespaced key
("gamification:42", "timer", "task:hw1"). Reads never raise: a missing,
unparseable or wrongly-shaped record is replaced by the caller's default,
which is written back as the new baseline. Writes are best-effort; a failed
write is logged and reported as False.

Usage:
    from durable_store import init_store, get_store
    init_store(app)          # called once in create_app()
    store = get_store()      # module-level accessor
    record = store.read("gamification:42", {"experience": 0})
    store.write("gamification:42", record)
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from errors import CorruptState

logger = logging.getLogger(__name__)

Validator = Callable[[Any], bool]


# ── Protocol ───────────────────────────────────────────────

class DurableStore(Protocol):
    def read(self, key: str, default: Any, validator: Validator | None = None) -> Any: ...
    def write(self, key: str, value: Any) -> bool: ...
    def remove(self, key: str) -> bool: ...
    def exists(self, key: str) -> bool: ...
    def clear(self) -> None: ...


def _same_kind(default: Any, parsed: Any) -> bool:
    """Minimal shape check: the parsed value must be the same JSON kind as the default."""
    if default is None:
        return True
    if isinstance(default, dict):
        return isinstance(parsed, dict)
    if isinstance(default, list):
        return isinstance(parsed, list)
    if isinstance(default, bool):
        return isinstance(parsed, bool)
    if isinstance(default, (int, float)):
        return isinstance(parsed, (int, float)) and not isinstance(parsed, bool)
    if isinstance(default, str):
        return isinstance(parsed, str)
    return True


# ── Shared read/write semantics ───────────────────────────

class _KeyValueStore:
    """Parsing, validation and self-healing on top of raw get/set/delete.

    Subclasses implement the _raw_* methods and may let them raise; this
    class turns backend faults into logged warnings.
    """

    backend_name = "abstract"

    def _raw_get(self, key: str) -> str | None:
        raise NotImplementedError

    def _raw_set(self, key: str, raw: str) -> None:
        raise NotImplementedError

    def _raw_delete(self, key: str) -> None:
        raise NotImplementedError

    def _raw_clear(self) -> None:
        raise NotImplementedError

    def read(self, key: str, default: Any, validator: Validator | None = None) -> Any:
        try:
            raw = self._raw_get(key)
        except Exception as e:
            logger.warning("%s store READ error (key=%s): %s", self.backend_name, key, e)
            return copy.deepcopy(default)

        if raw is None:
            self.write(key, default)
            return copy.deepcopy(default)

        try:
            parsed = self._parse(key, raw, default, validator)
        except CorruptState as e:
            logger.warning("%s — restoring default", e)
            self.write(key, default)
            return copy.deepcopy(default)
        return parsed

    @staticmethod
    def _parse(key: str, raw: str, default: Any, validator: Validator | None) -> Any:
        if raw == "":
            raise CorruptState(key, "empty value")
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptState(key, f"invalid JSON ({e})") from e
        if not _same_kind(default, parsed):
            raise CorruptState(key, f"expected {type(default).__name__}, got {type(parsed).__name__}")
        if validator is not None:
            try:
                ok = validator(parsed)
            except (KeyError, TypeError, ValueError) as e:
                raise CorruptState(key, f"validator raised {e!r}") from e
            if not ok:
                raise CorruptState(key, "failed validation")
        return parsed

    def write(self, key: str, value: Any) -> bool:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("%s store: value for key=%s is not serializable: %s", self.backend_name, key, e)
            return False
        try:
            self._raw_set(key, raw)
        except Exception as e:
            logger.error("%s store WRITE error (key=%s): %s", self.backend_name, key, e)
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self._raw_delete(key)
        except Exception as e:
            logger.warning("%s store DELETE error (key=%s): %s", self.backend_name, key, e)
            return False
        return True

    def exists(self, key: str) -> bool:
        """True when the key is present and holds parseable JSON."""
        try:
            raw = self._raw_get(key)
            if raw is None:
                return False
            json.loads(raw)
        except Exception:
            return False
        return True

    def clear(self) -> None:
        try:
            self._raw_clear()
        except Exception as e:
            logger.warning("%s store CLEAR error: %s", self.backend_name, e)


# ── In-Memory Implementation ──────────────────────────────

class InMemoryStore(_KeyValueStore):
    """Dict of raw JSON strings. Used in tests and as a last-resort fallback."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def _raw_get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def _raw_set(self, key: str, raw: str) -> None:
        with self._lock:
            self._data[key] = raw

    def _raw_delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def _raw_clear(self) -> None:
        with self._lock:
            self._data.clear()


# ── SQLite Implementation ─────────────────────────────────

KV_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ''
);
"""


class SQLiteStore(_KeyValueStore):
    """Single-table key/value store using raw sqlite3 in WAL mode."""

    backend_name = "sqlite"

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        if path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(KV_SCHEMA)
        self._conn.commit()

    def _raw_get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,),
            ).fetchone()
        return row[0] if row else None

    def _raw_set(self, key: str, raw: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, raw, datetime.now().isoformat()),
            )
            self._conn.commit()

    def _raw_delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()

    def _raw_clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store")
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()


# ── Redis Implementation ──────────────────────────────────

_transient_redis = retry(
    retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=1),
    reraise=True,
)


class RedisStore(_KeyValueStore):
    """Wraps redis.Redis. Keys are prefixed so the store can share a database."""

    backend_name = "redis"

    def __init__(self, redis_client, prefix: str = "portal:") -> None:
        self._redis = redis_client
        self.prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _raw_get(self, key: str) -> str | None:
        raw = self._redis.get(self._k(key))
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else raw

    @_transient_redis
    def _raw_set(self, key: str, raw: str) -> None:
        self._redis.set(self._k(key), raw)

    def _raw_delete(self, key: str) -> None:
        self._redis.delete(self._k(key))

    def _raw_clear(self) -> None:
        keys = list(self._redis.scan_iter(match=f"{self.prefix}*"))
        if keys:
            self._redis.delete(*keys)


# ── Module-level singleton ────────────────────────────────

_store: DurableStore | None = None


def init_store(app) -> DurableStore:
    """Initialize the store backend from app config. Call once from create_app()."""
    global _store

    backend = app.config.get("STORE_BACKEND", "sqlite")
    redis_url = app.config.get("REDIS_URL", "")

    if backend == "redis":
        if redis_url:
            try:
                import redis
                client = redis.Redis.from_url(redis_url, decode_responses=False)
                client.ping()
                _store = RedisStore(client)
                app.logger.info("Durable store: Redis (%s)", redis_url)
                return _store
            except Exception as e:
                app.logger.warning("Redis connection failed (%s) — falling back to SQLite store.", e)
        else:
            app.logger.warning("STORE_BACKEND=redis without REDIS_URL — falling back to SQLite store.")
        backend = "sqlite"

    if backend == "sqlite":
        path = app.config.get("STORE_PATH", "portal_store.db")
        try:
            _store = SQLiteStore(path)
            app.logger.info("Durable store: SQLite (%s)", path)
            return _store
        except sqlite3.Error as e:
            app.logger.error("SQLite store unavailable (%s) — falling back to in-memory store.", e)

    _store = InMemoryStore()
    app.logger.info("Durable store: in-memory")
    return _store


def set_store(store: DurableStore | None) -> None:
    """Install a specific store instance (tests, scripts)."""
    global _store
    _store = store


def get_store() -> DurableStore:
    """Return the active store. Lazily initializes an in-memory store if needed."""
    global _store
    if _store is None:
        logger.warning("Durable store used before init_store(); using in-memory store.")
        _store = InMemoryStore()
    return _store
