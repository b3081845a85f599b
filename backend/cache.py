"""Cache store adapters: Redis in production, in-memory TTL dict in TEST_MODE."""

from __future__ import annotations

import logging
import os
import threading
import time

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

TEST_MODE            = os.getenv("TEST_MODE", "") == "1"
REDIS_URL            = os.getenv("REDIS_URL") or os.getenv("REDIS_HOST", "")
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))

# Redis connection pool health check interval (seconds)
HEALTH_CHECK_INTERVAL = 30


class StoreUnavailable(RuntimeError):
    """The cache store could not be reached, or a read/write timed out."""


class MemoryStore:
    """Per-key TTL dict. Expired keys read as absent."""

    def __init__(self, clock=time.monotonic):
        self._store: dict[str, tuple[str, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def close(self) -> None:
        self._connected = False

    def get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            val, expires_at = entry
            if now < expires_at:
                return val
            self._store.pop(key, None)
        return None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds
        with self._lock:
            self._store[key] = (value, expires_at)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


class RedisStore:
    """
    Redis-backed store with an explicit connect/close lifecycle.

    Every Redis failure surfaces as StoreUnavailable; there is no retry here,
    the refresh loop decides what a failed read or write means for a role.
    """

    def __init__(self, url: str, socket_timeout: float = REDIS_SOCKET_TIMEOUT):
        self._url = url
        self._socket_timeout = socket_timeout
        self._client: redis.Redis | None = None
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        if self._client is not None:
            return
        self._closed = False
        client = redis.Redis.from_url(
            self._url,
            decode_responses=True,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._socket_timeout,
            health_check_interval=HEALTH_CHECK_INTERVAL,
        )
        try:
            client.ping()
        except RedisError as exc:
            client.close()
            raise StoreUnavailable(f"Cannot connect to Redis: {exc}") from exc
        self._client = client
        logger.info("Redis client connected")

    def close(self) -> None:
        self._closed = True
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Redis client closed")

    def _require_client(self) -> redis.Redis:
        if self._closed:
            raise StoreUnavailable("Redis store is closed")
        # Reconnect lazily if the startup connect failed
        if self._client is None:
            self.connect()
        return self._client

    def get(self, key: str) -> str | None:
        client = self._require_client()
        try:
            return client.get(key)
        except RedisError as exc:
            raise StoreUnavailable(f"Redis GET {key!r} failed: {exc}") from exc

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        client = self._require_client()
        try:
            client.setex(key, ttl_seconds, value)
        except RedisError as exc:
            raise StoreUnavailable(f"Redis SETEX {key!r} failed: {exc}") from exc


def create_store() -> MemoryStore | RedisStore:
    """MemoryStore in TEST_MODE or when no Redis URL is configured."""
    if TEST_MODE or not REDIS_URL:
        if not TEST_MODE:
            logger.warning("REDIS_URL not set — using in-memory store")
        return MemoryStore()
    return RedisStore(REDIS_URL)
