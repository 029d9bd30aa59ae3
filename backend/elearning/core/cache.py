from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import redis

from elearning.core.config import settings
from elearning.core.redis_client import get_redis


log = logging.getLogger(__name__)


class Cache(ABC):
    """Key -> value cache with a fixed time-to-live.

    Keys are plain strings; callers encode any partitioning themselves
    (``user_info_<uid>``).
    """

    ttl_seconds: int

    @abstractmethod
    def get(self, key: str) -> Any | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def clear_item(self, key: str) -> None: ...


class MemoryCache(Cache):
    """Process-local cache. Expiry is lazy: stale entries stay until read or overwritten."""

    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = int(ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds)
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = (value, self._clock())

    def clear(self) -> None:
        self._data.clear()

    def clear_item(self, key: str) -> None:
        self._data.pop(key, None)


class RedisCache(Cache):
    """Shared cache in redis. Values are JSON; redis errors are logged and read as misses."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        ttl_seconds: int | None = None,
        prefix: str = "cache:",
    ):
        self._client = client
        self.ttl_seconds = int(ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds)
        self.prefix = prefix

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Any | None:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError:
            log.warning("redis_cache: get failed key=%s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("redis_cache: dropping undecodable entry key=%s", key)
            self.clear_item(key)
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self.client.set(self._key(key), json.dumps(value, ensure_ascii=False), ex=self.ttl_seconds)
        except (redis.RedisError, TypeError, ValueError):
            log.warning("redis_cache: set failed key=%s", key)

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError:
            log.warning("redis_cache: clear failed prefix=%s", self.prefix)

    def clear_item(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError:
            log.warning("redis_cache: delete failed key=%s", key)


def build_cache() -> Cache:
    backend = (settings.cache_backend or "memory").strip().lower()
    if backend == "redis":
        return RedisCache()
    if backend != "memory":
        raise RuntimeError(f"unknown CACHE_BACKEND: {settings.cache_backend}")
    return MemoryCache()


@lru_cache(maxsize=1)
def get_cache() -> Cache:
    """Application-wide instance; override the dependency to inject another one."""
    return build_cache()
