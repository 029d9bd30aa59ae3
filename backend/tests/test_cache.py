import pytest

from elearning.core.cache import MemoryCache, RedisCache, build_cache
from elearning.core.config import settings
from elearning.core.errors import NotFound
from elearning.services.users import UserDirectory, user_info_cache_key

from conftest import _MemoryRedis, seed_user


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entry_expires_after_ttl():
    clock = _Clock()
    cache = MemoryCache(ttl_seconds=300, clock=clock)

    cache.set("k", {"v": 1})
    clock.now += 299
    assert cache.get("k") == {"v": 1}

    clock.now += 1
    assert cache.get("k") is None


def test_set_restarts_the_ttl():
    clock = _Clock()
    cache = MemoryCache(ttl_seconds=300, clock=clock)

    cache.set("k", 1)
    clock.now += 200
    cache.set("k", 2)
    clock.now += 200
    assert cache.get("k") == 2


def test_clear_and_clear_item():
    cache = MemoryCache(ttl_seconds=300)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.clear_item("a")
    cache.clear_item("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.get("b") is None


def test_ttl_defaults_to_settings(monkeypatch):
    monkeypatch.setattr(settings, "cache_ttl_seconds", 42)
    assert MemoryCache().ttl_seconds == 42


def test_redis_cache_round_trip():
    client = _MemoryRedis()
    cache = RedisCache(client, ttl_seconds=300, prefix="test:")

    cache.set("k", {"name": "Ada"})
    assert cache.get("k") == {"name": "Ada"}
    assert client.ttl("test:k") > 0

    cache.set("other", 1)
    client.set("unrelated", "x")
    cache.clear()
    assert cache.get("k") is None
    assert cache.get("other") is None
    assert client.get("unrelated") == "x"


def test_redis_cache_drops_undecodable_entries():
    client = _MemoryRedis()
    cache = RedisCache(client, ttl_seconds=300, prefix="test:")
    client.set("test:k", "{not json")

    assert cache.get("k") is None
    assert client.get("test:k") is None


def test_redis_errors_read_as_misses():
    import redis

    class _Down:
        def get(self, key):
            raise redis.ConnectionError("down")

        def set(self, *args, **kwargs):
            raise redis.ConnectionError("down")

    cache = RedisCache(_Down(), ttl_seconds=300)
    cache.set("k", 1)
    assert cache.get("k") is None


def test_build_cache_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "cache_backend", "redis")
    assert isinstance(build_cache(), RedisCache)

    monkeypatch.setattr(settings, "cache_backend", "memory")
    assert isinstance(build_cache(), MemoryCache)

    monkeypatch.setattr(settings, "cache_backend", "memcached")
    with pytest.raises(RuntimeError):
        build_cache()


def test_user_info_is_cached(store):
    seed_user(store, "u1", name="Ada")
    cache = MemoryCache(ttl_seconds=300)
    users = UserDirectory(store, cache)

    info = users.get_user_info("u1")
    assert info["name"] == "Ada"
    assert info["id"] == "u1"
    assert cache.get(user_info_cache_key("u1")) == info

    # Served from the cache until invalidated.
    seed_user(store, "u1", name="Grace")
    assert users.get_user_info("u1")["name"] == "Ada"

    users.invalidate("u1")
    assert users.get_user_info("u1")["name"] == "Grace"


def test_unknown_user_is_not_found(store):
    users = UserDirectory(store, MemoryCache(ttl_seconds=300))
    with pytest.raises(NotFound):
        users.get_user_info("ghost")
