from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from elearning.core.cache import Cache
from elearning.core.config import settings
from elearning.core.errors import NotFound
from elearning.store.base import DocumentStore, join_path


def user_info_cache_key(user_id: str) -> str:
    return f"user_info_{user_id}"


class UserDirectory:
    """Profile lookups, cached because every dashboard render asks for them."""

    def __init__(self, store: DocumentStore, cache: Cache, path: str | None = None):
        self.store = store
        self.cache = cache
        self.path = path or settings.users_path

    def get_user_info(self, user_id: str) -> dict[str, Any]:
        key = user_info_cache_key(user_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        raw = self.store.get(join_path(self.path, user_id))
        if not isinstance(raw, Mapping):
            raise NotFound(f"user {user_id} not found")

        info = {**raw, "id": user_id}
        self.cache.set(key, info)
        return info

    def invalidate(self, user_id: str) -> None:
        self.cache.clear_item(user_info_cache_key(user_id))
