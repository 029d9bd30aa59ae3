from __future__ import annotations

from fastapi import Depends

from elearning.core.cache import Cache, get_cache
from elearning.services.progress import ProgressService
from elearning.services.users import UserDirectory
from elearning.store import DocumentStore, get_store


def get_progress_service(store: DocumentStore = Depends(get_store)) -> ProgressService:
    return ProgressService(store)


def get_user_directory(
    store: DocumentStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
) -> UserDirectory:
    return UserDirectory(store, cache)
