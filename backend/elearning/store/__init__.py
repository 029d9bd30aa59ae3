from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from elearning.core.config import settings
from elearning.db.session import get_db
from elearning.store.base import DocumentStore, InvalidPath, join_path, normalize_path
from elearning.store.http import HttpDocumentStore
from elearning.store.sql import SqlDocumentStore


@lru_cache(maxsize=1)
def _http_store() -> HttpDocumentStore:
    return HttpDocumentStore.from_settings()


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    backend = (settings.store_backend or "sql").strip().lower()
    if backend == "http":
        return _http_store()
    if backend != "sql":
        raise RuntimeError(f"unknown STORE_BACKEND: {settings.store_backend}")
    return SqlDocumentStore(db)


__all__ = [
    "DocumentStore",
    "HttpDocumentStore",
    "InvalidPath",
    "SqlDocumentStore",
    "get_store",
    "join_path",
    "normalize_path",
]
