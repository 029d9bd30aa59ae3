import redis
from fastapi import APIRouter, Depends, HTTPException

from elearning.core.cache import Cache, RedisCache, get_cache
from elearning.core.errors import PersistenceError
from elearning.store import DocumentStore, get_store

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready(store: DocumentStore = Depends(get_store), cache: Cache = Depends(get_cache)):
    try:
        store.ping()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail="store not ready") from e

    if isinstance(cache, RedisCache):
        try:
            cache.client.ping()
        except redis.RedisError as e:
            raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready"}
