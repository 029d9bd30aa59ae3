from __future__ import annotations

import logging
from dataclasses import dataclass

import redis
from fastapi import Depends, HTTPException, Request

from elearning.core.config import settings
from elearning.core.redis_client import get_redis


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Budget:
    """Submission count for one subject on one route within the current window."""

    key: str
    used: int
    limit: int
    reset_after: int

    @property
    def exhausted(self) -> bool:
        return self.used > self.limit


def limiter_subject(request: Request) -> str:
    """Who is being limited: the authenticated learner, or the caller's address before login."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"

    host = request.client.host if request.client and request.client.host else "unknown"
    if settings.trust_proxy_headers:
        forwarded = str(request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        host = str(request.headers.get("x-real-ip") or "").strip() or forwarded or host
    return f"ip:{host}"


def consume(client: redis.Redis, key: str, limit: int, window_seconds: int) -> Budget:
    used = client.incr(key)
    if used == 1:
        client.expire(key, window_seconds)
    ttl = client.ttl(key)
    return Budget(key=key, used=int(used), limit=limit, reset_after=int(ttl) if ttl and ttl > 0 else window_seconds)


def rate_limit(*, key_prefix: str, limit: int | None = None, window_seconds: int | None = None):
    """Fixed window per learner and route; place after the auth dependency so the learner is known.

    Limits default to SUBMIT_RATE_LIMIT / SUBMIT_RATE_WINDOW_SECONDS. A redis outage lets requests through.
    """

    def _dep(request: Request) -> Budget | None:
        max_hits = int(limit if limit is not None else settings.submit_rate_limit)
        window = int(window_seconds if window_seconds is not None else settings.submit_rate_window_seconds)
        key = f"rl:{key_prefix}:{limiter_subject(request)}:{request.url.path}"

        try:
            budget = consume(get_redis(), key, max_hits, window)
        except redis.RedisError:
            log.warning("rate_limit: redis unavailable, not limiting key=%s", key)
            return None

        if budget.exhausted:
            log.info("rate_limit: limited key=%s used=%s limit=%s", key, budget.used, budget.limit)
            raise HTTPException(
                status_code=429,
                detail="too many submissions, try again later",
                headers={"Retry-After": str(budget.reset_after)},
            )
        return budget

    return Depends(_dep)
