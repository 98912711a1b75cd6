"""
Rate Limiting

Sliding-window rate limiting on a Redis sorted set, with an in-process
fallback when Redis is unavailable (single instance only).

Used for:
- admin login attempts (brute force protection, keyed per email)
- super admin actions (approve/reject/remove, code regeneration, deletions)
"""

import logging
import time
from uuid import uuid4

from fastapi import HTTPException, status
from redis.exceptions import RedisError

from app.core.redis import get_redis

logger = logging.getLogger(__name__)

# {key: [timestamps]}
_memory_store: dict[str, list[float]] = {}
# {key: expiry timestamp}
_memory_expiry: dict[str, float] = {}


class RateLimitExceeded(HTTPException):
    """Raised when a caller exceeds its request budget."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": (
                    f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds."
                ),
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    # Unique member so two hits in the same instant both count
    pipe.zadd(key, {f"{now}:{uuid4().hex}": now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()
    return results[1] < limit


def _purge_expired(now: float) -> None:
    for key in [k for k, expires_at in _memory_expiry.items() if expires_at <= now]:
        _memory_store.pop(key, None)
        del _memory_expiry[key]


def _check_memory(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    _purge_expired(now)
    hits = [ts for ts in _memory_store.get(key, []) if ts > now - window_seconds]
    if len(hits) >= limit:
        _memory_store[key] = hits
        return False
    hits.append(now)
    _memory_store[key] = hits
    # Mirrors the Redis EXPIRE: the key goes once its newest hit leaves the window
    _memory_expiry[key] = now + window_seconds
    return True


def reset_memory_store() -> None:
    """Forget all in-memory counters."""
    _memory_store.clear()
    _memory_expiry.clear()


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Record a hit for ``key`` and report whether it is within the limit.

    Args:
        key: Rate limit key (e.g. "login:admin@example.com")
        limit: Maximum hits allowed in the window
        window_seconds: Window length

    Returns:
        True if allowed, False if the limit is exceeded
    """
    client = get_redis()
    if client is not None:
        try:
            return await _check_redis(client, key, limit, window_seconds)
        except RedisError as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_memory(key, limit, window_seconds)


async def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Like check_rate_limit but raises RateLimitExceeded (HTTP 429)."""
    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
        raise RateLimitExceeded(limit, window_seconds)


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "enforce_rate_limit",
    "reset_memory_store",
]
