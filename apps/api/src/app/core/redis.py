"""
Redis client.

Redis is optional: it backs rate limiting, which falls back to process memory
when the client was never initialised or has gone away.
"""

import logging

from redis.asyncio import Redis, from_url

from app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect to Redis. Called from the application lifespan."""
    global redis_client
    client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await client.ping()
    redis_client = client
    logger.info("Redis connected")
    return client


def get_redis() -> Redis | None:
    """Return the shared client, or None when Redis is not in use."""
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
