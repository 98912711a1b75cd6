"""
Tests for sliding-window rate limiting.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import RedisError

from app.core import rate_limit
from app.core.rate_limit import RateLimitExceeded, check_rate_limit, enforce_rate_limit


class TestMemoryFallback:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        results = [await check_rate_limit("login:a@example.com", 3, 60) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        for _ in range(2):
            await check_rate_limit("super_admin:approve:1", 2, 60)

        assert await check_rate_limit("super_admin:approve:1", 2, 60) is False
        assert await check_rate_limit("super_admin:approve:2", 2, 60) is True

    @pytest.mark.asyncio
    async def test_enforce_raises_429(self):
        await enforce_rate_limit("reverify:1", 1, 900)

        with pytest.raises(RateLimitExceeded) as exc_info:
            await enforce_rate_limit("reverify:1", 1, 900)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "900"

    @pytest.mark.asyncio
    async def test_idle_keys_are_forgotten(self):
        with patch("app.core.rate_limit.time.time", return_value=1000.0):
            await check_rate_limit("login:idle@example.com", 5, 60)
        assert "login:idle@example.com" in rate_limit._memory_store

        with patch("app.core.rate_limit.time.time", return_value=1061.0):
            await check_rate_limit("login:other@example.com", 5, 60)

        assert "login:idle@example.com" not in rate_limit._memory_store
        assert "login:idle@example.com" not in rate_limit._memory_expiry
        assert "login:other@example.com" in rate_limit._memory_store


def _redis_client(execute: AsyncMock) -> MagicMock:
    pipeline = MagicMock()
    pipeline.execute = execute
    client = MagicMock()
    client.pipeline.return_value = pipeline
    return client


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_uses_redis_count(self):
        client = _redis_client(AsyncMock(return_value=[0, 5, 1, True]))

        with patch("app.core.rate_limit.get_redis", return_value=client):
            assert await check_rate_limit("login:a@example.com", 5, 60) is False
            client.pipeline.return_value.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_memory_on_redis_error(self):
        client = _redis_client(AsyncMock(side_effect=RedisError("connection lost")))

        with patch("app.core.rate_limit.get_redis", return_value=client):
            assert await check_rate_limit("login:a@example.com", 1, 60) is True
            assert await check_rate_limit("login:a@example.com", 1, 60) is False
