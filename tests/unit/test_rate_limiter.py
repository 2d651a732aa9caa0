"""Unit tests for the fixed-window rate limiter and its stores.

Tests cover:
- Memory store windows (injectable clock)
- Redis store pipeline and fail-open behavior (mocked client)
- RateLimiter headers and 429 error
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from canvasvault.core.errors import RateLimitExceededError
from canvasvault.rate_limiter import (
    MemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    create_rate_limit_store,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
class TestMemoryRateLimitStore:
    async def test_counts_within_window(self):
        clock = FakeClock()
        store = MemoryRateLimitStore(clock=clock)

        assert await store.hit("k", 900) == (1, 900)
        clock.now += 100
        assert await store.hit("k", 900) == (2, 800)

    async def test_window_not_extended_by_hits_and_resets(self):
        clock = FakeClock()
        store = MemoryRateLimitStore(clock=clock)

        await store.hit("k", 60)
        clock.now += 59
        assert (await store.hit("k", 60))[0] == 2
        clock.now += 1
        assert await store.hit("k", 60) == (1, 60)

    async def test_keys_independent(self):
        store = MemoryRateLimitStore(clock=FakeClock())

        await store.hit("a", 60)
        assert (await store.hit("b", 60))[0] == 1

    async def test_reset(self):
        store = MemoryRateLimitStore(clock=FakeClock())

        await store.hit("k", 60)
        await store.reset("k")
        assert (await store.hit("k", 60))[0] == 1


def mock_redis(execute_result=None, execute_error=None) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=execute_result, side_effect=execute_error)
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)

    client = MagicMock()
    client.pipeline.return_value = pipe
    client.delete = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.mark.unit
class TestRedisRateLimitStore:
    async def test_hit_uses_incr_and_expire_nx(self):
        client = mock_redis(execute_result=[3, True, 842])
        store = RedisRateLimitStore(client)

        assert await store.hit("auth:1.2.3.4", 900) == (3, 842)

        pipe = client.pipeline.return_value
        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("rate_limit:auth:1.2.3.4")
        pipe.expire.assert_called_once_with("rate_limit:auth:1.2.3.4", 900, nx=True)

    async def test_missing_ttl_falls_back_to_window(self):
        store = RedisRateLimitStore(mock_redis(execute_result=[1, True, -1]))
        assert await store.hit("k", 900) == (1, 900)

    async def test_fails_open(self):
        store = RedisRateLimitStore(
            mock_redis(execute_error=RedisConnectionError("down"))
        )
        assert await store.hit("k", 900) == (1, 900)

    async def test_close(self):
        client = mock_redis()
        await RedisRateLimitStore(client).close()
        client.aclose.assert_awaited_once()


@pytest.mark.unit
class TestRateLimiter:
    async def test_headers_while_allowed(self):
        limiter = RateLimiter(MemoryRateLimitStore(clock=FakeClock()), 2, 900, "auth")

        headers = await limiter.check("1.2.3.4")

        assert headers == {
            "X-RateLimit-Limit": "2",
            "X-RateLimit-Remaining": "1",
            "X-RateLimit-Reset": "900",
        }

    async def test_exceeded(self):
        limiter = RateLimiter(MemoryRateLimitStore(clock=FakeClock()), 2, 900, "auth")
        await limiter.check("1.2.3.4")
        await limiter.check("1.2.3.4")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check("1.2.3.4")

        error = exc_info.value
        assert error.status_code == 429
        assert error.headers["X-RateLimit-Remaining"] == "0"
        assert error.headers["Retry-After"] == "900"
        assert error.data == {"retryAfter": 900}

    async def test_prefixes_share_store_without_colliding(self):
        store = MemoryRateLimitStore(clock=FakeClock())
        login = RateLimiter(store, 1, 900, "login")
        signup = RateLimiter(store, 1, 900, "signup")

        await login.check("ip")
        await signup.check("ip")


@pytest.mark.unit
def test_store_factory(settings):
    assert isinstance(create_rate_limit_store(settings), MemoryRateLimitStore)

    redis_settings = settings.model_copy(
        update={"rate_limit_backend": "redis", "redis_url": "redis://localhost:6379/0"}
    )
    assert isinstance(create_rate_limit_store(redis_settings), RedisRateLimitStore)
