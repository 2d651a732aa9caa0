"""Fixed-window counter stores for rate limiting.

A store answers one question atomically: "count this hit against ``key`` and
tell me the hit count in the current window and the seconds until the window
resets". The window starts at the first hit and is never extended by later
hits.

Fail-open strategy: if the backing store is unavailable the hit is reported
as the first of a fresh window, so an outage never blocks logins.
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RateLimitStore(ABC):
    """Abstract fixed-window counter store."""

    @abstractmethod
    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one hit for ``key``.

        Args:
            key: Bucket identifier (e.g., ``auth:203.0.113.7``).
            window_seconds: Window length used when the bucket is created.

        Returns:
            Tuple of (hits in the current window, seconds until reset).
        """

    async def reset(self, key: str) -> None:
        """Forget the bucket for ``key``."""

    async def close(self) -> None:
        """Release resources."""


class MemoryRateLimitStore(RateLimitStore):
    """In-process store (single worker and tests).

    Attributes:
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._buckets: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        async with self._lock:
            now = self.clock()
            count, reset_at = self._buckets.get(key, (0, 0.0))
            if reset_at <= now:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._buckets[key] = (count, reset_at)
            return count, max(1, math.ceil(reset_at - now))

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._buckets.pop(key, None)


class RedisRateLimitStore(RateLimitStore):
    """Redis store: ``INCR`` plus ``EXPIRE NX`` in one MULTI/EXEC transaction.

    Attributes:
        redis: Async Redis client (``decode_responses=True``).
        prefix: Key namespace.
    """

    def __init__(self, redis_client: Redis, prefix: str = "rate_limit"):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        redis_key = self._key(key)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, window_seconds, nx=True)
                pipe.ttl(redis_key)
                count, _, ttl = await pipe.execute()
        except RedisError as e:
            # Fail-open: allow request if Redis fails
            logger.error(
                f"Rate limit hit failed for key={key}: {e}. Failing open (allowing request)."
            )
            return 1, window_seconds

        reset_in = int(ttl) if ttl and int(ttl) > 0 else window_seconds
        logger.debug(f"Rate limit hit: key={key}, count={count}, reset_in={reset_in}s")
        return int(count), reset_in

    async def reset(self, key: str) -> None:
        try:
            await self.redis.delete(self._key(key))
        except RedisError as e:
            logger.error(f"Rate limit reset failed for key={key}: {e}")

    async def close(self) -> None:
        await self.redis.aclose()
