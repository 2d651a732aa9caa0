"""Rate limiting: fixed-window counters behind an injectable store."""

import logging

from redis.asyncio import Redis

from canvasvault.core.config import Settings
from canvasvault.rate_limiter.limiter import RateLimiter, RateLimitResult
from canvasvault.rate_limiter.storage import (
    MemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
)

logger = logging.getLogger(__name__)


def create_rate_limit_store(settings: Settings) -> RateLimitStore:
    """Build the store selected by ``settings.rate_limit_backend``."""
    if settings.rate_limit_backend == "redis":
        client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return RedisRateLimitStore(client)
    logger.info("Using in-process rate limit store")
    return MemoryRateLimitStore()


__all__ = [
    "MemoryRateLimitStore",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimiter",
    "RedisRateLimitStore",
    "create_rate_limit_store",
]
