"""Cache factory.

Builds the process-wide cache backend from ``settings.redis_url``:
- ``redis://`` / ``rediss://`` URLs produce a RedisCache
- ``memory://`` produces a MemoryCache (single process only)
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from canvasvault.core.cache.base import CacheBackend
from canvasvault.core.cache.memory_cache import MemoryCache
from canvasvault.core.cache.redis_cache import RedisCache
from canvasvault.core.config import get_settings

logger = logging.getLogger(__name__)

# Singleton cache instance
_cache_instance: Optional[CacheBackend] = None


def get_cache() -> CacheBackend:
    """Get singleton cache instance.

    Returns:
        CacheBackend instance (RedisCache or MemoryCache)

    Example:
        >>> cache = get_cache()
        >>> await cache.set("user:otp:42", "123456", 300)
    """
    global _cache_instance

    if _cache_instance is None:
        settings = get_settings()

        if settings.redis_url.startswith("memory://"):
            _cache_instance = MemoryCache()
            logger.warning("Using in-process cache; session markers are not shared")
        else:
            redis_client = Redis.from_url(
                settings.redis_url,
                decode_responses=True,  # Return strings, not bytes
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            _cache_instance = RedisCache(redis_client)

    return _cache_instance


async def close_cache() -> None:
    """Close cache connection and cleanup resources.

    Should be called during application shutdown.
    """
    global _cache_instance

    if _cache_instance is not None:
        await _cache_instance.close()
        _cache_instance = None
        logger.info("Cache closed")
