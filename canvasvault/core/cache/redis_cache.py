"""Redis implementation of CacheBackend.

Keys written here are either namespaced plain keys (``user:otp:{id}``) or
content-addressed session marker hashes; raw tokens never appear in a key.
"""

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from canvasvault.core.cache.base import CacheBackend, CacheError

logger = logging.getLogger(__name__)


class RedisCache(CacheBackend):
    """Redis implementation of cache backend.

    Attributes:
        client: Redis async client (created with ``decode_responses=True``)
    """

    def __init__(self, redis_client: Redis):
        """Initialize Redis cache with client.

        Args:
            redis_client: Async Redis client instance
        """
        self.client = redis_client
        logger.info("Redis cache initialized")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.setex(key, ttl_seconds, value)
            logger.debug(f"Cache set: {key} (TTL: {ttl_seconds}s)")
        except RedisError as e:
            logger.error(f"Redis SET failed for key {key}: {e}")
            raise CacheError(f"Failed to set cache key: {key}") from e

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for key {key}: {e}")
            raise CacheError(f"Failed to get cache key: {key}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
            logger.debug(f"Cache delete: {key}")
        except RedisError as e:
            logger.error(f"Redis DELETE failed for key {key}: {e}")
            raise CacheError(f"Failed to delete cache key: {key}") from e

    async def exists(self, key: str) -> bool:
        try:
            result = await self.client.exists(key)
            return result > 0
        except RedisError as e:
            logger.error(f"Redis EXISTS failed for key {key}: {e}")
            raise CacheError(f"Failed to check cache key existence: {key}") from e

    async def push(self, key: str, value: str) -> None:
        try:
            await self.client.rpush(key, value)
        except RedisError as e:
            logger.error(f"Redis RPUSH failed for key {key}: {e}")
            raise CacheError(f"Failed to push to cache list: {key}") from e

    async def close(self) -> None:
        """Close Redis connection.

        Should be called during application shutdown.
        """
        try:
            await self.client.aclose()
            logger.info("Redis cache connection closed")
        except RedisError as e:
            logger.warning(f"Error closing Redis connection: {e}")
