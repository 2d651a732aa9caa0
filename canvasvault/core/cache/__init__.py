"""Cache abstraction for OTPs, session markers and queued jobs."""

from canvasvault.core.cache.base import CacheBackend, CacheError
from canvasvault.core.cache.factory import close_cache, get_cache
from canvasvault.core.cache.memory_cache import MemoryCache
from canvasvault.core.cache.redis_cache import RedisCache

__all__ = [
    "CacheBackend",
    "CacheError",
    "MemoryCache",
    "RedisCache",
    "close_cache",
    "get_cache",
]
