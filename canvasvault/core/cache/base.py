"""Cache abstraction for one-time codes, session markers and the mail queue.

Design Decision:
- Services depend on this interface, never on Redis directly
- Redis backs production; an in-process implementation serves single-process
  deployments and tests
- Rate limiting has its own counting store (different concern, different
  lifecycle)
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheBackend(ABC):
    """Abstract cache backend.

    This interface defines the minimal operations the auth subsystem needs:
    TTL'd key-value entries (OTPs, reset tokens, session markers) and a list
    push used by the mail queue producer.
    """

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Set key-value pair with TTL.

        Args:
            key: Cache key (e.g., 'user:otp:42')
            value: Cache value
            ttl_seconds: Time to live in seconds

        Raises:
            CacheError: If cache operation fails
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get value by key.

        Args:
            key: Cache key

        Returns:
            Value if exists, None otherwise

        Raises:
            CacheError: If cache operation fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key from cache.

        Args:
            key: Cache key

        Raises:
            CacheError: If cache operation fails
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists.

        Args:
            key: Cache key

        Returns:
            True if key exists, False otherwise

        Raises:
            CacheError: If cache operation fails
        """
        pass

    @abstractmethod
    async def push(self, key: str, value: str) -> None:
        """Append a value to the list stored at key.

        Args:
            key: List key (e.g., 'queue:mail')
            value: Serialized item

        Raises:
            CacheError: If cache operation fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close cache connection and cleanup resources.

        Should be called during application shutdown.
        """
        pass


class CacheError(Exception):
    """Base exception for cache operations."""

    pass
