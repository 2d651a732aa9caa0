"""Session markers: cache-resident flags that keep access tokens revocable.

A marker exists for every live access token. Its key is the SHA-256 digest of
``session:{user_id}:{device_id}:{jti}``, so raw identifiers are never stored
in a searchable form. Deleting the marker revokes the token immediately even
though its signature stays valid until ``exp``.
"""

import hashlib
import logging

from canvasvault.core.cache import CacheBackend

logger = logging.getLogger(__name__)


def hashed_key(*parts: str | int) -> str:
    """Build a content-addressed cache key.

    Args:
        *parts: Key components, joined with ``:`` before hashing.

    Returns:
        Hex SHA-256 digest of the joined components.

    Example:
        >>> hashed_key("session", 1, "dev", "jti") == hashed_key("session", 1, "dev", "jti")
        True
    """
    raw = ":".join(str(part) for part in parts)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SessionMarkerService:
    """Create, check and delete session markers.

    Attributes:
        cache: Cache backend holding the markers.
        ttl_seconds: Marker lifetime (the access token lifetime).
    """

    def __init__(self, cache: CacheBackend, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key_for(user_id: int, device_id: str, jti: str) -> str:
        return hashed_key("session", user_id, device_id, jti)

    async def activate(self, user_id: int, device_id: str, jti: str) -> None:
        """Write the marker for a freshly issued access token."""
        await self.cache.set(self.key_for(user_id, device_id, jti), "1", self.ttl_seconds)

    async def is_active(self, user_id: int, device_id: str, jti: str) -> bool:
        return await self.cache.exists(self.key_for(user_id, device_id, jti))

    async def revoke(self, user_id: int, device_id: str, jti: str) -> None:
        """Delete the marker so the access token is rejected from now on."""
        await self.cache.delete(self.key_for(user_id, device_id, jti))
        logger.debug(f"Session marker revoked for user {user_id} device {device_id}")
