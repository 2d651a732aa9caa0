"""In-process implementation of CacheBackend.

Suitable for a single-process deployment (``REDIS_URL=memory://``) and for
tests. Expiry is evaluated lazily on read against ``time.monotonic``.
"""

import time
from typing import Callable, Optional

from canvasvault.core.cache.base import CacheBackend


class MemoryCache(CacheBackend):
    """Dictionary-backed cache with per-key expiry.

    Attributes:
        lists: Values pushed with ``push``, keyed by list name.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self.lists: dict[str, list[str]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self.clock() + ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def push(self, key: str, value: str) -> None:
        self.lists.setdefault(key, []).append(value)

    async def close(self) -> None:
        self._entries.clear()
        self.lists.clear()
