"""Fixed-window rate limiter.

Usage:
    limiter = RateLimiter(store, max_requests=10, window_seconds=900, prefix="auth")
    headers = await limiter.check(client_ip)   # raises RateLimitExceededError
"""

import logging
from dataclasses import dataclass

from canvasvault.core.errors import RateLimitExceededError
from canvasvault.rate_limiter.storage import RateLimitStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counted request."""

    allowed: bool
    limit: int
    remaining: int
    reset_in: int

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers


class RateLimiter:
    """Limit hits per identifier per window.

    Attributes:
        store: Counter store.
        max_requests: Hits allowed per window.
        window_seconds: Window length.
        prefix: Namespace separating limiters that share a store.
    """

    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int,
        window_seconds: int,
        prefix: str = "default",
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix

    async def hit(self, identifier: str) -> RateLimitResult:
        count, reset_in = await self.store.hit(
            f"{self.prefix}:{identifier}", self.window_seconds
        )
        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_in=reset_in,
        )

    async def check(self, identifier: str) -> dict[str, str]:
        """Count a hit and enforce the limit.

        Args:
            identifier: Client identifier (usually the IP address).

        Returns:
            Rate limit headers for the response.

        Raises:
            RateLimitExceededError: Limit exceeded in the current window.
        """
        result = await self.hit(identifier)
        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded: {self.prefix}:{identifier} "
                f"(limit {self.max_requests}/{self.window_seconds}s)"
            )
            raise RateLimitExceededError(
                headers=result.headers(),
                data={"retryAfter": result.reset_in},
            )
        return result.headers()
