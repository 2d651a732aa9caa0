"""Validate user-supplied provider API keys before they are stored.

Each check is the cheapest authenticated call the provider offers. Any
failure (bad status, timeout, connection error, unknown provider) means
"invalid"; the key itself is never logged.
"""

import httpx
import structlog

from canvasvault.services.ai.providers import GEMINI_BASE_URL, PERPLEXITY_BASE_URL

logger = structlog.get_logger(__name__)


class ApiKeyValidationService:
    """Check a candidate key against the provider API.

    Attributes:
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def validate(self, provider: str, api_key: str) -> bool:
        """Return True if the provider accepts the key."""
        try:
            if provider == "gemini":
                return await self._validate_gemini(api_key)
            if provider == "perplexity":
                return await self._validate_perplexity(api_key)
        except httpx.HTTPError as e:
            logger.warning(
                "api_key_validation_failed", provider=provider, error=type(e).__name__
            )
            return False
        logger.warning("api_key_validation_unknown_provider", provider=provider)
        return False

    async def _validate_gemini(self, api_key: str) -> bool:
        # List-models is authenticated and free
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{GEMINI_BASE_URL}/models",
                params={"page_size": "1", "key": api_key},
            )
        if response.status_code != 200:
            logger.warning(
                "api_key_rejected", provider="gemini", status_code=response.status_code
            )
        return response.status_code == 200

    async def _validate_perplexity(self, api_key: str) -> bool:
        # No dedicated endpoint; a one-token completion is the cheapest check
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{PERPLEXITY_BASE_URL}/chat/completions",
                json={
                    "model": "sonar",
                    "messages": [{"role": "user", "content": "Hi"}],
                    "max_tokens": 1,
                },
                headers={"Authorization": f"Bearer {api_key}"},
            )
        if response.status_code != 200:
            logger.warning(
                "api_key_rejected",
                provider="perplexity",
                status_code=response.status_code,
            )
        return response.status_code == 200
