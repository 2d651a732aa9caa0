"""AI provider clients.

Each provider turns (input, model, api key, options) into a normalized
``AIResponse``. Transport is plain REST over ``httpx.AsyncClient``; failures
are raised as ``AIProviderError`` carrying the provider's HTTP status (or
500/504 when no status is available).

Providers:
    - GeminiProvider: ``POST /v1beta/models/{model}:generateContent``
    - PerplexityProvider: ``POST /chat/completions`` (citation markers stripped)
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog

from canvasvault.core.errors import AIProviderError
from canvasvault.services.ai.constants import PROVIDER_MODELS

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
PERPLEXITY_BASE_URL = "https://api.perplexity.ai"
PERPLEXITY_SYSTEM_PROMPT = (
    "You are a helpful assistant that provides concise, accurate answers."
)

# [1], [2][3], ...
CITATION_PATTERN = re.compile(r"\[\d+\](\[\d+\])*")


@dataclass
class GenerationOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class AIResponse:
    """Normalized provider response.

    Attributes:
        content: Generated text.
        provider: Provider name.
        model: Model that produced the text.
        tokens_used: Total tokens reported by the provider, if any.
        metadata: Provider-specific extras (finish reason, citations, ...).
    """

    content: str
    provider: str
    model: str
    tokens_used: Optional[int] = None
    metadata: dict[str, Any] = field(default_factory=dict)


def strip_citations(text: str) -> str:
    """Remove ``[n]`` citation markers from text.

    Example:
        >>> strip_citations("Paris[1][2] is the capital.")
        'Paris is the capital.'
    """
    return CITATION_PATTERN.sub("", text).strip()


class BaseAIProvider(ABC):
    """Shared HTTP handling for provider clients.

    Attributes:
        name: Provider identifier.
        base_url: Provider API base URL.
        timeout: HTTP request timeout in seconds.
    """

    name: str = ""
    base_url: str = ""

    def __init__(self, timeout: float = 30.0, base_url: str | None = None):
        self.timeout = timeout
        if base_url is not None:
            self.base_url = base_url.rstrip("/")
        self._logger = structlog.get_logger(f"{self.name}_provider")

    def is_model_supported(self, model: str) -> bool:
        return model in PROVIDER_MODELS.get(self.name, ())

    def _require_supported(self, model: str) -> None:
        if not self.is_model_supported(model):
            supported = ", ".join(PROVIDER_MODELS.get(self.name, ()))
            raise AIProviderError(
                f'Model "{model}" is not supported by {self.name.title()}. '
                f"Supported models: {supported}",
                self.name,
                400,
            )

    async def _post(
        self,
        url: str,
        *,
        json_data: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        operation: str,
    ) -> dict[str, Any]:
        """POST JSON and return the parsed body, raising AIProviderError on failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url, json=json_data, headers=headers, params=params
                )
        except httpx.TimeoutException as e:
            self._logger.warning(
                f"{self.name}_api_timeout", operation=operation, error=type(e).__name__
            )
            raise AIProviderError(
                f"{self.name.title()} API request timed out", self.name, 504
            ) from e
        except httpx.RequestError as e:
            self._logger.warning(
                f"{self.name}_api_connection_error",
                operation=operation,
                error=type(e).__name__,
            )
            raise AIProviderError(
                f"Failed to connect to {self.name.title()} API", self.name, 500
            ) from e

        if response.status_code != 200:
            self._logger.warning(
                f"{self.name}_api_error",
                operation=operation,
                status_code=response.status_code,
            )
            raise AIProviderError(
                f"{self.name.title()} API error: {self._error_message(response)}",
                self.name,
                response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            self._logger.error(f"{self.name}_api_invalid_json", operation=operation)
            raise AIProviderError(
                f"{self.name.title()} returned an invalid response", self.name, 500
            ) from e
        if not isinstance(body, dict):
            raise AIProviderError(
                f"{self.name.title()} returned an invalid response", self.name, 500
            )
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        return f"HTTP {response.status_code}"

    @abstractmethod
    async def generate(
        self,
        input_text: str,
        model: str,
        api_key: str,
        options: GenerationOptions | None = None,
    ) -> AIResponse:
        """Send one prompt and return the normalized response."""


class GeminiProvider(BaseAIProvider):
    """Google Gemini over the Generative Language REST API."""

    name = "gemini"
    base_url = GEMINI_BASE_URL

    async def generate(
        self,
        input_text: str,
        model: str,
        api_key: str,
        options: GenerationOptions | None = None,
    ) -> AIResponse:
        self._require_supported(model)
        options = options or GenerationOptions()

        generation_config: dict[str, Any] = {}
        if options.temperature is not None:
            generation_config["temperature"] = options.temperature
        if options.max_tokens is not None:
            generation_config["maxOutputTokens"] = options.max_tokens

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": input_text}]}],
        }
        if generation_config:
            payload["generationConfig"] = generation_config

        body = await self._post(
            f"{self.base_url}/models/{model}:generateContent",
            json_data=payload,
            params={"key": api_key},
            operation="generate_content",
        )

        candidates = body.get("candidates") or []
        first = candidates[0] if candidates else {}
        parts = (first.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)
        if not content:
            raise AIProviderError("Gemini returned an empty response", self.name, 500)

        return AIResponse(
            content=content,
            provider=self.name,
            model=model,
            tokens_used=(body.get("usageMetadata") or {}).get("totalTokenCount"),
            metadata={
                "candidateCount": len(candidates),
                "finishReason": first.get("finishReason"),
            },
        )


class PerplexityProvider(BaseAIProvider):
    """Perplexity chat completions (OpenAI-compatible)."""

    name = "perplexity"
    base_url = PERPLEXITY_BASE_URL

    async def generate(
        self,
        input_text: str,
        model: str,
        api_key: str,
        options: GenerationOptions | None = None,
    ) -> AIResponse:
        self._require_supported(model)
        options = options or GenerationOptions()

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": PERPLEXITY_SYSTEM_PROMPT},
                {"role": "user", "content": input_text},
            ],
        }
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens

        body = await self._post(
            f"{self.base_url}/chat/completions",
            json_data=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            operation="chat_completion",
        )

        choices = body.get("choices") or []
        first = choices[0] if choices else {}
        raw_content = (first.get("message") or {}).get("content")
        if isinstance(raw_content, list):
            # Content chunks; keep the text ones
            raw_content = "".join(
                chunk.get("text", "")
                for chunk in raw_content
                if isinstance(chunk, dict) and chunk.get("type") == "text"
            )
        content = strip_citations(raw_content or "")
        if not content:
            raise AIProviderError("Perplexity returned an empty response", self.name, 500)

        return AIResponse(
            content=content,
            provider=self.name,
            model=model,
            tokens_used=(body.get("usage") or {}).get("total_tokens"),
            metadata={
                "finishReason": first.get("finish_reason"),
                "citations": body.get("citations"),
            },
        )


PROVIDERS: dict[str, type[BaseAIProvider]] = {
    GeminiProvider.name: GeminiProvider,
    PerplexityProvider.name: PerplexityProvider,
}


def get_provider(name: str, timeout: float = 30.0) -> BaseAIProvider:
    """Build the client for a provider name.

    Raises:
        AIProviderError: Unknown provider (400)
    """
    provider_class = PROVIDERS.get(name)
    if provider_class is None:
        raise AIProviderError(f"Unsupported AI provider: {name}", name, 400)
    return provider_class(timeout=timeout)
