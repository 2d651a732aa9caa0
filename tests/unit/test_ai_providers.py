"""Unit tests for AI provider clients and API key validation.

HTTP is mocked with pytest-httpx; no provider is contacted.
"""

import json
import re

import httpx
import pytest

from canvasvault.core.errors import AIProviderError
from canvasvault.services.ai.key_validation import ApiKeyValidationService
from canvasvault.services.ai.providers import (
    BaseAIProvider,
    GeminiProvider,
    GenerationOptions,
    PerplexityProvider,
    get_provider,
    strip_citations,
)

GEMINI_URL = re.compile(r"https://generativelanguage\.googleapis\.com/v1beta/models.*")
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"


# =============================================================================
# Gemini
# =============================================================================


@pytest.mark.unit
class TestGeminiProvider:
    async def test_generate_success(self, httpx_mock):
        httpx_mock.add_response(
            url=GEMINI_URL,
            method="POST",
            json={
                "candidates": [
                    {
                        "content": {"parts": [{"text": "Hello "}, {"text": "world"}]},
                        "finishReason": "STOP",
                    }
                ],
                "usageMetadata": {"totalTokenCount": 12},
            },
        )

        response = await GeminiProvider().generate(
            "Say hello",
            "gemini-2.0-flash-exp",
            "user-key",
            GenerationOptions(temperature=0.5, max_tokens=64),
        )

        assert response.content == "Hello world"
        assert response.provider == "gemini"
        assert response.model == "gemini-2.0-flash-exp"
        assert response.tokens_used == 12
        assert response.metadata["finishReason"] == "STOP"

        request = httpx_mock.get_request()
        assert request.url.path == "/v1beta/models/gemini-2.0-flash-exp:generateContent"
        assert request.url.params["key"] == "user-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "Say hello"
        assert body["generationConfig"] == {"temperature": 0.5, "maxOutputTokens": 64}

    async def test_generation_config_omitted_without_options(self, httpx_mock):
        httpx_mock.add_response(
            url=GEMINI_URL,
            json={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]},
        )

        await GeminiProvider().generate("hi", "gemini-exp-1206", "k")

        body = json.loads(httpx_mock.get_request().content)
        assert "generationConfig" not in body

    async def test_unsupported_model(self):
        with pytest.raises(AIProviderError) as exc_info:
            await GeminiProvider().generate("hi", "gemini-0.1", "k")
        assert exc_info.value.status_code == 400

    async def test_provider_error_status_passed_through(self, httpx_mock):
        httpx_mock.add_response(
            url=GEMINI_URL,
            status_code=403,
            json={"error": {"message": "API key not valid"}},
        )

        with pytest.raises(AIProviderError) as exc_info:
            await GeminiProvider().generate("hi", "gemini-2.0-flash-exp", "bad")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Gemini API error: API key not valid"
        assert exc_info.value.data == {"provider": "gemini"}

    async def test_empty_response(self, httpx_mock):
        httpx_mock.add_response(url=GEMINI_URL, json={"candidates": []})

        with pytest.raises(AIProviderError) as exc_info:
            await GeminiProvider().generate("hi", "gemini-2.0-flash-exp", "k")
        assert exc_info.value.status_code == 500

    async def test_timeout(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=GEMINI_URL)

        with pytest.raises(AIProviderError) as exc_info:
            await GeminiProvider().generate("hi", "gemini-2.0-flash-exp", "k")
        assert exc_info.value.status_code == 504

    async def test_connection_error(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=GEMINI_URL)

        with pytest.raises(AIProviderError) as exc_info:
            await GeminiProvider().generate("hi", "gemini-2.0-flash-exp", "k")
        assert exc_info.value.status_code == 500


# =============================================================================
# Perplexity
# =============================================================================


@pytest.mark.unit
class TestPerplexityProvider:
    async def test_generate_strips_citations(self, httpx_mock):
        httpx_mock.add_response(
            url=PERPLEXITY_URL,
            method="POST",
            json={
                "choices": [
                    {
                        "message": {"content": "Paris[1][2] is the capital of France.[3]"},
                        "finish_reason": "stop",
                    }
                ],
                "usage": {"total_tokens": 30},
                "citations": ["https://a", "https://b", "https://c"],
            },
        )

        response = await PerplexityProvider().generate(
            "Capital of France?", "sonar", "pplx-key", GenerationOptions(max_tokens=50)
        )

        assert response.content == "Paris is the capital of France."
        assert response.tokens_used == 30
        assert response.metadata["citations"] == ["https://a", "https://b", "https://c"]

        request = httpx_mock.get_request()
        assert request.headers["authorization"] == "Bearer pplx-key"
        body = json.loads(request.content)
        assert body["model"] == "sonar"
        assert body["messages"][0]["role"] == "system"
        assert body["messages"][1] == {"role": "user", "content": "Capital of France?"}
        assert body["max_tokens"] == 50
        assert "temperature" not in body

    async def test_list_content(self, httpx_mock):
        httpx_mock.add_response(
            url=PERPLEXITY_URL,
            json={
                "choices": [
                    {
                        "message": {
                            "content": [
                                {"type": "text", "text": "Part one. "},
                                {"type": "image", "url": "ignored"},
                                {"type": "text", "text": "Part two."},
                            ]
                        }
                    }
                ]
            },
        )

        response = await PerplexityProvider().generate("q", "sonar-pro", "k")
        assert response.content == "Part one. Part two."

    async def test_rate_limited(self, httpx_mock):
        httpx_mock.add_response(
            url=PERPLEXITY_URL, status_code=429, json={"error": "rate limited"}
        )

        with pytest.raises(AIProviderError) as exc_info:
            await PerplexityProvider().generate("q", "sonar", "k")
        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Perplexity API error: rate limited"


@pytest.mark.unit
class TestProviderHelpers:
    def test_strip_citations(self):
        assert strip_citations("A[1] B[2][3] C") == "A B C"
        assert strip_citations("[10]") == ""

    def test_get_provider(self):
        assert isinstance(get_provider("gemini"), GeminiProvider)
        assert isinstance(get_provider("perplexity", timeout=5), PerplexityProvider)

    def test_get_unknown_provider(self):
        with pytest.raises(AIProviderError) as exc_info:
            get_provider("openai")
        assert exc_info.value.status_code == 400

    def test_base_provider_is_abstract(self):
        with pytest.raises(TypeError, match="generate"):
            BaseAIProvider()


# =============================================================================
# API key validation
# =============================================================================


@pytest.mark.unit
class TestApiKeyValidation:
    async def test_gemini_valid(self, httpx_mock):
        httpx_mock.add_response(url=GEMINI_URL, method="GET", json={"models": []})

        assert await ApiKeyValidationService().validate("gemini", "good")

        request = httpx_mock.get_request()
        assert request.url.params["key"] == "good"
        assert request.url.params["page_size"] == "1"

    async def test_gemini_rejected(self, httpx_mock):
        httpx_mock.add_response(url=GEMINI_URL, method="GET", status_code=400)

        assert not await ApiKeyValidationService().validate("gemini", "bad")

    async def test_perplexity_one_token_completion(self, httpx_mock):
        httpx_mock.add_response(url=PERPLEXITY_URL, method="POST", json={"choices": []})

        assert await ApiKeyValidationService().validate("perplexity", "good")

        body = json.loads(httpx_mock.get_request().content)
        assert body == {
            "model": "sonar",
            "messages": [{"role": "user", "content": "Hi"}],
            "max_tokens": 1,
        }

    async def test_network_failure_is_invalid(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=PERPLEXITY_URL)

        assert not await ApiKeyValidationService().validate("perplexity", "k")

    async def test_unknown_provider_is_invalid(self):
        assert not await ApiKeyValidationService().validate("openai", "k")
