"""HTTP tests for AI generation, credits and API key configuration.

Provider HTTP traffic is mocked with pytest-httpx.
"""

import re

import pytest

from canvasvault.models.ai_config import UserAIConfig
from canvasvault.services.ai.constants import MAX_INPUT_LENGTH

pytestmark = pytest.mark.api

GEMINI_GENERATE_URL = re.compile(
    r"https://generativelanguage\.googleapis\.com/v1beta/models/.+:generateContent.*"
)
GEMINI_MODELS_URL = re.compile(
    r"https://generativelanguage\.googleapis\.com/v1beta/models\?.*"
)

GEMINI_REPLY = {
    "candidates": [{"content": {"parts": [{"text": "Water evaporates."}]}}],
    "usageMetadata": {"totalTokenCount": 9},
}


class TestPublicEndpoints:
    async def test_constraints(self, client):
        response = await client.get("/api/v1/ai/constraints")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["creditCostPerRequest"] == 1
        assert set(data["supportedProviders"]) == {"gemini", "perplexity"}

    async def test_models_seeded(self, client):
        response = await client.get("/api/v1/ai/models")

        assert response.status_code == 200
        names = {(m["provider"], m["name"]) for m in response.json()["data"]}
        assert ("gemini", "gemini-2.0-flash-exp") in names

    async def test_credits_requires_auth(self, client):
        response = await client.get("/api/v1/ai/credits")
        assert response.status_code == 401


class TestGenerate:
    async def test_system_key_charges_one_credit(self, client, login, httpx_mock):
        session = await login(ai_credits=3)
        httpx_mock.add_response(url=GEMINI_GENERATE_URL, method="POST", json=GEMINI_REPLY)

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "Explain the water cycle"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["content"] == "Water evaporates."
        assert data["provider"] == "gemini"
        assert data["creditsUsed"] == 1
        assert data["remainingCredits"] == 2
        assert data["usingCustomKey"] is False
        assert httpx_mock.get_request().url.params["key"] == "system-gemini-key"

        response = await client.get("/api/v1/ai/credits", headers=session.headers)
        assert response.json()["data"] == {"credits": 2}

    async def test_out_of_credits(self, client, login, httpx_mock):
        session = await login(ai_credits=0)

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "Explain the water cycle"},
        )

        assert response.status_code == 402
        body = response.json()
        assert body["code"] == 402
        assert body["message"] == "Insufficient AI credits"
        assert body["data"] == {"required": 1, "available": 0}
        assert httpx_mock.get_requests() == []

    async def test_provider_failure_is_not_charged(self, client, login, httpx_mock):
        session = await login(ai_credits=1)
        httpx_mock.add_response(
            url=GEMINI_GENERATE_URL,
            method="POST",
            status_code=503,
            json={"error": {"message": "overloaded"}},
        )

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "Explain the water cycle"},
        )

        assert response.status_code == 503
        assert response.json()["code"] == 500
        credits = await client.get("/api/v1/ai/credits", headers=session.headers)
        assert credits.json()["data"] == {"credits": 1}

    async def test_user_key_is_free(self, client, login, httpx_mock):
        session = await login(ai_credits=0)
        await client.get("/api/v1/ai/models")
        httpx_mock.add_response(url=GEMINI_MODELS_URL, method="GET", json={"models": []})
        httpx_mock.add_response(url=GEMINI_GENERATE_URL, method="POST", json=GEMINI_REPLY)

        response = await client.post(
            "/api/v1/ai/config",
            headers=session.headers,
            json={
                "provider": "gemini",
                "model": "gemini-2.0-flash-exp",
                "apiKey": "AIza-user",
                "isDefault": True,
            },
        )
        assert response.status_code == 200
        assert response.json()["data"]["has_key"] is True
        assert "apiKey" not in response.json()["data"]

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "Explain the water cycle"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["usingCustomKey"] is True
        assert data["creditsUsed"] == 0
        assert data["remainingCredits"] == 0
        assert httpx_mock.get_requests()[-1].url.params["key"] == "AIza-user"

    async def test_input_too_long(self, client, login):
        session = await login()

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "x" * (MAX_INPUT_LENGTH + 1)},
        )

        assert response.status_code == 400
        assert response.json()["data"][0]["field"] == "input"


class TestUserConfig:
    async def test_rejected_key(self, client, login, httpx_mock):
        session = await login()
        await client.get("/api/v1/ai/models")
        httpx_mock.add_response(url=GEMINI_MODELS_URL, method="GET", status_code=400)

        response = await client.post(
            "/api/v1/ai/config",
            headers=session.headers,
            json={"provider": "gemini", "model": "gemini-2.0-flash-exp", "apiKey": "bad"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid API Key"

    async def test_list_and_delete(self, client, login):
        session = await login()
        await client.get("/api/v1/ai/models")
        body = {"provider": "perplexity", "model": "sonar"}

        response = await client.post("/api/v1/ai/config", headers=session.headers, json=body)
        assert response.status_code == 200

        configs = (await client.get("/api/v1/ai/config", headers=session.headers)).json()
        assert [(c["provider"], c["model"]) for c in configs["data"]] == [("perplexity", "sonar")]

        response = await client.request(
            "DELETE", "/api/v1/ai/config", headers=session.headers, json=body
        )
        assert response.status_code == 200

        response = await client.request(
            "DELETE", "/api/v1/ai/config", headers=session.headers, json=body
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Configuration not found"

    async def test_undecryptable_stored_key(self, client, login, session_maker, httpx_mock):
        session = await login()
        async with session_maker() as db:
            db.add(
                UserAIConfig(
                    user_id=session.user_id,
                    provider="gemini",
                    model="gemini-2.0-flash-exp",
                    encrypted_api_key="not-a-stored-key",
                    is_default=True,
                )
            )
            await db.commit()

        response = await client.post(
            "/api/v1/ai/generate",
            headers=session.headers,
            json={"input": "Explain the water cycle"},
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Stored API key could not be decrypted"
        assert httpx_mock.get_requests() == []
