"""Shared fixtures for HTTP tests."""

import json
from dataclasses import dataclass

import pytest

TEST_PASSWORD = "password123"


@dataclass
class LoggedIn:
    user_id: int
    email: str
    token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def login(client, user_factory):
    """Create a verified user and log in through the API.

    Usage:
        session = await login(email="a@b.com")
        await client.get("/api/v1/user", headers=session.headers)
    """

    async def _login(email: str | None = None, **user_fields) -> LoggedIn:
        user = await user_factory(email=email, **user_fields)
        response = await client.post(
            "/api/v1/user/login",
            json={"email": user.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 200, response.text
        return LoggedIn(
            user_id=user.id,
            email=user.email,
            token=response.json()["data"]["token"],
            refresh_token=response.cookies["refresh_token"],
        )

    return _login


@pytest.fixture
def mail_jobs(cache, settings):
    """Read the jobs pushed onto the mail queue so far."""

    def _jobs() -> list[dict]:
        return [json.loads(raw) for raw in cache.lists.get(settings.mail_queue_name, [])]

    return _jobs
