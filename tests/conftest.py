"""Pytest configuration and shared fixtures.

The environment is configured before anything from ``canvasvault`` is
imported, because settings are loaded (and cached) on first use:

- SQLite in memory (aiosqlite) instead of PostgreSQL
- ``memory://`` cache instead of Redis
- Minimum bcrypt rounds to keep hashing fast

Fixtures:
- settings: Cached Settings built from the test environment
- engine / session_maker / db_session: Isolated in-memory database per test
- cache: Fresh MemoryCache per test
- app / client: Application with database and cache overridden, driven
  through ``httpx.AsyncClient`` over ASGI
"""

import asyncio
import os

os.environ.update(
    {
        "ENVIRONMENT": "testing",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "REDIS_URL": "memory://",
        "SECRET_KEY": "test-secret-key-that-is-at-least-32-characters",
        "ENCRYPTION_KEY": "0123456789abcdef0123456789abcdef",
        "BCRYPT_ROUNDS": "4",
        "GEMINI_API_KEY": "system-gemini-key",
        "PERPLEXITY_API_KEY": "system-perplexity-key",
        "FRONTEND_URL": "https://canvas.example.com",
    }
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from canvasvault.core.cache import MemoryCache  # noqa: E402
from canvasvault.core.config import Settings, get_settings  # noqa: E402
from canvasvault.core.database import get_session, init_db  # noqa: E402
from canvasvault.models.user import User  # noqa: E402
from canvasvault.services.password_service import PasswordService  # noqa: E402

TEST_PASSWORD = "password123"


# Pytest markers for different test types
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line(
        "markers", "integration: Tests against an in-process database and cache"
    )
    config.addinivalue_line("markers", "api: HTTP tests through the ASGI app")


def pytest_collection_modifyitems(config, items):
    """Automatically add asyncio marker to async test functions."""
    for item in items:
        if asyncio.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return get_settings()


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all tables created.

    StaticPool keeps the single in-memory connection alive for the whole
    test; every session shares it.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


# =============================================================================
# Cache
# =============================================================================


@pytest.fixture
def cache() -> MemoryCache:
    """Fresh in-process cache (bypasses the process-wide singleton)."""
    return MemoryCache()


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user_factory(session_maker, settings):
    """Create users directly in the database.

    Usage:
        user = await user_factory(email="a@b.com", is_email_verified=True)
    """
    password_service = PasswordService(settings.bcrypt_rounds)
    counter = {"n": 0}

    async def _create(
        email: str | None = None,
        password: str = TEST_PASSWORD,
        name: str = "Test User",
        is_email_verified: bool = True,
        block: bool = False,
        ai_credits: int = 10,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"user{counter['n']}@example.com",
            password_hash=password_service.hash_password(password),
            is_email_verified=is_email_verified,
            block=block,
            ai_credits=ai_credits,
        )
        async with session_maker() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _create


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(session_maker, cache, settings):
    """Application wired to the test database and cache.

    Each test gets its own app instance, so rate limit counters start empty.
    """
    from canvasvault.api.dependencies import get_cache_backend
    from canvasvault.main import create_app

    application = create_app(settings)

    async def _get_test_session():
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_session] = _get_test_session
    application.dependency_overrides[get_cache_backend] = lambda: cache
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client talking to the app over ASGI (no network)."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client


@pytest.fixture
def fixed_otp(monkeypatch) -> str:
    """Make every generated OTP ``123456``."""
    monkeypatch.setattr(
        "canvasvault.services.otp_service.generate_otp", lambda: "123456"
    )
    return "123456"
