"""
Main FastAPI application entry point.

``create_app()`` builds the application: settings are loaded first (a missing
or invalid secret, datastore URL or encryption key aborts startup), then CORS,
exception handlers, the rate limit store and the v1 routers are wired.

Run with:
    uvicorn canvasvault.main:app --reload
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from canvasvault.api.errors import register_exception_handlers
from canvasvault.api.v1 import api_router
from canvasvault.core.cache import close_cache
from canvasvault.core.config import Settings, get_settings
from canvasvault.core.database import close_db, init_db
from canvasvault.core.logging import configure_logging
from canvasvault.rate_limiter import create_rate_limit_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: create tables outside production (migrations own production)
    - Shutdown: close the rate limit store, cache and database connections

    Args:
        app: FastAPI application instance.

    Yields:
        None during application lifetime.
    """
    settings: Settings = app.state.settings
    if not settings.is_production:
        await init_db()

    logger.info(f"{settings.app_name} started ({settings.environment.value})")
    yield

    await app.state.rate_limit_store.close()
    await close_cache()
    await close_db()
    logger.info(f"{settings.app_name} stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to cached settings from the environment)

    Returns:
        Configured FastAPI instance.

    Raises:
        pydantic.ValidationError: Required configuration missing or invalid.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Notes and canvas workspace API: accounts, sessions and AI credits",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limit_store = create_rate_limit_store(settings)

    # Credentials are required for the refresh token cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    return app


app = create_app()
