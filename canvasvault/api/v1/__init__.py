"""API v1 router aggregation.

This module combines all v1 API routers into a single router
that can be mounted on the main application.
"""

from fastapi import APIRouter, Depends

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.database import check_db_connection
from canvasvault.api.v1.ai import router as ai_router
from canvasvault.api.v1.users import router as users_router
from canvasvault.schemas.common import success_envelope

# Create main API router
api_router = APIRouter()

# Account lifecycle (signup, sessions, profile, password recovery)
api_router.include_router(users_router, prefix="/user", tags=["user"])

# AI generation, credits and BYOK configuration
api_router.include_router(ai_router, prefix="/ai", tags=["ai"])


# Health check at API level
@api_router.get("/health", tags=["health"])
async def api_health(settings: Settings = Depends(get_settings)):
    """API health check.

    Returns:
        Health status, app version and database reachability.
    """
    database_ok = await check_db_connection()
    return success_envelope(
        "Service is healthy" if database_ok else "Service is degraded",
        {
            "status": "healthy" if database_ok else "degraded",
            "version": settings.app_version,
            "database": database_ok,
        },
    )
