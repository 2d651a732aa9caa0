"""Refresh token cookie helpers."""

from fastapi import Response

from canvasvault.core.config import Settings

REFRESH_COOKIE_NAME = "refresh_token"


def set_refresh_cookie(response: Response, refresh_token: str, settings: Settings) -> None:
    """Attach the refresh token as an HTTP-only cookie.

    Production cookies are ``Secure`` and ``SameSite=Strict``; elsewhere
    ``SameSite=Lax`` over plain HTTP.
    """
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.refresh_token_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
    )
