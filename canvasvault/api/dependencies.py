"""FastAPI dependencies for authentication, services and request metadata.

This module provides reusable dependencies for:
- Database session and cache access
- Request metadata extraction (client IP, user agent)
- Access token verification (``TokenVerifier``)
- Service construction per request
- Rate limiting of public auth routes

Every dependency can be replaced through ``app.dependency_overrides``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from canvasvault.core.cache import CacheBackend, get_cache
from canvasvault.core.config import Settings, get_settings
from canvasvault.core.database import get_session
from canvasvault.core.enums import AuthAction
from canvasvault.core.errors import AppError, AuthenticationError
from canvasvault.core.logging import AuthAuditLogger
from canvasvault.models.user import User
from canvasvault.rate_limiter import RateLimiter, RateLimitStore
from canvasvault.services.ai import (
    AIService,
    CreditsService,
    EncryptionService,
    ModelManagementService,
)
from canvasvault.services.jwt_service import JWTService, TokenDecodeError
from canvasvault.services.mail_queue import MailQueue
from canvasvault.services.otp_service import OTPService
from canvasvault.services.session_marker_service import SessionMarkerService
from canvasvault.services.token_service import TokenService
from canvasvault.services.user_service import UserService

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 10


# =============================================================================
# Infrastructure
# =============================================================================


def get_cache_backend() -> CacheBackend:
    return get_cache()


def get_mail_queue(
    cache: CacheBackend = Depends(get_cache_backend),
    settings: Settings = Depends(get_settings),
) -> MailQueue:
    return MailQueue(cache, settings.mail_queue_name)


def get_audit_logger() -> AuthAuditLogger:
    return AuthAuditLogger()


def get_rate_limit_store(request: Request) -> RateLimitStore:
    """Store created at startup and kept on ``app.state``."""
    return request.app.state.rate_limit_store


# =============================================================================
# Request metadata
# =============================================================================


def get_client_ip(request: Request) -> str:
    """Client IP, preferring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


def extract_token(request: Request) -> Optional[str]:
    """Read the access token from the request.

    ``Authorization: Bearer <token>`` is preferred; ``x-auth-token`` (with or
    without a ``Bearer`` prefix) is the fallback.

    Returns:
        The raw token, or None if neither header carries one.
    """
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()

    fallback = request.headers.get("x-auth-token")
    if fallback:
        fallback = fallback.strip()
        if fallback.lower().startswith("bearer "):
            fallback = fallback[7:].strip()
        if fallback:
            return fallback
    return None


# =============================================================================
# Authentication
# =============================================================================


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity attached to an authenticated request.

    Attributes:
        user_id: Authenticated user id.
        email: Stored email (matches the token's email).
        name: Display name.
        is_email_verified: Whether the email is verified.
        device_id: Device of the session the token belongs to.
        jti: Access token identifier.
        issued_at: Token ``iat``.
        expires_at: Token ``exp``.
    """

    user_id: int
    email: str
    name: str
    is_email_verified: bool
    device_id: Optional[str]
    jti: Optional[str]
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]
    contact: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    profile_url: Optional[str] = None


class TokenVerifier:
    """Verify access tokens in a fixed order of checks.

    1. Token present (Bearer header, then ``x-auth-token``)
    2. At least 10 characters
    3. Signature, issuer, audience and time claims (30s leeway)
    4. Payload carries user id and email
    5. Session marker present in the cache
    6. User exists and is not blocked
    7. Token email equals the stored email

    Each rejection is a 401 with its own message; every outcome is audited.
    Unexpected failures (cache/database down) are audited as AUTH_ERROR and
    surface as 500 "Authentication failed".
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheBackend,
        settings: Settings | None = None,
        jwt_service: JWTService | None = None,
        audit: AuthAuditLogger | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.jwt_service = jwt_service or JWTService(self.settings)
        self.markers = SessionMarkerService(cache, self.settings.access_token_ttl_seconds)
        self.audit = audit or AuthAuditLogger()

    def _reject(
        self,
        request: Request,
        action: AuthAction,
        message: str,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> AuthenticationError:
        self.audit.log(
            action,
            ip=get_client_ip(request),
            user_agent=get_user_agent(request),
            url=str(request.url.path),
            user_id=user_id,
            reason=reason or message,
        )
        return AuthenticationError(message)

    async def verify(self, request: Request) -> AuthenticatedUser:
        """Authenticate the request.

        Args:
            request: Incoming request (read only).

        Returns:
            AuthenticatedUser for the token's user.

        Raises:
            AuthenticationError: Any rejection (401)
            AppError: Unexpected failure (500)
        """
        try:
            return await self._verify(request)
        except AppError:
            raise
        except Exception as e:
            self.audit.log(
                AuthAction.AUTH_ERROR,
                ip=get_client_ip(request),
                user_agent=get_user_agent(request),
                url=str(request.url.path),
                reason=type(e).__name__,
            )
            logger.exception("Unexpected error while verifying access token")
            raise AppError("Authentication failed", status_code=500) from e

    async def _verify(self, request: Request) -> AuthenticatedUser:
        token = extract_token(request)
        if token is None:
            raise self._reject(request, AuthAction.TOKEN_INVALID, "Access token not found")

        if len(token) < MIN_TOKEN_LENGTH:
            raise self._reject(request, AuthAction.TOKEN_INVALID, "Invalid token format")

        try:
            payload = self.jwt_service.decode_token(token)
        except TokenDecodeError as e:
            action = (
                AuthAction.TOKEN_EXPIRED if e.kind == "expired" else AuthAction.TOKEN_INVALID
            )
            raise self._reject(request, action, e.message, reason=e.detail or e.message) from e

        claims = self.jwt_service.parse_claims(payload)
        if claims is None:
            raise self._reject(request, AuthAction.TOKEN_INVALID, "Invalid token payload")

        if not await self.markers.is_active(
            claims.user_id, claims.device_id or "", claims.jti or ""
        ):
            raise self._reject(
                request,
                AuthAction.TOKEN_REVOKED,
                "Session has been revoked",
                user_id=claims.user_id,
            )

        result = await self.session.execute(
            select(User).where(User.id == claims.user_id, User.block.is_(False))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise self._reject(
                request,
                AuthAction.USER_NOT_FOUND,
                "User not found or disabled",
                user_id=claims.user_id,
            )

        if user.email != claims.email:
            raise self._reject(
                request,
                AuthAction.TOKEN_INVALID,
                "Token email mismatch",
                user_id=user.id,
            )

        self.audit.log(
            AuthAction.LOGIN_SUCCESS,
            ip=get_client_ip(request),
            user_agent=get_user_agent(request),
            url=str(request.url.path),
            user_id=user.id,
        )
        return AuthenticatedUser(
            user_id=user.id,
            email=user.email,
            name=user.name,
            is_email_verified=user.is_email_verified,
            device_id=claims.device_id,
            jti=claims.jti,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
            contact=user.contact,
            bio=user.bio,
            website=user.website,
            location=user.location,
            github=user.github,
            twitter=user.twitter,
            profile_url=user.profile_url,
        )


async def get_authenticated_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
    cache: CacheBackend = Depends(get_cache_backend),
    settings: Settings = Depends(get_settings),
    audit: AuthAuditLogger = Depends(get_audit_logger),
) -> AuthenticatedUser:
    """Get the authenticated identity for a protected endpoint.

    Example:
        @router.get("/user")
        async def profile(current_user: AuthenticatedUser = Depends(get_authenticated_user)):
            return {"user_id": current_user.user_id}
    """
    verifier = TokenVerifier(session, cache, settings, audit=audit)
    return await verifier.verify(request)


# =============================================================================
# Services
# =============================================================================


def get_token_service(
    session: AsyncSession = Depends(get_session),
    cache: CacheBackend = Depends(get_cache_backend),
    settings: Settings = Depends(get_settings),
) -> TokenService:
    return TokenService(session, cache, settings)


def get_user_service(
    session: AsyncSession = Depends(get_session),
    cache: CacheBackend = Depends(get_cache_backend),
    mail_queue: MailQueue = Depends(get_mail_queue),
    token_service: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
    audit: AuthAuditLogger = Depends(get_audit_logger),
) -> UserService:
    return UserService(
        session,
        token_service=token_service,
        otp_service=OTPService(cache, settings),
        mail_queue=mail_queue,
        settings=settings,
        audit=audit,
    )


def get_credits_service(session: AsyncSession = Depends(get_session)) -> CreditsService:
    return CreditsService(session)


def get_model_management_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ModelManagementService:
    return ModelManagementService(session, settings, EncryptionService(settings))


def get_ai_service(
    credits: CreditsService = Depends(get_credits_service),
    models: ModelManagementService = Depends(get_model_management_service),
    settings: Settings = Depends(get_settings),
) -> AIService:
    return AIService(credits, models, settings)


# =============================================================================
# Rate limiting
# =============================================================================


async def auth_rate_limit(
    request: Request,
    response: Response,
    store: RateLimitStore = Depends(get_rate_limit_store),
    settings: Settings = Depends(get_settings),
) -> None:
    """Limit public auth routes per client IP.

    Raises:
        RateLimitExceededError: Limit exceeded (429 with rate limit headers)
    """
    limiter = RateLimiter(
        store,
        max_requests=settings.auth_rate_limit_max_requests,
        window_seconds=settings.auth_rate_limit_window_seconds,
        prefix="auth",
    )
    headers = await limiter.check(get_client_ip(request))
    for name, value in headers.items():
        response.headers[name] = value
