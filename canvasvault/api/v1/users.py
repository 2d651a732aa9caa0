"""User account API endpoints.

This module implements the account lifecycle:
- Signup with OTP email verification
- Login and refresh token rotation (refresh token in an HTTP-only cookie)
- Logout (session and access token revocation)
- Profile read/update and self-blocking
- Password recovery by OTP or emailed link

Public auth routes are rate limited per client IP.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response, status

from canvasvault.api.cookies import (
    REFRESH_COOKIE_NAME,
    clear_refresh_cookie,
    set_refresh_cookie,
)
from canvasvault.api.dependencies import (
    AuthenticatedUser,
    auth_rate_limit,
    get_authenticated_user,
    get_client_ip,
    get_token_service,
    get_user_agent,
    get_user_service,
)
from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import SessionNotFoundError
from canvasvault.schemas.common import success_envelope
from canvasvault.schemas.user import (
    ForgotPasswordRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    ResetPasswordWithOtpRequest,
    ResetPasswordWithTokenRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    VerifyOtpRequest,
)
from canvasvault.services.token_service import TokenService
from canvasvault.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Signup / verification / login
# =============================================================================


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def signup(
    payload: SignupRequest,
    user_service: UserService = Depends(get_user_service),
):
    """Create an unverified account and mail the verification OTP.

    Returns:
        201 with the new user's id and email.

    Raises:
        ConflictError: 409 if the email is already registered.
    """
    user = await user_service.signup(payload.name, payload.email, payload.password)
    data = SignupResponse(id=user.id, email=user.email).model_dump()
    return success_envelope("User created successfully", data, code=201)


@router.post("/verify-otp", dependencies=[Depends(auth_rate_limit)])
async def verify_otp(
    payload: VerifyOtpRequest,
    request: Request,
    response: Response,
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Verify the signup OTP, open a session and set the refresh cookie."""
    issued = await user_service.verify_otp(
        payload.email,
        payload.otp,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    set_refresh_cookie(response, issued.refresh_token, settings)
    return success_envelope(
        "Email verified successfully", TokenResponse(token=issued.access_token).model_dump()
    )


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Authenticate with email and password and set the refresh cookie.

    Raises:
        NotFoundError: 404 unknown or blocked user.
        ForbiddenError: 403 email not verified.
        AuthenticationError: 401 invalid credentials.
    """
    issued = await user_service.login(
        payload.email,
        payload.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    set_refresh_cookie(response, issued.refresh_token, settings)
    return success_envelope(
        "Login successful", TokenResponse(token=issued.access_token).model_dump()
    )


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    token_service: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    """Rotate the refresh token from the cookie.

    The presented token is revoked and replaced in one transaction; replaying
    it afterwards fails with 401 "Session not found".
    """
    if not refresh_cookie:
        raise SessionNotFoundError()

    issued = await token_service.rotate_session(
        refresh_cookie,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    set_refresh_cookie(response, issued.refresh_token, settings)
    return success_envelope(
        "Token refreshed successfully", TokenResponse(token=issued.access_token).model_dump()
    )


@router.post("/logout")
async def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    token_service: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    """Revoke the cookie's refresh session and the current access token."""
    if refresh_cookie:
        await token_service.revoke_session(refresh_cookie, user_id=current_user.user_id)

    if current_user.device_id and current_user.jti:
        await token_service.markers.revoke(
            current_user.user_id, current_user.device_id, current_user.jti
        )

    clear_refresh_cookie(response, settings)
    logger.info(f"User {current_user.user_id} logged out")
    return success_envelope("Logged out successfully")


# =============================================================================
# Profile
# =============================================================================


@router.get("")
async def get_profile(
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    user_service: UserService = Depends(get_user_service),
):
    user = await user_service.get_profile(current_user.user_id)
    return success_envelope(
        "User profile fetched successfully",
        ProfileResponse.model_validate(user).model_dump(mode="json"),
    )


@router.patch("")
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    user_service: UserService = Depends(get_user_service),
):
    """Update the fields sent; unknown fields are rejected with 400."""
    await user_service.update_profile(
        current_user.user_id, payload.model_dump(exclude_unset=True)
    )
    return success_envelope("User profile updated successfully")


@router.delete("")
async def block_user(
    response: Response,
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Block the caller's own account and end all of its sessions."""
    await user_service.block_user(current_user.user_id)
    if current_user.device_id and current_user.jti:
        await user_service.token_service.markers.revoke(
            current_user.user_id, current_user.device_id, current_user.jti
        )
    clear_refresh_cookie(response, settings)
    return success_envelope("User blocked successfully")


# =============================================================================
# Password recovery
# =============================================================================


@router.post("/forgot-password/otp", dependencies=[Depends(auth_rate_limit)])
async def forgot_password_otp(
    payload: ForgotPasswordRequest,
    user_service: UserService = Depends(get_user_service),
):
    message = await user_service.forgot_password_otp(payload.email)
    return success_envelope(message)


@router.post("/forgot-password/link", dependencies=[Depends(auth_rate_limit)])
async def forgot_password_link(
    payload: ForgotPasswordRequest,
    user_service: UserService = Depends(get_user_service),
):
    message = await user_service.forgot_password_link(payload.email)
    return success_envelope(message)


@router.post("/reset-password/otp", dependencies=[Depends(auth_rate_limit)])
async def reset_password_with_otp(
    payload: ResetPasswordWithOtpRequest,
    user_service: UserService = Depends(get_user_service),
):
    message = await user_service.reset_password_with_otp(
        payload.email, payload.otp, payload.new_password
    )
    return success_envelope(message)


@router.post("/reset-password/token", dependencies=[Depends(auth_rate_limit)])
async def reset_password_with_token(
    payload: ResetPasswordWithTokenRequest,
    user_service: UserService = Depends(get_user_service),
):
    message = await user_service.reset_password_with_token(
        payload.token, payload.new_password
    )
    return success_envelope(message)
