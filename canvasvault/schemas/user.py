"""User request/response schemas.

Endpoints:
    POST   /api/v1/user/signup                    - Create user (201)
    POST   /api/v1/user/verify-otp                - Verify email, open session
    POST   /api/v1/user/login                     - Open session
    POST   /api/v1/user/refresh-token             - Rotate session (cookie)
    POST   /api/v1/user/logout                    - Close session
    GET    /api/v1/user                           - Profile
    PATCH  /api/v1/user                           - Update profile
    DELETE /api/v1/user                           - Block own account
    POST   /api/v1/user/forgot-password/otp       - Mail reset OTP
    POST   /api/v1/user/forgot-password/link      - Mail reset link
    POST   /api/v1/user/reset-password/otp        - Reset with OTP
    POST   /api/v1/user/reset-password/token      - Reset with link token
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# =============================================================================
# Signup / verification / login
# =============================================================================


class SignupRequest(BaseModel):
    """Request schema for user creation.

    POST /api/v1/user/signup
    Returns: 201 Created
    """

    name: str = Field(..., min_length=1, max_length=100, examples=["Ada Lovelace"])
    email: EmailStr = Field(..., max_length=100, examples=["user@example.com"])
    password: str = Field(..., min_length=8, max_length=255, examples=["password123"])

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Ada Lovelace",
                "email": "user@example.com",
                "password": "password123",
            }
        }
    )


class SignupResponse(BaseModel):
    id: int = Field(..., description="Created user's ID")
    email: str


class VerifyOtpRequest(BaseModel):
    """POST /api/v1/user/verify-otp"""

    email: EmailStr = Field(..., max_length=100)
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class LoginRequest(BaseModel):
    """POST /api/v1/user/login"""

    email: EmailStr = Field(..., max_length=100)
    password: str = Field(..., min_length=1, max_length=255)


class TokenResponse(BaseModel):
    """Access token; the refresh token travels only in the HTTP-only cookie."""

    token: str = Field(..., description="JWT access token")


# =============================================================================
# Profile
# =============================================================================


class ProfileUpdateRequest(BaseModel):
    """PATCH /api/v1/user

    Only the fields sent are changed. Email, password and account state are
    not writable here.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    contact: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=100)
    github: Optional[str] = Field(default=None, max_length=100)
    twitter: Optional[str] = Field(default=None, max_length=100)
    profile_url: Optional[str] = Field(default=None, max_length=255)

    model_config = ConfigDict(extra="forbid")


class ProfileResponse(BaseModel):
    id: int
    email: str
    name: str
    is_email_verified: bool
    contact: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    profile_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Password recovery
# =============================================================================


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., max_length=100)


class ResetPasswordWithOtpRequest(BaseModel):
    email: EmailStr = Field(..., max_length=100)
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str = Field(..., alias="newPassword", min_length=8, max_length=255)

    model_config = ConfigDict(populate_by_name=True)


class ResetPasswordWithTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", min_length=8, max_length=255)

    model_config = ConfigDict(populate_by_name=True)
