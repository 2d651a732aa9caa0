"""User model: the credential store.

Users are created unverified at signup, flip ``is_email_verified`` after an OTP
match and may be blocked (``block``), which is never cleared automatically.
Blocked users cannot log in, refresh or pass the token verifier.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlmodel import Field

from canvasvault.models.base import CanvasBase

DEFAULT_USER_CREDITS = 10

# Columns a user may change through the profile endpoint
PROFILE_FIELDS = (
    "name",
    "contact",
    "bio",
    "website",
    "location",
    "github",
    "twitter",
    "profile_url",
)


class User(CanvasBase, table=True):
    """Application user.

    Attributes:
        name: Display name.
        email: Email address (unique, used for login).
        password_hash: Bcrypt hash of the user's password.
        contact: Phone or other contact detail.
        bio: Short biography.
        website: Personal website.
        location: Free-form location.
        github: GitHub handle.
        twitter: Twitter handle.
        profile_url: Avatar URL.
        is_email_verified: Whether the signup OTP was confirmed.
        block: Whether the account is blocked.
        blocked_at: When the account was blocked.
        ai_credits: Remaining credits for system-key AI requests.
    """

    __tablename__ = "users"

    name: str = Field(sa_column=Column(String(100), nullable=False))
    email: str = Field(
        sa_column=Column(String(100), unique=True, index=True, nullable=False),
    )
    password_hash: str = Field(sa_column=Column(String(255), nullable=False))

    # Profile
    contact: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=100)
    github: Optional[str] = Field(default=None, max_length=100)
    twitter: Optional[str] = Field(default=None, max_length=100)
    profile_url: Optional[str] = Field(default=None, max_length=255)

    # Account state
    is_email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="false"),
    )
    block: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="false", index=True),
    )
    blocked_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )

    ai_credits: int = Field(
        default=DEFAULT_USER_CREDITS,
        sa_column=Column(
            Integer, nullable=False, server_default=str(DEFAULT_USER_CREDITS)
        ),
    )
