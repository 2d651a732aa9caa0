"""Refresh token ledger.

Stores one row per issued refresh token. Only the SHA-256 hash of the raw
token is persisted. Rows are never deleted: revocation flips ``revoked`` and
rotation additionally links the row to its successor through
``replaced_by_token_id``, leaving an audit chain per device.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Field

from canvasvault.models.base import CanvasBase, ensure_utc, utc_now


class AuthToken(CanvasBase, table=True):
    """Refresh session for one device.

    Attributes:
        user_id: ID of user who owns this session.
        token_hash: SHA-256 hex digest of the raw refresh token.
        ip_address: IP address the token was issued to.
        user_agent: User agent string of the client.
        device_id: Device identifier carried in the access token.
        access_jti: ``jti`` of the access token issued with this refresh token;
            together with ``device_id`` it names the session marker.
        revoked: Whether the session has been revoked (monotonic).
        replaced_by_token_id: Successor session after rotation.
        expires_at: Expiry of the refresh token.
    """

    __tablename__ = "auth_tokens"

    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    token_hash: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
    )
    ip_address: Optional[str] = Field(
        default=None, sa_column=Column(String(64), nullable=True)
    )
    user_agent: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    device_id: str = Field(sa_column=Column(String(36), nullable=False))
    access_jti: str = Field(sa_column=Column(String(36), nullable=False))
    revoked: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="false", index=True),
    )
    replaced_by_token_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("auth_tokens.id"), nullable=True),
    )
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),
        nullable=False,
    )

    @property
    def is_expired(self) -> bool:
        """Check if the refresh token has expired."""
        return utc_now() >= ensure_utc(self.expires_at)

    @property
    def is_valid(self) -> bool:
        """Check if the session is usable (not expired, not revoked)."""
        return not self.revoked and not self.is_expired
