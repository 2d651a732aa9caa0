"""BYOK models: supported model catalog and per-user provider configs."""

from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlmodel import Field

from canvasvault.models.base import CanvasBase


class SupportedModel(CanvasBase, table=True):
    """A provider model users may select.

    Attributes:
        provider: Provider name (e.g., "gemini").
        name: Model name (e.g., "gemini-2.0-flash-exp").
        description: Short description for the model picker.
        is_enabled: Whether the model can be selected.
    """

    __tablename__ = "ai_supported_models"
    __table_args__ = (UniqueConstraint("provider", "name", name="uq_supported_model"),)

    provider: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    name: str = Field(sa_column=Column(String(100), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    is_enabled: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default="true"),
    )


class UserAIConfig(CanvasBase, table=True):
    """A user's saved provider/model selection, optionally with their own key.

    Attributes:
        user_id: Owning user.
        provider: Provider name.
        model: Model name.
        encrypted_api_key: ``iv_hex:cipher_hex`` of the user's key, if any.
        is_default: Whether this config is used when a request names no model.
    """

    __tablename__ = "ai_user_configs"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", "model", name="uq_user_ai_config"),
    )

    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    provider: str = Field(sa_column=Column(String(50), nullable=False))
    model: str = Field(sa_column=Column(String(100), nullable=False))
    encrypted_api_key: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    is_default: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="false"),
    )

    @property
    def has_key(self) -> bool:
        """Whether a user-supplied key is stored."""
        return bool(self.encrypted_api_key)
