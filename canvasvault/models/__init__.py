"""Database models for CanvasVault."""

from canvasvault.models.ai_config import SupportedModel, UserAIConfig
from canvasvault.models.auth_token import AuthToken
from canvasvault.models.base import CanvasBase
from canvasvault.models.user import User

__all__ = [
    "AuthToken",
    "CanvasBase",
    "SupportedModel",
    "User",
    "UserAIConfig",
]
