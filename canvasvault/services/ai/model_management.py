"""BYOK model management: catalog, per-user configs and key resolution.

Workflows:
    - Catalog: enabled ``SupportedModel`` rows, seeded with defaults when empty
    - Configs: a user saves provider/model pairs, optionally with their own
      API key (validated with the provider, then encrypted) and one default
    - Resolution: pick provider, model and key for a generation request
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import BadRequestError, NotFoundError
from canvasvault.models.ai_config import SupportedModel, UserAIConfig
from canvasvault.services.ai.constants import (
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_SUPPORTED_MODELS,
)
from canvasvault.services.ai.encryption import EncryptionService
from canvasvault.services.ai.key_validation import ApiKeyValidationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserConfigView:
    """A saved config as exposed to its owner (never includes the key)."""

    id: int
    provider: str
    model: str
    is_default: bool
    created_at: datetime
    has_key: bool

    @classmethod
    def from_model(cls, config: UserAIConfig) -> "UserConfigView":
        return cls(
            id=config.id,
            provider=config.provider,
            model=config.model,
            is_default=config.is_default,
            created_at=config.created_at,
            has_key=config.has_key,
        )


@dataclass(frozen=True)
class ResolvedModelConfig:
    """Provider, model and key chosen for one request.

    Attributes:
        provider: Provider name.
        model: Model name.
        api_key: Plaintext key (user's or system's); never log it.
        is_user_key: Whether the key is the user's own.
    """

    provider: str
    model: str
    api_key: str
    is_user_key: bool


class ModelManagementService:
    """Catalog, user config and key resolution service.

    Attributes:
        session: Database session
        encryption: API key cipher
        key_validator: Provider key validator
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        encryption: EncryptionService | None = None,
        key_validator: ApiKeyValidationService | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.encryption = encryption or EncryptionService(self.settings)
        self.key_validator = key_validator or ApiKeyValidationService()

    async def _enabled_models(self) -> list[SupportedModel]:
        result = await self.session.execute(
            select(SupportedModel)
            .where(SupportedModel.is_enabled.is_(True))
            .order_by(SupportedModel.provider, SupportedModel.name)
        )
        return list(result.scalars().all())

    async def seed_supported_models(self) -> int:
        """Insert any missing default catalog rows.

        Returns:
            Number of rows inserted
        """
        result = await self.session.execute(select(SupportedModel.provider, SupportedModel.name))
        existing = {(row.provider, row.name) for row in result.all()}

        added = 0
        for entry in DEFAULT_SUPPORTED_MODELS:
            if (entry["provider"], entry["name"]) in existing:
                continue
            self.session.add(SupportedModel(is_enabled=True, **entry))
            added += 1
        if added:
            await self.session.commit()
            logger.info(f"Seeded {added} supported model(s)")
        return added

    async def list_supported_models(self) -> list[SupportedModel]:
        """Return enabled catalog rows, seeding the defaults into an empty catalog."""
        models = await self._enabled_models()
        if not models:
            await self.seed_supported_models()
            models = await self._enabled_models()
        return models

    async def get_user_configs(self, user_id: int) -> list[UserConfigView]:
        result = await self.session.execute(
            select(UserAIConfig)
            .where(UserAIConfig.user_id == user_id)
            .order_by(UserAIConfig.id)
        )
        return [UserConfigView.from_model(c) for c in result.scalars().all()]

    async def _find_config(
        self, user_id: int, provider: str, model: str
    ) -> Optional[UserAIConfig]:
        result = await self.session.execute(
            select(UserAIConfig).where(
                UserAIConfig.user_id == user_id,
                UserAIConfig.provider == provider,
                UserAIConfig.model == model,
            )
        )
        return result.scalar_one_or_none()

    async def set_user_config(
        self,
        user_id: int,
        provider: str,
        model: str,
        api_key: Optional[str] = None,
        is_default: Optional[bool] = None,
    ) -> UserConfigView:
        """Create or update a user's config for a provider/model.

        Args:
            user_id: Owning user
            provider: Provider name
            model: Model name (must be enabled in the catalog)
            api_key: User's own key; validated with the provider, then encrypted
            is_default: Make this the user's default (clears other defaults)

        Returns:
            Saved config view

        Raises:
            BadRequestError: Model not in the catalog or key rejected by the provider
        """
        result = await self.session.execute(
            select(SupportedModel).where(
                SupportedModel.provider == provider,
                SupportedModel.name == model,
                SupportedModel.is_enabled.is_(True),
            )
        )
        if result.scalar_one_or_none() is None:
            raise BadRequestError(f"Model {provider}/{model} is not supported")

        encrypted_key: Optional[str] = None
        if api_key:
            if not await self.key_validator.validate(provider, api_key):
                raise BadRequestError("Invalid API Key")
            encrypted_key = self.encryption.encrypt(api_key)

        if is_default:
            await self.session.execute(
                update(UserAIConfig)
                .where(UserAIConfig.user_id == user_id)
                .values(is_default=False)
            )

        config = await self._find_config(user_id, provider, model)
        if config is None:
            config = UserAIConfig(
                user_id=user_id,
                provider=provider,
                model=model,
                encrypted_api_key=encrypted_key,
                is_default=bool(is_default),
            )
        else:
            if encrypted_key is not None:
                config.encrypted_api_key = encrypted_key
            if is_default is not None:
                config.is_default = is_default
        self.session.add(config)
        await self.session.commit()
        await self.session.refresh(config)

        logger.info(
            f"AI config saved for user {user_id}: {provider}/{model} "
            f"(default={config.is_default}, has_key={config.has_key})"
        )
        return UserConfigView.from_model(config)

    async def delete_user_config(self, user_id: int, provider: str, model: str) -> None:
        """Delete a saved config (and its key).

        Raises:
            NotFoundError: No such config for this user
        """
        config = await self._find_config(user_id, provider, model)
        if config is None:
            raise NotFoundError("Configuration not found")
        await self.session.delete(config)
        await self.session.commit()
        logger.info(f"AI config deleted for user {user_id}: {provider}/{model}")

    def _system_key(self, provider: str) -> Optional[str]:
        if provider == "gemini":
            return self.settings.gemini_api_key
        if provider == "perplexity":
            return self.settings.perplexity_api_key
        return None

    async def resolve_model_config(
        self,
        user_id: int,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        force_system_key: bool = False,
    ) -> ResolvedModelConfig:
        """Choose provider, model and key for a generation request.

        Provider/model precedence: explicit values, the user's default config,
        then the system default. The user's stored key is used when one exists
        for the chosen pair and ``force_system_key`` is false; otherwise the
        system key for the provider.

        Raises:
            BadRequestError: No key available for the provider
            EncryptionError: Stored key written under another encryption key
        """
        config: Optional[UserAIConfig] = None
        if provider and model:
            config = await self._find_config(user_id, provider, model)
        else:
            result = await self.session.execute(
                select(UserAIConfig).where(
                    UserAIConfig.user_id == user_id, UserAIConfig.is_default.is_(True)
                )
            )
            config = result.scalars().first()
            if config is not None:
                provider, model = config.provider, config.model
            else:
                provider, model = DEFAULT_PROVIDER, DEFAULT_MODEL

        if config is not None and config.has_key and not force_system_key:
            api_key = self.encryption.decrypt(config.encrypted_api_key)
            is_user_key = True
        else:
            api_key = self._system_key(provider)
            is_user_key = False

        if not api_key:
            raise BadRequestError(f"No API key available for {provider}")

        logger.info(
            f"Resolved AI config for user {user_id}: {provider}/{model} "
            f"({'user' if is_user_key else 'system'} key)"
        )
        return ResolvedModelConfig(
            provider=provider, model=model, api_key=api_key, is_user_key=is_user_key
        )
