"""AI generation orchestrator.

Request flow:
    1. Validate input length and provider/model
    2. Resolve provider, model and key (user key or system key)
    3. System key only: require enough credits
    4. Call the provider
    5. System key only, after success: deduct credits
    6. Return the content with credit information

A failed provider call never touches the balance.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import BadRequestError, InsufficientCreditsError
from canvasvault.services.ai.constants import (
    CREDIT_COST_PER_REQUEST,
    MAX_INPUT_LENGTH,
    MAX_TOKEN_ESTIMATE,
    PROVIDER_MODELS,
)
from canvasvault.services.ai.credits import CreditsService
from canvasvault.services.ai.model_management import ModelManagementService
from canvasvault.services.ai.providers import (
    BaseAIProvider,
    GenerationOptions,
    get_provider,
)

logger = logging.getLogger(__name__)


@dataclass
class AIServiceResponse:
    content: str
    provider: str
    model: str
    tokens_used: Optional[int]
    remaining_credits: int
    credits_used: int
    using_custom_key: bool
    metadata: dict[str, Any] = field(default_factory=dict)


def validate_input(input_text: str) -> None:
    """Reject empty or oversized input.

    Raises:
        BadRequestError: Input empty, too long, or over the token estimate
    """
    if not input_text:
        raise BadRequestError("Input cannot be empty")
    if len(input_text) > MAX_INPUT_LENGTH:
        raise BadRequestError(
            f"Input exceeds maximum length of {MAX_INPUT_LENGTH} characters. "
            f"Current length: {len(input_text)}"
        )
    estimated_tokens = -(-len(input_text) // 4)
    if estimated_tokens > MAX_TOKEN_ESTIMATE:
        raise BadRequestError(
            f"Input exceeds estimated token limit of {MAX_TOKEN_ESTIMATE} tokens. "
            f"Estimated: {estimated_tokens}"
        )


def validate_provider_model(provider: str, model: str) -> None:
    """Reject unknown providers and models outside the provider's list.

    Raises:
        BadRequestError: Unknown provider or unsupported model
    """
    supported = PROVIDER_MODELS.get(provider)
    if supported is None:
        raise BadRequestError(
            f"Invalid provider: {provider}. "
            f"Supported providers: {', '.join(PROVIDER_MODELS)}"
        )
    if model not in supported:
        raise BadRequestError(
            f'Model "{model}" is not supported for provider "{provider}". '
            f"Supported models: {', '.join(supported)}"
        )


class AIService:
    """Run AI generation requests with credit accounting.

    Attributes:
        credits: Credit balance service
        models: Model/key resolution service
        provider_factory: Builds a provider client from its name
    """

    def __init__(
        self,
        credits: CreditsService,
        models: ModelManagementService,
        settings: Settings | None = None,
        provider_factory=None,
    ):
        self.credits = credits
        self.models = models
        self.settings = settings or get_settings()
        self.provider_factory = provider_factory or self._default_provider_factory

    def _default_provider_factory(self, name: str) -> BaseAIProvider:
        return get_provider(name, timeout=self.settings.ai_request_timeout_seconds)

    async def execute_request(
        self,
        user_id: int,
        input_text: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        options: GenerationOptions | None = None,
        force_system_key: bool = False,
    ) -> AIServiceResponse:
        """Generate a response for the user.

        Args:
            user_id: Requesting user
            input_text: Prompt (1-300 characters)
            provider: Provider name; user default or system default if omitted
            model: Model name; user default or system default if omitted
            options: Temperature and max output tokens
            force_system_key: Ignore the user's stored key

        Returns:
            AIServiceResponse with content and credit information

        Raises:
            BadRequestError: Invalid input, provider/model or no key available
            InsufficientCreditsError: System key path with too few credits
            AIProviderError: Provider call failed (status from the provider)
        """
        validate_input(input_text)
        if provider and model:
            validate_provider_model(provider, model)

        resolved = await self.models.resolve_model_config(
            user_id, provider, model, force_system_key
        )
        validate_provider_model(resolved.provider, resolved.model)

        charge = not resolved.is_user_key
        if charge:
            available = await self.credits.get_credits(user_id)
            if available < CREDIT_COST_PER_REQUEST:
                raise InsufficientCreditsError(CREDIT_COST_PER_REQUEST, available)

        client = self.provider_factory(resolved.provider)
        response = await client.generate(
            input_text, resolved.model, resolved.api_key, options
        )

        if charge:
            remaining = await self.credits.deduct_credits(user_id, CREDIT_COST_PER_REQUEST)
            credits_used = CREDIT_COST_PER_REQUEST
        else:
            remaining = await self.credits.get_credits(user_id)
            credits_used = 0

        logger.info(
            f"AI request for user {user_id}: {resolved.provider}/{resolved.model}, "
            f"credits used {credits_used}, remaining {remaining}"
        )
        return AIServiceResponse(
            content=response.content,
            provider=response.provider,
            model=response.model,
            tokens_used=response.tokens_used,
            remaining_credits=remaining,
            credits_used=credits_used,
            using_custom_key=resolved.is_user_key,
            metadata=response.metadata,
        )

    async def get_remaining_credits(self, user_id: int) -> int:
        return await self.credits.get_credits(user_id)
