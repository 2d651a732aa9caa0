"""AI generation, credits and bring-your-own-key services."""

from canvasvault.services.ai.ai_service import AIService, AIServiceResponse
from canvasvault.services.ai.credits import CreditsService
from canvasvault.services.ai.encryption import EncryptionError, EncryptionService
from canvasvault.services.ai.key_validation import ApiKeyValidationService
from canvasvault.services.ai.model_management import (
    ModelManagementService,
    ResolvedModelConfig,
    UserConfigView,
)
from canvasvault.services.ai.providers import (
    AIResponse,
    GeminiProvider,
    GenerationOptions,
    PerplexityProvider,
    get_provider,
)

__all__ = [
    "AIResponse",
    "AIService",
    "AIServiceResponse",
    "ApiKeyValidationService",
    "CreditsService",
    "EncryptionError",
    "EncryptionService",
    "GeminiProvider",
    "GenerationOptions",
    "ModelManagementService",
    "PerplexityProvider",
    "ResolvedModelConfig",
    "UserConfigView",
    "get_provider",
]
