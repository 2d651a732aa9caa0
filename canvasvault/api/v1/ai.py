"""AI generation, credits and bring-your-own-key endpoints.

    POST   /api/v1/ai/generate      - Generate (credits charged on system key only)
    GET    /api/v1/ai/credits       - Remaining credits
    GET    /api/v1/ai/constraints   - Input limits and supported models (public)
    GET    /api/v1/ai/models        - Enabled model catalog (public)
    GET    /api/v1/ai/config        - User's saved configs (keys never returned)
    POST   /api/v1/ai/config        - Save config / API key
    DELETE /api/v1/ai/config        - Delete config
"""

import logging

from fastapi import APIRouter, Depends

from canvasvault.api.dependencies import (
    AuthenticatedUser,
    get_ai_service,
    get_authenticated_user,
    get_model_management_service,
)
from canvasvault.schemas.ai import (
    DeleteConfigRequest,
    GenerateRequest,
    GenerateResponse,
    SetConfigRequest,
    SupportedModelResponse,
    UserConfigResponse,
)
from canvasvault.schemas.common import success_envelope
from canvasvault.services.ai import AIService, GenerationOptions, ModelManagementService
from canvasvault.services.ai.constants import get_constraints as constraints_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate")
async def generate(
    payload: GenerateRequest,
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    ai_service: AIService = Depends(get_ai_service),
):
    """Run a generation request.

    Raises:
        BadRequestError: 400 invalid input/model or no key available.
        InsufficientCreditsError: 402 with ``required`` and ``available``.
        AIProviderError: Provider failure, with the provider's status.
    """
    options = None
    if payload.options is not None:
        options = GenerationOptions(
            temperature=payload.options.temperature,
            max_tokens=payload.options.max_tokens,
        )

    result = await ai_service.execute_request(
        current_user.user_id,
        payload.input,
        provider=payload.provider.value if payload.provider else None,
        model=payload.model,
        options=options,
        force_system_key=payload.force_system_key,
    )
    data = GenerateResponse.model_validate(result).model_dump(mode="json", by_alias=True)
    return success_envelope("AI response generated successfully", data)


@router.get("/credits")
async def get_credits(
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    ai_service: AIService = Depends(get_ai_service),
):
    credits = await ai_service.get_remaining_credits(current_user.user_id)
    return success_envelope("Credits fetched successfully", {"credits": credits})


@router.get("/constraints")
async def get_constraints():
    return success_envelope("Constraints fetched successfully", constraints_payload())


@router.get("/models")
async def get_supported_models(
    models: ModelManagementService = Depends(get_model_management_service),
):
    catalog = await models.list_supported_models()
    data = [SupportedModelResponse.model_validate(m).model_dump() for m in catalog]
    return success_envelope("Supported models fetched successfully", data)


@router.get("/config")
async def get_user_configs(
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    models: ModelManagementService = Depends(get_model_management_service),
):
    configs = await models.get_user_configs(current_user.user_id)
    data = [UserConfigResponse.model_validate(c).model_dump(mode="json") for c in configs]
    return success_envelope("User configurations fetched successfully", data)


@router.post("/config")
async def set_user_config(
    payload: SetConfigRequest,
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    models: ModelManagementService = Depends(get_model_management_service),
):
    """Save a provider/model config, validating and encrypting any API key.

    Raises:
        BadRequestError: 400 model not in catalog or "Invalid API Key".
    """
    config = await models.set_user_config(
        current_user.user_id,
        payload.provider.value,
        payload.model,
        api_key=payload.api_key,
        is_default=payload.is_default,
    )
    data = UserConfigResponse.model_validate(config).model_dump(mode="json")
    return success_envelope("Configuration saved successfully", data)


@router.delete("/config")
async def delete_user_config(
    payload: DeleteConfigRequest,
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    models: ModelManagementService = Depends(get_model_management_service),
):
    """Delete a saved config.

    Raises:
        NotFoundError: 404 "Configuration not found".
    """
    await models.delete_user_config(
        current_user.user_id, payload.provider.value, payload.model
    )
    return success_envelope("Configuration deleted successfully")
