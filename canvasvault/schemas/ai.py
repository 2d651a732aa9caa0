"""AI and BYOK request/response schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from canvasvault.core.enums import AIProvider
from canvasvault.services.ai.constants import MAX_INPUT_LENGTH


class GenerationOptionsRequest(BaseModel):
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens", gt=0)

    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(BaseModel):
    """POST /api/v1/ai/generate

    Provider and model fall back to the user's default config, then to the
    system default, when omitted.
    """

    provider: Optional[AIProvider] = None
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    input: str = Field(..., min_length=1, max_length=MAX_INPUT_LENGTH)
    options: Optional[GenerationOptionsRequest] = None
    force_system_key: bool = Field(default=False, alias="forceSystemKey")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "provider": "gemini",
                "model": "gemini-2.0-flash-exp",
                "input": "Summarize the water cycle in one sentence.",
                "options": {"temperature": 0.7, "maxTokens": 256},
            }
        },
    )


class GenerateResponse(BaseModel):
    content: str
    provider: str
    model: str
    tokens_used: Optional[int] = Field(default=None, serialization_alias="tokensUsed")
    remaining_credits: int = Field(..., serialization_alias="remainingCredits")
    credits_used: int = Field(..., serialization_alias="creditsUsed")
    using_custom_key: bool = Field(..., serialization_alias="usingCustomKey")
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class SetConfigRequest(BaseModel):
    """POST /api/v1/ai/config"""

    provider: AIProvider
    model: str = Field(..., min_length=1, max_length=100)
    api_key: Optional[str] = Field(default=None, alias="apiKey", max_length=512)
    is_default: Optional[bool] = Field(default=None, alias="isDefault")

    model_config = ConfigDict(populate_by_name=True)


class DeleteConfigRequest(BaseModel):
    """DELETE /api/v1/ai/config"""

    provider: AIProvider
    model: str = Field(..., min_length=1, max_length=100)


class UserConfigResponse(BaseModel):
    id: int
    provider: str
    model: str
    is_default: bool
    created_at: datetime
    has_key: bool

    model_config = ConfigDict(from_attributes=True)


class SupportedModelResponse(BaseModel):
    provider: str
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
