"""Response envelope shared by every endpoint.

Success: {"status": "success", "code": 200, "error": false, "message": ..., "data": ...}
Failure: {"status": "failed", "code": 4xx/5xx, "error": true, "message": ..., "data": ...}
"""

from typing import Any

from pydantic import BaseModel, Field

# Codes a failure envelope may carry in its body; anything else becomes 500
ENVELOPE_CODES = frozenset({200, 201, 400, 401, 402, 403, 404, 409, 422, 429, 500})


class Envelope(BaseModel):
    """Uniform response body.

    Attributes:
        status: "success" or "failed".
        code: HTTP status (clamped to known codes for failures).
        error: Whether the request failed.
        message: Human-readable message.
        data: Payload or error details.
    """

    status: str = Field(..., description='"success" or "failed"')
    code: int = Field(..., description="Status code")
    error: bool = Field(..., description="Whether the request failed")
    message: str = Field(..., description="Human-readable message")
    data: Any = Field(default_factory=dict, description="Payload or error details")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "success",
                "code": 200,
                "error": False,
                "message": "Login successful",
                "data": {"token": "eyJhbGciOi..."},
            }
        }
    }


def clamp_code(code: int) -> int:
    return code if code in ENVELOPE_CODES else 500


def success_envelope(message: str, data: Any = None, code: int = 200) -> dict[str, Any]:
    """Build a success body.

    Example:
        >>> success_envelope("Credits fetched successfully", {"credits": 10})["error"]
        False
    """
    return Envelope(
        status="success",
        code=code,
        error=False,
        message=message,
        data=data if data is not None else {},
    ).model_dump(mode="json")


def failure_envelope(message: str, code: int, data: Any = None) -> dict[str, Any]:
    return Envelope(
        status="failed",
        code=clamp_code(code),
        error=True,
        message=message,
        data=data if data is not None else {},
    ).model_dump(mode="json")
