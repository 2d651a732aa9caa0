"""Global exception handlers for the FastAPI application.

Every failure leaves the API as the failure envelope:

    {"status": "failed", "code": 401, "error": true, "message": "...", "data": {...}}

Handlers:
    app_error_handler: AppError subclasses (service-layer errors)
    validation_exception_handler: RequestValidationError -> 400 with field errors
    http_exception_handler: Starlette HTTPException (404 routes, 405, ...)
    generic_exception_handler: Anything else -> 500 without internals

Exports:
    register_exception_handlers: Register all exception handlers with FastAPI app
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from canvasvault.core.errors import AppError, RateLimitExceededError
from canvasvault.schemas.common import failure_envelope

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Convert an AppError into the failure envelope.

    The HTTP status is the error's own status; the body ``code`` is clamped to
    the known envelope codes.
    """
    assert isinstance(exc, AppError)

    headers = exc.headers if isinstance(exc, RateLimitExceededError) else None
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=failure_envelope(exc.message, exc.status_code, exc.data),
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Convert request validation failures into a 400 with field errors.

    Example:
        >>> # POST /api/v1/user/login with {"email": "nope"}
        >>> # {
        >>> #   "status": "failed", "code": 400, "error": true,
        >>> #   "message": "Validation failed",
        >>> #   "data": [{"field": "email", "message": "value is not a valid email address: ..."},
        >>> #            {"field": "password", "message": "Field required"}]
        >>> # }
    """
    assert isinstance(exc, RequestValidationError)

    field_errors = []
    for error in exc.errors():
        # ["body", "email"] -> "email"
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p != "body"]
        field_errors.append(
            {
                "field": ".".join(field_parts) if field_parts else "body",
                "message": error.get("msg", "Invalid value"),
            }
        )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=failure_envelope("Validation failed", 400, field_errors),
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)

    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=failure_envelope(message, exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=failure_envelope("Internal server error", 500),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
