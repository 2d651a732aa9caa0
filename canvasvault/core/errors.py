"""Application error hierarchy.

Every service-layer failure is raised as an ``AppError`` subclass carrying the
HTTP status it maps to, a human-readable message and optional structured
details. The API layer converts these into the uniform response envelope in a
single exception handler (see ``canvasvault.api.errors``).

Error Types:
- BadRequestError: Malformed input, expired/invalid one-time codes (400)
- AuthenticationError: Token or credential failures (401)
- SessionNotFoundError: Refresh session unknown, revoked, expired or replayed (401)
- InsufficientCreditsError: Credit balance below the request cost (402)
- ForbiddenError: Authenticated but not allowed (403)
- NotFoundError: Resource not found (404)
- ConflictError: Duplicate resources (409)
- RateLimitExceededError: Too many requests (429)
- AIProviderError: Upstream AI provider failure (provider status)

Usage:
    from canvasvault.core.errors import ConflictError

    raise ConflictError("User already exists")
"""

from typing import Any


class AppError(Exception):
    """Base class for errors that carry an HTTP status.

    Attributes:
        status_code: HTTP status returned to the client.
        message: Human-readable message placed in the envelope.
        data: Structured details placed in the envelope ``data`` field.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        data: Any = None,
        status_code: int | None = None,
    ):
        self.message = message or self.default_message
        self.data = data if data is not None else {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication failed"


class SessionNotFoundError(AuthenticationError):
    """Refresh session lookup failed.

    Raised for unknown, revoked, expired and replayed refresh tokens alike so
    that a lost rotation race is indistinguishable from theft.
    """

    default_message = "Session not found"


class InsufficientCreditsError(AppError):
    """Credit balance is below the cost of the request.

    Attributes:
        required: Credits the request needs.
        available: Credits the user currently has.
    """

    status_code = 402
    default_message = "Insufficient AI credits"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(data={"required": required, "available": available})


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class RateLimitExceededError(AppError):
    """Client exceeded the request allowance for the current window.

    Attributes:
        headers: ``X-RateLimit-*`` and ``Retry-After`` headers for the response.
    """

    status_code = 429
    default_message = "Too many requests, please try again later."

    def __init__(self, headers: dict[str, str], data: Any = None):
        self.headers = headers
        super().__init__(data=data)


class AIProviderError(AppError):
    """Upstream AI provider call failed.

    Attributes:
        provider: Provider name (e.g., "gemini").
        status_code: Status reported by (or derived for) the provider.
    """

    def __init__(self, message: str, provider: str, status_code: int = 500):
        self.provider = provider
        super().__init__(message, data={"provider": provider}, status_code=status_code)
