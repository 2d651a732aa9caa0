"""Core enums shared across layers.

Environment:
- DEVELOPMENT: Local development with hot reload, debug mode
- TESTING: Automated test execution with isolated database
- CI: Continuous integration environment
- PRODUCTION: Production deployment with full security

AuthAction tags every audit record written by the token verifier and the
login flows.
"""

from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    CI = "ci"
    PRODUCTION = "production"


class AuthAction(str, Enum):
    """Audit action tags for authentication events."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    AUTH_ERROR = "AUTH_ERROR"


class AIProvider(str, Enum):
    """Upstream AI providers reachable through the proxy."""

    GEMINI = "gemini"
    PERPLEXITY = "perplexity"
