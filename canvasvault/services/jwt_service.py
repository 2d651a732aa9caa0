"""JWT service for access token signing and validation.

Access tokens are short-lived HS256 JWTs carrying the user id, email, device
id and a unique ``jti``. Cryptographic validity is necessary but not
sufficient: the verifier also requires the token's session marker in the
cache (see ``SessionMarkerService``).

Note: This service is synchronous (uses `def` instead of `async def`)
because JWT operations are pure CPU-bound work with no I/O.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import AuthenticationError


class TokenDecodeError(AuthenticationError):
    """Access token failed cryptographic or claim validation.

    Attributes:
        kind: Failure cause: "expired", "invalid_signature", "not_active" or
            "invalid".
        detail: Library error text (for audit logs only).
    """

    MESSAGES = {
        "expired": "Access token has expired",
        "invalid_signature": "Invalid token signature",
        "not_active": "Token not active yet",
        "invalid": "Invalid access token",
    }

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(self.MESSAGES[kind])


@dataclass(frozen=True)
class AccessTokenClaims:
    """Decoded access token payload.

    Attributes:
        user_id: Subject user id.
        email: Email the token was issued for.
        device_id: Device the session belongs to.
        jti: Unique token identifier.
        issued_at: ``iat`` claim.
        expires_at: ``exp`` claim.
    """

    user_id: int
    email: str
    device_id: Optional[str]
    jti: Optional[str]
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]


class JWTService:
    """Service for JWT token operations.

    Token Claims:
        - sub / userId: User ID
        - email: User email address
        - deviceId: Device identifier (stable across rotations)
        - jti: Unique token identifier (names the session marker)
        - iss / aud: Must match configured issuer and audience
        - iat / nbf / exp: Issue, not-before and expiry timestamps

    Attributes:
        secret_key: Secret key for signing tokens
        algorithm: Signing algorithm (HS256)
        issuer: Expected ``iss`` claim
        audience: Expected ``aud`` claim
        leeway_seconds: Clock skew tolerated on time claims
        access_token_expire_minutes: Access token TTL
    """

    def __init__(self, settings: Settings | None = None):
        """Initialize JWT service with configuration from settings."""
        settings = settings or get_settings()
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.issuer = settings.jwt_issuer
        self.audience = settings.jwt_audience
        self.leeway_seconds = settings.jwt_leeway_seconds
        self.access_token_expire_minutes = settings.access_token_expire_minutes

    def create_access_token(
        self,
        user_id: int,
        email: str,
        device_id: str,
        jti: str,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a signed access token.

        Args:
            user_id: Unique user identifier
            email: User's email address
            device_id: Device identifier for the session
            jti: Unique token identifier
            additional_claims: Optional additional claims to include

        Returns:
            Encoded JWT access token string

        Example:
            >>> service = JWTService()
            >>> token = service.create_access_token(1, "a@b.com", "dev-1", "jti-1")
            >>> len(token) > 0
            True
        """
        now = datetime.now(UTC)
        expire = now + timedelta(minutes=self.access_token_expire_minutes)

        claims: Dict[str, Any] = {
            "sub": str(user_id),
            "userId": user_id,
            "email": email,
            "deviceId": device_id,
            "jti": jti,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "nbf": now,
            "exp": expire,
        }
        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Decode and validate a token's signature, issuer, audience and times.

        Args:
            token: Encoded JWT

        Returns:
            Decoded claims dictionary

        Raises:
            TokenDecodeError: With ``kind`` describing the failure cause.
        """
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"leeway": self.leeway_seconds},
            )
        except ExpiredSignatureError as e:
            raise TokenDecodeError("expired", str(e)) from e
        except JWTClaimsError as e:
            kind = "not_active" if "not yet valid" in str(e) else "invalid"
            raise TokenDecodeError(kind, str(e)) from e
        except JWTError as e:
            kind = "invalid_signature" if "Signature verification failed" in str(e) else "invalid"
            raise TokenDecodeError(kind, str(e)) from e

    def parse_claims(self, payload: Dict[str, Any]) -> Optional[AccessTokenClaims]:
        """Extract typed claims from a decoded payload.

        Args:
            payload: Output of ``decode_token``

        Returns:
            AccessTokenClaims, or None if user id or email are missing/malformed
        """
        raw_user_id = payload.get("userId", payload.get("sub"))
        email = payload.get("email")
        if raw_user_id is None or not email:
            return None
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            return None

        def _ts(name: str) -> Optional[datetime]:
            value = payload.get(name)
            return datetime.fromtimestamp(value, tz=UTC) if value is not None else None

        return AccessTokenClaims(
            user_id=user_id,
            email=email,
            device_id=payload.get("deviceId"),
            jti=payload.get("jti"),
            issued_at=_ts("iat"),
            expires_at=_ts("exp"),
        )
