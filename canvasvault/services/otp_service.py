"""One-time codes for email verification and password resets.

All codes live only in the cache:

- ``user:otp:{user_id}``: 6-digit signup verification code
- ``user:password-reset-otp:{user_id}``: 6-digit password reset code
- ``user:password-reset-token:{token}``: user id behind a reset link token

Writing a code for a user overwrites the previous one, so at most one code
of each kind is outstanding per user.
"""

import hmac
import secrets
from typing import Optional

from canvasvault.core.cache import CacheBackend
from canvasvault.core.config import Settings


def generate_otp() -> str:
    """Generate a uniformly distributed 6-digit numeric code."""
    return str(100000 + secrets.randbelow(900000))


def generate_reset_token() -> str:
    """Generate a password reset link token (32 random bytes, hex)."""
    return secrets.token_hex(32)


def codes_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two codes."""
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


class OTPService:
    """Store, read and consume one-time codes.

    Attributes:
        cache: Cache backend holding the codes.
        settings: TTL configuration.
    """

    def __init__(self, cache: CacheBackend, settings: Settings):
        self.cache = cache
        self.settings = settings

    @staticmethod
    def verification_key(user_id: int) -> str:
        return f"user:otp:{user_id}"

    @staticmethod
    def reset_otp_key(user_id: int) -> str:
        return f"user:password-reset-otp:{user_id}"

    @staticmethod
    def reset_token_key(token: str) -> str:
        return f"user:password-reset-token:{token}"

    async def issue_verification_otp(self, user_id: int) -> str:
        otp = generate_otp()
        await self.cache.set(self.verification_key(user_id), otp, self.settings.otp_ttl_seconds)
        return otp

    async def get_verification_otp(self, user_id: int) -> Optional[str]:
        return await self.cache.get(self.verification_key(user_id))

    async def consume_verification_otp(self, user_id: int) -> None:
        await self.cache.delete(self.verification_key(user_id))

    async def issue_reset_otp(self, user_id: int) -> str:
        otp = generate_otp()
        await self.cache.set(
            self.reset_otp_key(user_id), otp, self.settings.password_reset_otp_ttl_seconds
        )
        return otp

    async def get_reset_otp(self, user_id: int) -> Optional[str]:
        return await self.cache.get(self.reset_otp_key(user_id))

    async def consume_reset_otp(self, user_id: int) -> None:
        await self.cache.delete(self.reset_otp_key(user_id))

    async def issue_reset_token(self, user_id: int) -> str:
        token = generate_reset_token()
        await self.cache.set(
            self.reset_token_key(token),
            str(user_id),
            self.settings.password_reset_token_ttl_seconds,
        )
        return token

    async def resolve_reset_token(self, token: str) -> Optional[int]:
        """Return the user id behind a reset token, or None if unknown/expired."""
        value = await self.cache.get(self.reset_token_key(token))
        if value is None or not value.isdigit():
            return None
        return int(value)

    async def consume_reset_token(self, token: str) -> None:
        await self.cache.delete(self.reset_token_key(token))
