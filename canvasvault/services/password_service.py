"""Password service for hashing and verification.

Note: This service is synchronous (uses `def` instead of `async def`)
because password hashing is CPU-bound and bcrypt is a synchronous library.
"""

import bcrypt

from canvasvault.core.config import get_settings


class PasswordService:
    """Service for password operations using bcrypt.

    Attributes:
        bcrypt_rounds: Work factor used for new hashes (from settings).
    """

    def __init__(self, bcrypt_rounds: int | None = None):
        """Initialize password service with bcrypt configuration.

        Args:
            bcrypt_rounds: Override for the configured work factor.
        """
        self.bcrypt_rounds = bcrypt_rounds or get_settings().bcrypt_rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Note: Bcrypt has a 72-byte maximum password length. Passwords are
        truncated to 72 bytes before hashing.

        Args:
            password: Plain text password to hash

        Returns:
            Hashed password string (includes salt and algorithm info)

        Example:
            >>> service = PasswordService()
            >>> hashed = service.hash_password("SecurePass123!")
            >>> hashed.startswith("$2b$")
            True
        """
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash.

        Uses bcrypt's constant-time comparison. A malformed stored hash is
        treated as a mismatch.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Hashed password to compare against

        Returns:
            True if password matches, False otherwise
        """
        password_bytes = plain_password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError:
            return False

    def needs_rehash(self, hashed_password: str) -> bool:
        """Check whether a hash was produced with a different work factor.

        Args:
            hashed_password: Existing password hash to check

        Returns:
            True if hash should be regenerated, False otherwise
        """
        # Format: $2b$12$...
        parts = hashed_password.split("$")
        if len(parts) >= 3 and parts[1] in ("2a", "2b", "2y") and parts[2].isdigit():
            return int(parts[2]) != self.bcrypt_rounds
        return False
