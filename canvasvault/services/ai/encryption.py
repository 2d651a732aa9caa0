"""Encryption service for user-supplied provider API keys.

Keys are encrypted with AES-256 in CBC mode using PKCS7 padding and a random
16-byte IV per value. The stored form is ``iv_hex:cipher_hex``.

The 32-byte key comes from ``settings.encryption_key``, whose length is
validated when settings load. It is never padded or truncated here.
"""

import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from canvasvault.core.config import Settings, get_settings
from canvasvault.core.errors import AppError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
KEY_LENGTH = 32


class EncryptionError(AppError):
    """Stored ciphertext could not be decrypted (500).

    Raised when a stored key is malformed or was written under another
    ``ENCRYPTION_KEY``.
    """

    status_code = 500
    default_message = "Stored API key could not be decrypted"


class EncryptionService:
    """Encrypt and decrypt API keys for storage.

    Attributes:
        key: 32-byte AES key.
    """

    def __init__(self, settings: Settings | None = None, key: bytes | None = None):
        """Initialize the cipher key.

        Args:
            settings: Application settings (defaults to cached settings)
            key: Raw key override, mainly for tests

        Raises:
            ValueError: If the key is not exactly 32 bytes
        """
        if key is None:
            key = (settings or get_settings()).encryption_key.encode("utf-8")
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Encryption key must be exactly {KEY_LENGTH} bytes")
        self.key = key

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string value.

        Args:
            plaintext: The string to encrypt.

        Returns:
            ``iv_hex:cipher_hex``

        Example:
            >>> service = EncryptionService(key=b"0" * 32)
            >>> service.decrypt(service.encrypt("sk-test")) == "sk-test"
            True
        """
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, stored: str) -> str:
        """Decrypt a value produced by ``encrypt``.

        Args:
            stored: ``iv_hex:cipher_hex``

        Returns:
            The original plaintext string.

        Raises:
            EncryptionError: If the value is malformed or the padding is invalid.
        """
        iv_hex, sep, cipher_hex = stored.partition(":")
        if not sep:
            raise EncryptionError()
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
            decryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as e:
            logger.error(f"Decryption failed: {type(e).__name__}")
            raise EncryptionError() from e
