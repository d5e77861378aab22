"""
Encryption Utilities
Fernet encryption for secrets stored at rest (webhook signing secrets)
"""
from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from src.shared.exceptions import CryptoError
from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)

ENCRYPTED_PREFIX = "enc:v1:"


class SecretBox:
    """
    Encrypts short secrets with a Fernet key.

    Ciphertexts carry the ``enc:v1:`` prefix so that values written before a
    key was configured (plain text) still read back unchanged. Without a key
    the box is a pass-through.
    """

    def __init__(self, key: Optional[str] = None) -> None:
        self._cipher: Optional[Fernet] = None
        if key:
            try:
                self._cipher = Fernet(key.encode("utf-8"))
            except (ValueError, TypeError) as e:
                raise CryptoError("Invalid WEBHOOK_SECRET_KEY; expected a urlsafe base64 Fernet key") from e

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None or plaintext == "" or self._cipher is None:
            return plaintext
        token = self._cipher.encrypt(plaintext.encode("utf-8")).decode("utf-8")
        return f"{ENCRYPTED_PREFIX}{token}"

    def decrypt(self, stored: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored value.

        Raises:
            CryptoError: ciphertext present but no key configured, or the key does not match
        """
        if not stored or not stored.startswith(ENCRYPTED_PREFIX):
            return stored
        if self._cipher is None:
            raise CryptoError("Encrypted secret found but WEBHOOK_SECRET_KEY is not configured")
        try:
            return self._cipher.decrypt(stored[len(ENCRYPTED_PREFIX):].encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("secret_decrypt_failed")
            raise CryptoError("Unable to decrypt stored secret") from e
