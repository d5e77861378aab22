"""
Shared Security Infrastructure
Encryption of secrets at rest
"""
from src.shared.infrastructure.security.encryption import ENCRYPTED_PREFIX, SecretBox

__all__ = [
    "SecretBox",
    "ENCRYPTED_PREFIX",
]
