# /src/shared/utils/crypto.py
"""
Crypto helpers. No secrets logged.

- hmac_sha256_hex(key, data)
- constant_time_equals(a, b)
- generate_secret(nbytes)
"""

from __future__ import annotations

import hashlib
import hmac
import secrets


def hmac_sha256_hex(key: bytes | str, data: bytes | str) -> str:
    if isinstance(key, str):
        key = key.encode("utf-8")
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hmac.new(key, data, hashlib.sha256).hexdigest()


def constant_time_equals(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def generate_secret(nbytes: int = 32) -> str:
    """Random hex secret; 32 bytes -> 64 hex chars."""
    return secrets.token_hex(nbytes)
