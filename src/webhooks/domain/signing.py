# src/webhooks/domain/signing.py
"""
Outbound webhook signing.

Receivers verify by recomputing HMAC-SHA256 over the raw request body with the
shared secret and comparing against the ``X-Webhook-Signature`` header (hex).
"""
from __future__ import annotations

import hmac
from typing import Any, Dict, Optional

from src.shared.utils.crypto import hmac_sha256_hex
from src.shared.utils.serialization import canonical_dumps

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
DELIVERY_HEADER = "X-Webhook-Delivery"


def sign_payload(secret: Optional[str], body: bytes) -> str:
    """Hex HMAC-SHA256 of ``body``; empty secret means unsigned (empty string)."""
    if not secret:
        return ""
    return hmac_sha256_hex(secret, body)


def verify_signature(secret: Optional[str], body: bytes, signature: Optional[str]) -> bool:
    expected = sign_payload(secret, body)
    if not expected or not signature:
        return False
    return hmac.compare_digest(expected, signature.strip().lower())


def encode_body(payload: Dict[str, Any]) -> bytes:
    return canonical_dumps(payload or {})


def build_headers(event_type: str, signature: str, delivery_id: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: signature,
        EVENT_HEADER: event_type,
    }
    if delivery_id:
        headers[DELIVERY_HEADER] = delivery_id
    return headers
