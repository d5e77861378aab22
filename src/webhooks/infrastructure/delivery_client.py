# src/webhooks/infrastructure/delivery_client.py
"""
Outbound webhook HTTP adapter.

Used by the dispatcher and by synchronous test deliveries so both go through
the same signing, timeout and logging path.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from src.webhooks.domain.signing import build_headers, encode_body, sign_payload
from src.webhooks.domain.value_objects import DeliveryErrorType, classify_delivery_error

MAX_LOG_BODY_LENGTH = 500
DEFAULT_TIMEOUT_SECONDS = 15.0


def truncate_snippet(text: Optional[str], limit: int = MAX_LOG_BODY_LENGTH) -> Optional[str]:
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


@dataclass
class DeliveryResult:
    ok: bool
    status_code: Optional[int]
    duration_ms: int
    signature: str
    response_snippet: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[DeliveryErrorType] = None


class WebhookDeliveryClient:
    """
    Signs and POSTs webhook bodies.

    ``transport`` is passed through to ``httpx.AsyncClient`` (tests inject an
    ``httpx.MockTransport``). The deadline is enforced twice: httpx's own
    timeout and an ``asyncio.wait_for`` around the whole call, so a slow
    response body cannot hold the batch past the limit.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: str = "webhook-outbox/1.0",
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._user_agent = user_agent

    async def deliver(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        secret: Optional[str],
        event_type: str,
        delivery_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> DeliveryResult:
        timeout = timeout_seconds or self.timeout_seconds
        body = encode_body(payload)
        signature = sign_payload(secret, body)
        headers = build_headers(event_type, signature, delivery_id)
        headers["User-Agent"] = self._user_agent

        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.post(url, content=body, headers=headers),
                    timeout=timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return DeliveryResult(
                ok=False,
                status_code=None,
                duration_ms=_elapsed_ms(started),
                signature=signature,
                error=f"Timed out after {timeout:g}s",
                error_type=DeliveryErrorType.TIMEOUT,
            )
        except httpx.HTTPError as e:
            return DeliveryResult(
                ok=False,
                status_code=None,
                duration_ms=_elapsed_ms(started),
                signature=signature,
                error=f"{e.__class__.__name__}: {e}" if str(e) else e.__class__.__name__,
                error_type=DeliveryErrorType.TRANSIENT,
            )

        duration_ms = _elapsed_ms(started)
        snippet = truncate_snippet(response.text)
        if response.is_success:
            return DeliveryResult(
                ok=True,
                status_code=response.status_code,
                duration_ms=duration_ms,
                signature=signature,
                response_snippet=snippet,
            )
        return DeliveryResult(
            ok=False,
            status_code=response.status_code,
            duration_ms=duration_ms,
            signature=signature,
            response_snippet=snippet,
            error=f"HTTP {response.status_code}",
            error_type=classify_delivery_error(response.status_code),
        )


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))
