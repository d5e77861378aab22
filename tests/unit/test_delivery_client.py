import hashlib
import hmac
import json

import httpx

from src.webhooks.domain.value_objects import DeliveryErrorType
from src.webhooks.infrastructure.delivery_client import WebhookDeliveryClient

PAYLOAD = {"type": "form.submitted", "id": "e1", "payload": {"fields": {"email": "a@b.test"}}}


def _client(receiver, timeout=2.0):
    return WebhookDeliveryClient(timeout_seconds=timeout, transport=httpx.MockTransport(receiver))


async def test_signed_post(receiver):
    result = await _client(receiver).deliver(
        "https://hooks.example.com/in",
        PAYLOAD,
        secret="s3cr3t",
        event_type="form.submitted",
        delivery_id="job-1",
    )

    assert result.ok and result.status_code == 200
    req = receiver.requests[0]
    assert req.method == "POST"
    assert req.headers["content-type"] == "application/json"
    assert req.headers["x-webhook-event"] == "form.submitted"
    assert req.headers["x-webhook-delivery"] == "job-1"
    expected = hmac.new(b"s3cr3t", req.content, hashlib.sha256).hexdigest()
    assert req.headers["x-webhook-signature"] == expected == result.signature
    assert json.loads(req.content) == PAYLOAD


async def test_non_2xx_is_failure(receiver):
    receiver.status_code = 503
    receiver.body = "down for maintenance"
    result = await _client(receiver).deliver("https://hooks.example.com/in", PAYLOAD, secret=None, event_type="x")

    assert not result.ok
    assert result.status_code == 503
    assert result.error == "HTTP 503"
    assert result.error_type is DeliveryErrorType.TRANSIENT
    assert result.response_snippet == "down for maintenance"
    assert receiver.requests[0].headers["x-webhook-signature"] == ""


async def test_client_error_is_permanent(receiver):
    receiver.status_code = 410
    result = await _client(receiver).deliver("https://hooks.example.com/in", PAYLOAD, secret="s", event_type="x")
    assert result.error_type is DeliveryErrorType.PERMANENT


async def test_slow_receiver_times_out(receiver):
    receiver.delay = 1.0
    result = await _client(receiver, timeout=0.05).deliver(
        "https://hooks.example.com/in", PAYLOAD, secret="s", event_type="x"
    )
    assert not result.ok
    assert result.status_code is None
    assert result.error_type is DeliveryErrorType.TIMEOUT
    assert result.error.startswith("Timed out after")


async def test_transport_timeout(receiver):
    receiver.error = httpx.ReadTimeout("read timed out")
    result = await _client(receiver).deliver("https://hooks.example.com/in", PAYLOAD, secret="s", event_type="x")
    assert result.error_type is DeliveryErrorType.TIMEOUT


async def test_connection_error_is_transient(receiver):
    receiver.error = httpx.ConnectError("connection refused")
    result = await _client(receiver).deliver("https://hooks.example.com/in", PAYLOAD, secret="s", event_type="x")
    assert not result.ok
    assert result.error_type is DeliveryErrorType.TRANSIENT
    assert "connection refused" in result.error
