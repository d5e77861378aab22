import json
from uuid import uuid4

import pytest

from src.shared.exceptions import ValidationError
from src.webhooks.domain.exceptions import (
    DuplicateWebhookError,
    WebhookDeliveryError,
    WebhookNotFoundError,
)
from src.webhooks.domain.signing import sign_payload


async def test_create_generates_secret_and_defaults(container, tenant):
    created = await container.webhooks.create_webhook("acme", url=" https://a.test/hook ")

    assert len(created.secret) == 64
    hook = created.webhook
    assert hook.tenant_id == str(tenant.id)
    assert hook.url == "https://a.test/hook"
    assert hook.events == ["*"]
    assert hook.is_active is True


async def test_create_validates_input(container, tenant):
    with pytest.raises(ValidationError):
        await container.webhooks.create_webhook("acme", url="ftp://a.test/hook")
    with pytest.raises(ValidationError):
        await container.webhooks.create_webhook("acme", url="https://a.test/hook", events=["nope.nope"])


async def test_duplicate_url_conflicts(container, tenant):
    await container.webhooks.create_webhook("acme", url="https://a.test/hook")
    with pytest.raises(DuplicateWebhookError):
        await container.webhooks.create_webhook(str(tenant.id), url="https://a.test/hook")


async def test_same_url_for_different_tenants(container, tenant, other_tenant):
    await container.webhooks.create_webhook("acme", url="https://a.test/hook")
    await container.webhooks.create_webhook("globex", url="https://a.test/hook")
    assert len(await container.webhooks.list_webhooks("globex")) == 1


async def test_update(container, tenant):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook")

    updated = await container.webhooks.update_webhook(
        "acme", created.webhook.id, {"events": ["form.submitted"], "is_active": False}
    )

    assert updated.events == ["form.submitted"]
    assert updated.is_active is False
    with pytest.raises(ValidationError):
        await container.webhooks.update_webhook("acme", created.webhook.id, {})


async def test_other_tenant_cannot_see_webhook(container, tenant, other_tenant):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook")
    with pytest.raises(WebhookNotFoundError):
        await container.webhooks.get_webhook("globex", created.webhook.id)
    with pytest.raises(WebhookNotFoundError):
        await container.webhooks.delete_webhook("globex", created.webhook.id)


async def test_delete(container, tenant):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook")
    await container.webhooks.delete_webhook("acme", created.webhook.id)
    assert await container.webhooks.list_webhooks("acme") == []
    with pytest.raises(WebhookNotFoundError):
        await container.webhooks.delete_webhook("acme", uuid4())


async def test_rotate_secret(container, tenant, receiver):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook", secret="old")

    rotated = await container.webhooks.rotate_secret("acme", created.webhook.id)

    assert rotated.secret != "old"
    outcome = await container.webhooks.send_test_webhook("acme", created.webhook.id)
    assert outcome.signature == sign_payload(rotated.secret, receiver.requests[0].content)


async def test_send_test_webhook(container, tenant, receiver):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook", events=["menu.created"])

    outcome = await container.webhooks.send_test_webhook("acme", created.webhook.id)

    assert outcome.ok and outcome.status == 200
    req = receiver.requests[0]
    assert req.headers["x-webhook-event"] == "webhook.test"


async def test_send_test_webhook_failure(container, tenant, receiver):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook")
    receiver.status_code = 404
    receiver.body = "no such hook"

    with pytest.raises(WebhookDeliveryError) as exc:
        await container.webhooks.send_test_webhook("acme", created.webhook.id)

    assert exc.value.status_code == 502
    assert exc.value.details == {"status": 404, "response": "no such hook"}


async def test_send_test_webhook_rejects_inactive(container, tenant, receiver):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook", is_active=False)

    with pytest.raises(WebhookNotFoundError) as exc:
        await container.webhooks.send_test_webhook("acme", created.webhook.id)

    assert exc.value.message == "Webhook not found or inactive"
    assert receiver.requests == []


async def test_send_test_webhook_with_custom_payload(container, tenant, receiver):
    created = await container.webhooks.create_webhook("acme", url="https://a.test/hook")

    await container.webhooks.send_test_webhook("acme", created.webhook.id, payload={"order": 42})

    body = json.loads(receiver.requests[0].content)
    assert body["type"] == "webhook.test"
    assert body["payload"] == {"order": 42}
    assert body["metadata"]["test"] is True
