import hashlib
import hmac
import json

import pytest

from src.webhooks.application.options import PipelineOptions
from src.webhooks.application.services.event_ingestion import emit_domain_event
from src.webhooks.application.services.scheduled_publisher import ScheduledPublishResult
from src.webhooks.domain.exceptions import TenantNotFoundError
from src.webhooks.infrastructure.models import DomainEvent, Tenant, WebhookOutboxJob
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository


async def test_event_to_signed_delivery(container, tenant, add_webhook, session_factory, receiver, load):
    hook = await add_webhook(tenant.id, url="https://receiver.test/hooks", events=["content.published"], secret="s3cr3t")
    async with session_factory() as s:
        event_id = await emit_domain_event(
            s, tenant_id="acme", type="content.published", payload={"id": "c1", "slug": "hello-world"}
        )
        await s.commit()

    run = await container.pipeline.run()

    assert run.ok
    assert run.aggregate.tenants_processed == 1
    assert run.aggregate.events_processed == 1
    assert run.aggregate.jobs_queued == 1
    assert run.aggregate.webhooks_succeeded == 1

    assert len(receiver.requests) == 1
    req = receiver.requests[0]
    body = json.loads(req.content)
    assert body["id"] == str(event_id)
    assert body["type"] == "content.published"
    assert body["tenantId"] == "acme"
    assert body["payload"] == {"id": "c1", "slug": "hello-world"}
    assert req.headers["x-webhook-signature"] == hmac.new(b"s3cr3t", req.content, hashlib.sha256).hexdigest()

    assert (await load(DomainEvent, event_id)).status == "queued"
    async with session_factory() as s:
        (job,) = await OutboxRepository(s).list_for_event(event_id)
    assert job.status == "done"
    assert job.webhook_id == hook.id


async def test_failed_delivery_is_retried_on_a_later_run(container, tenant, add_webhook, add_event, receiver, session_factory):
    await add_webhook(tenant.id)
    event = await add_event(tenant.id)
    receiver.status_code = 500
    opts = PipelineOptions(retry_backoff_ms=0, max_retry_attempts=2)

    first = await container.pipeline.run(options=opts)
    assert first.aggregate.webhooks_failed == 1

    receiver.status_code = 200
    second = await container.pipeline.run(options=opts)
    assert second.aggregate.retry_requeued == 1
    assert second.aggregate.webhooks_succeeded == 1

    async with session_factory() as s:
        (job,) = await OutboxRepository(s).list_for_event(event.id)
    assert job.status == "done"
    assert job.retry_count == 1
    assert len(receiver.requests) == 2


async def test_exhausted_job_is_cleaned_up(container, tenant, add_webhook, add_event, receiver, session_factory):
    await add_webhook(tenant.id)
    event = await add_event(tenant.id)
    receiver.status_code = 500
    opts = PipelineOptions(retry_backoff_ms=0, max_retry_attempts=1, dead_letter_grace_ms=0)

    run = await container.pipeline.run("acme", opts)

    assert run.aggregate.webhooks_failed == 1
    assert run.aggregate.cleanup_deleted == 1
    async with session_factory() as s:
        assert await OutboxRepository(s).list_for_event(event.id) == []


async def test_run_for_unknown_tenant(container, tenant):
    with pytest.raises(TenantNotFoundError):
        await container.pipeline.run("nope")


async def test_failing_stage_does_not_stop_the_others(container, tenant, add_webhook, add_job, receiver, monkeypatch):
    hook = await add_webhook(tenant.id)
    await add_job(tenant.id, hook.id)

    async def broken(*args, **kwargs):
        raise RuntimeError("fanout exploded")

    monkeypatch.setattr(container.fanout, "process_batch", broken)

    run = await container.pipeline.run()

    assert not run.ok
    summary = run.summaries[0]
    assert summary.errors == [{"stage": "fanout", "error": "fanout exploded"}]
    assert summary.dispatch.succeeded == 1
    assert run.to_dict()["aggregate"]["errors"] == 1


async def test_run_tenant_propagates_stage_errors(container, tenant, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("dispatch exploded")

    monkeypatch.setattr(container.dispatcher, "dispatch_batch", broken)

    with pytest.raises(RuntimeError):
        await container.pipeline.run_tenant("acme")


async def test_inactive_tenants_are_not_processed(container, tenant, other_tenant, session_factory):
    async with session_factory() as s:
        t = await s.get(Tenant, other_tenant.id)
        t.status = "suspended"
        await s.commit()

    run = await container.pipeline.run()

    assert [s.slug for s in run.summaries] == ["acme"]


async def test_scheduled_publisher_runs_first(session_factory, cfg, tenant, add_webhook, receiver):
    import httpx

    from src.webhooks.infrastructure.container import build_webhook_container

    calls = []

    class Publisher:
        async def publish_due(self, tenant_id, limit):
            calls.append((tenant_id, limit))
            async with session_factory() as s:
                await emit_domain_event(s, tenant_id=tenant_id, type="content.published", payload={"id": "due"})
                await s.commit()
            return ScheduledPublishResult(matched=1, published=1)

    container = build_webhook_container(
        session_factory, cfg, transport=httpx.MockTransport(receiver), scheduled_publisher=Publisher()
    )
    await add_webhook(tenant.id)

    run = await container.pipeline.run()

    assert calls == [(str(tenant.id), cfg.SCHEDULED_PUBLISH_LIMIT)]
    assert run.aggregate.scheduled_published == 1
    assert run.aggregate.webhooks_succeeded == 1


async def test_emit_rejects_unknown_type(session_factory, tenant):
    async with session_factory() as s:
        assert await emit_domain_event(s, tenant_id=tenant.id, type="content.exploded") is None
        assert await emit_domain_event(s, tenant_id="", type="content.published") is None


async def test_emit_rolls_back_with_the_caller(session_factory, tenant, load):
    async with session_factory() as s:
        event_id = await emit_domain_event(s, tenant_id=tenant.id, type="menu.updated")
        await s.rollback()
    assert await load(DomainEvent, event_id) is None


async def test_results_serialize(container, tenant):
    data = (await container.pipeline.run()).to_dict()
    assert set(data) == {"ok", "options", "aggregate", "summaries"}
    assert data["summaries"][0]["tenant_id"] == str(tenant.id)
    assert data["options"]["max_retry_attempts"] == 5
    assert isinstance(data["summaries"][0]["duration_ms"], int)


async def test_no_jobs_left_behind_on_success(container, tenant, add_webhook, add_event, session_factory):
    from sqlalchemy import select

    await add_webhook(tenant.id)
    await add_event(tenant.id)
    await container.pipeline.run()

    async with session_factory() as s:
        statuses = (await s.execute(select(WebhookOutboxJob.status))).scalars().all()
    assert statuses == ["done"]
