import asyncio

from sqlalchemy import select

from src.webhooks.application.services.fanout_service import FanoutService
from src.webhooks.domain.value_objects import TERMINAL_ERROR_PREFIX
from src.webhooks.infrastructure.models import DomainEvent, WebhookOutboxJob
from src.webhooks.infrastructure.repositories.domain_event_repository import DomainEventRepository
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository


async def _jobs(session_factory, event_id):
    async with session_factory() as s:
        return await OutboxRepository(s).list_for_event(event_id)


async def test_event_fans_out_to_subscribed_webhooks(container, tenant, add_webhook, add_event, session_factory, load):
    a = await add_webhook(tenant.id, url="https://a.test/hook", events=["*"])
    b = await add_webhook(tenant.id, url="https://b.test/hook", events=["content.published"])
    await add_webhook(tenant.id, url="https://c.test/hook", events=["menu.created"])
    await add_webhook(tenant.id, url="https://d.test/hook", is_active=False)
    event = await add_event(tenant.id)

    result = await container.fanout.process_batch(50)

    assert result.to_dict() == {"processed": 1, "queued": 2, "skipped": 0, "failed": 0}
    stored = await load(DomainEvent, event.id)
    assert stored.status == "queued"
    assert stored.last_error is None
    jobs = await _jobs(session_factory, event.id)
    assert {j.webhook_id for j in jobs} == {a.id, b.id}
    for job in jobs:
        assert job.status == "pending" and job.retry_count == 0
        assert job.payload["id"] == str(event.id)
        assert job.payload["type"] == "content.published"
        assert job.payload["payload"] == {"id": "c1", "title": "Hello"}
        assert job.payload["metadata"] == {"source": "tests"}


async def test_event_recorded_by_slug_matches_webhook_recorded_by_id(container, tenant, add_webhook, add_event):
    await add_webhook(tenant.id)
    await add_event("acme")
    await add_event(tenant.id.hex)

    result = await container.fanout.process_batch(50)

    assert result.queued == 2


async def test_no_active_webhooks_skips(container, tenant, add_webhook, add_event, load, session_factory):
    await add_webhook(tenant.id, is_active=False)
    event = await add_event(tenant.id)

    result = await container.fanout.process_batch(50)

    assert result.skipped == 1 and result.queued == 0
    stored = await load(DomainEvent, event.id)
    assert stored.status == "skipped"
    assert stored.last_error == "No active webhooks"
    assert await _jobs(session_factory, event.id) == []


async def test_no_subscribed_webhooks_skips(container, tenant, add_webhook, add_event, load):
    await add_webhook(tenant.id, events=["menu.created"])
    event = await add_event(tenant.id, type="form.submitted")

    await container.fanout.process_batch(50)

    stored = await load(DomainEvent, event.id)
    assert stored.status == "skipped"
    assert stored.last_error == "No subscribed webhooks"


async def test_tenant_filter(container, tenant, other_tenant, add_webhook, add_event, load):
    await add_webhook(tenant.id)
    await add_webhook(other_tenant.id)
    mine = await add_event(tenant.id)
    theirs = await add_event(other_tenant.id)

    result = await container.fanout.process_batch(50, tenant_id="acme")

    assert result.processed == 1
    assert (await load(DomainEvent, mine.id)).status == "queued"
    assert (await load(DomainEvent, theirs.id)).status == "pending"


async def test_batch_limit_takes_oldest_first(container, tenant, add_webhook, add_event, load):
    await add_webhook(tenant.id)
    first = await add_event(tenant.id)
    second = await add_event(tenant.id)

    await container.fanout.process_batch(1)

    assert (await load(DomainEvent, first.id)).status == "queued"
    assert (await load(DomainEvent, second.id)).status == "pending"


async def test_lost_claim_creates_no_jobs(container, tenant, add_webhook, add_event, session_factory, load, monkeypatch):
    await add_webhook(tenant.id)
    event = await add_event(tenant.id)
    original_claim = FanoutService._claim

    async def contended(self, ev):
        # another worker claims the event between listing and claiming
        async with session_factory() as other:
            assert await DomainEventRepository(other).claim(ev.id)
            await other.commit()
        return await original_claim(self, ev)

    monkeypatch.setattr(FanoutService, "_claim", contended)

    result = await container.fanout.process_batch(50)

    assert result.skipped == 1 and result.queued == 0
    assert (await load(DomainEvent, event.id)).status == "processing"
    assert await _jobs(session_factory, event.id) == []


async def test_claim_is_exclusive(tenant, add_event, session_factory):
    event = await add_event(tenant.id)
    async with session_factory() as first, session_factory() as second:
        assert await DomainEventRepository(first).claim(event.id) is True
        await first.commit()
        assert await DomainEventRepository(second).claim(event.id) is False


async def test_failure_releases_event_for_retry(container, tenant, add_webhook, add_event, load, session_factory, monkeypatch):
    await add_webhook(tenant.id)
    event = await add_event(tenant.id)

    async def broken(self, drafts):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(OutboxRepository, "add_drafts", broken)

    result = await container.fanout.process_batch(50)

    assert result.failed == 1
    stored = await load(DomainEvent, event.id)
    assert stored.status == "pending"
    assert stored.retry_count == 1
    assert stored.last_error == "insert failed"
    async with session_factory() as s:
        assert (await s.execute(select(WebhookOutboxJob))).scalars().all() == []


async def test_event_fails_terminally_after_max_attempts(container, tenant, add_webhook, add_event, load, monkeypatch):
    # DOMAIN_EVENT_MAX_ATTEMPTS is 3 in the test settings
    await add_webhook(tenant.id)
    event = await add_event(tenant.id, retry_count=2)

    async def broken(self, drafts):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(OutboxRepository, "add_drafts", broken)

    await container.fanout.process_batch(50)

    stored = await load(DomainEvent, event.id)
    assert stored.status == "failed"
    assert stored.retry_count == 3
    assert stored.last_error.startswith(TERMINAL_ERROR_PREFIX)
    assert (await container.fanout.process_batch(50)).processed == 0


async def test_claim_error_does_not_abort_batch(container, tenant, add_webhook, add_event, load, monkeypatch):
    await add_webhook(tenant.id)
    first = await add_event(tenant.id)
    second = await add_event(tenant.id)
    original_claim = DomainEventRepository.claim

    async def flaky(self, event_id):
        if event_id == first.id:
            raise RuntimeError("deadlock detected")
        return await original_claim(self, event_id)

    monkeypatch.setattr(DomainEventRepository, "claim", flaky)

    result = await container.fanout.process_batch(50)

    assert result.to_dict() == {"processed": 2, "queued": 1, "skipped": 0, "failed": 1}
    assert (await load(DomainEvent, first.id)).status == "pending"
    assert (await load(DomainEvent, second.id)).status == "queued"


async def test_concurrent_workers_fan_out_once(container, tenant, add_webhook, add_event, session_factory, load, monkeypatch):
    for n in range(3):
        await add_webhook(tenant.id, url=f"https://hooks.test/{n}")
    event = await add_event(tenant.id)

    # both workers must have listed the event before either claims it
    listed = []
    both_listed = asyncio.Event()
    original_list = DomainEventRepository.list_pending

    async def rendezvous(self, limit, tenant_values=None):
        rows = await original_list(self, limit, tenant_values)
        listed.append(len(rows))
        if len(listed) == 2:
            both_listed.set()
        await asyncio.wait_for(both_listed.wait(), timeout=5)
        return rows

    monkeypatch.setattr(DomainEventRepository, "list_pending", rendezvous)

    first, second = await asyncio.gather(
        container.fanout.process_batch(50),
        container.fanout.process_batch(50),
    )

    assert listed == [1, 1]
    assert first.queued + second.queued == 3
    assert first.skipped + second.skipped == 1
    assert first.failed + second.failed == 0
    assert len(await _jobs(session_factory, event.id)) == 3
    stored = await load(DomainEvent, event.id)
    assert stored.status == "queued"
    assert stored.retry_count == 0
