import asyncio
from datetime import timedelta
from typing import List, Optional
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import Settings
from src.shared.infrastructure.database.base_model import Base, utcnow
from src.shared.security import create_access_token
from src.webhooks.infrastructure import models  # noqa: F401  (registers tables)
from src.webhooks.infrastructure.container import build_webhook_container
from src.webhooks.infrastructure.models import DomainEvent, Tenant, Webhook, WebhookOutboxJob


class Receiver:
    """Stands in for a customer endpoint behind httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body = "ok"
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)


@pytest.fixture
def cfg():
    return Settings(
        WEBHOOK_SECRET_KEY=None,
        WEBHOOK_TIMEOUT_MS=2000,
        WEBHOOK_TEST_TIMEOUT_MS=2000,
        WEBHOOK_MAX_RETRY_ATTEMPTS=5,
        WEBHOOK_RETRY_BACKOFF_MS=60_000,
        DOMAIN_EVENT_MAX_ATTEMPTS=3,
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'outbox.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def tenant(session_factory):
    async with session_factory() as s:
        t = Tenant(slug="acme", name="Acme")
        s.add(t)
        await s.commit()
    return t


@pytest.fixture
async def other_tenant(session_factory):
    async with session_factory() as s:
        t = Tenant(slug="globex", name="Globex")
        s.add(t)
        await s.commit()
    return t


@pytest.fixture
def receiver():
    return Receiver()


@pytest.fixture
def container(session_factory, cfg, receiver):
    return build_webhook_container(session_factory, cfg, transport=httpx.MockTransport(receiver))


@pytest.fixture
def add_webhook(session_factory):
    async def _add(tenant_id, url="https://hooks.example.com/a", events=None, secret="s3cr3t", is_active=True):
        async with session_factory() as s:
            hook = Webhook(
                tenant_id=str(tenant_id),
                url=url,
                events=events if events is not None else ["*"],
                secret=secret,
                is_active=is_active,
            )
            s.add(hook)
            await s.commit()
        return hook

    return _add


@pytest.fixture
def add_event(session_factory):
    async def _add(tenant_id, type="content.published", payload=None, status="pending", retry_count=0):
        async with session_factory() as s:
            event = DomainEvent(
                tenant_id=str(tenant_id),
                type=type,
                occurred_at=utcnow(),
                payload=payload if payload is not None else {"id": "c1", "title": "Hello"},
                event_metadata={"source": "tests"},
                status=status,
                retry_count=retry_count,
            )
            s.add(event)
            await s.commit()
        return event

    return _add


@pytest.fixture
def add_job(session_factory):
    async def _add(tenant_id, webhook_id, status="pending", retry_count=0, age_ms=0, type="content.published"):
        async with session_factory() as s:
            job = WebhookOutboxJob(
                tenant_id=str(tenant_id),
                webhook_id=webhook_id,
                event_id=uuid4(),
                type=type,
                payload={"id": "evt", "type": type},
                status=status,
                retry_count=retry_count,
            )
            s.add(job)
            await s.commit()
            if age_ms:
                await s.execute(
                    update(WebhookOutboxJob)
                    .where(WebhookOutboxJob.id == job.id)
                    .values(updated_at=utcnow() - timedelta(milliseconds=age_ms))
                )
                await s.commit()
        return job

    return _add


@pytest.fixture
def load(session_factory):
    async def _load(model, id_):
        async with session_factory() as s:
            return await s.get(model, id_)

    return _load


@pytest.fixture
def bearer():
    def _headers(tenant_id, role="TENANT_ADMIN", **extra) -> dict:
        token = create_access_token(uuid4(), tenant_id, role, extra_claims=extra or None)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def api(container):
    from src.main import create_app

    app = create_app()
    app.state.webhooks = container
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
