# src/webhooks/infrastructure/container.py
"""Wiring of the webhook services around one session factory."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Settings, settings as default_settings
from src.shared.infrastructure.security.encryption import SecretBox
from src.webhooks.application.services.cleanup_service import CleanupService
from src.webhooks.application.services.dispatch_service import DispatchService
from src.webhooks.application.services.fanout_service import FanoutService
from src.webhooks.application.services.pipeline_service import WebhookPipelineService
from src.webhooks.application.services.queue_service import WebhookQueueService
from src.webhooks.application.services.retry_service import RetryService
from src.webhooks.application.services.scheduled_publisher import ScheduledContentPublisher
from src.webhooks.application.services.webhook_service import WebhookService
from src.webhooks.infrastructure.delivery_client import WebhookDeliveryClient
from src.webhooks.infrastructure.tenant_resolver import TenantResolver


@dataclass
class WebhookContainer:
    session_factory: async_sessionmaker[AsyncSession]
    tenant_resolver: TenantResolver
    delivery_client: WebhookDeliveryClient
    fanout: FanoutService
    dispatcher: DispatchService
    retry: RetryService
    cleanup: CleanupService
    pipeline: WebhookPipelineService
    webhooks: WebhookService
    queue: WebhookQueueService


def build_webhook_container(
    session_factory: async_sessionmaker[AsyncSession],
    cfg: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    scheduled_publisher: Optional[ScheduledContentPublisher] = None,
) -> WebhookContainer:
    cfg = cfg or default_settings
    resolver = TenantResolver(session_factory, cache_size=cfg.TENANT_CACHE_SIZE)
    secret_box = SecretBox(cfg.WEBHOOK_SECRET_KEY)
    client = WebhookDeliveryClient(timeout_seconds=cfg.WEBHOOK_TIMEOUT_MS / 1000, transport=transport)

    fanout = FanoutService(session_factory, resolver, max_event_attempts=cfg.DOMAIN_EVENT_MAX_ATTEMPTS)
    dispatcher = DispatchService(session_factory, resolver, client, secret_box)
    retry = RetryService(session_factory, resolver)
    cleanup = CleanupService(session_factory, resolver)
    pipeline = WebhookPipelineService(
        session_factory,
        resolver,
        fanout=fanout,
        dispatcher=dispatcher,
        retry=retry,
        cleanup=cleanup,
        scheduled_publisher=scheduled_publisher,
        cfg=cfg,
    )
    return WebhookContainer(
        session_factory=session_factory,
        tenant_resolver=resolver,
        delivery_client=client,
        fanout=fanout,
        dispatcher=dispatcher,
        retry=retry,
        cleanup=cleanup,
        pipeline=pipeline,
        webhooks=WebhookService(
            session_factory,
            resolver,
            client,
            secret_box,
            test_timeout_seconds=cfg.WEBHOOK_TEST_TIMEOUT_MS / 1000,
        ),
        queue=WebhookQueueService(session_factory, resolver, max_attempts=cfg.WEBHOOK_MAX_RETRY_ATTEMPTS),
    )
