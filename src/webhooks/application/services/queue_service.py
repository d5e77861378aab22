# src/webhooks/application/services/queue_service.py
"""Operator view (outbox and domain event backlog) and bulk actions over a tenant's queue."""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.exceptions import ValidationError
from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.domain.value_objects import EventStatus, JobStatus
from src.webhooks.infrastructure.repositories.domain_event_repository import DomainEventRepository
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


class WebhookQueueService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tenant_resolver: TenantResolver,
        max_attempts: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver
        self._max_attempts = max_attempts

    async def _values(self, tenant_id: str):
        values = await self._resolver.match_values(tenant_id)
        if not values:
            raise ValidationError("tenant_id is required")
        return values

    async def get_queue_status(self, tenant_id: str, recent_limit: int = 20) -> Dict[str, Any]:
        values = await self._values(tenant_id)
        async with self._session_factory() as session:
            repo = OutboxRepository(session)
            counts = await repo.status_counts(values)
            dead = await repo.count_dead_letters(values, self._max_attempts)
            recent = await repo.recent_failed(values, recent_limit)
            pending = await repo.oldest_pending(values, recent_limit)
            events = DomainEventRepository(session)
            event_counts = await events.status_counts(values)
            backlog = await events.oldest_backlog(values, recent_limit)

        return {
            "counts": {s.value: counts.get(s.value, 0) for s in JobStatus},
            "total": sum(counts.values()),
            "dead_letters": dead,
            "max_attempts": self._max_attempts,
            "pending_jobs": [
                {
                    "id": str(job.id),
                    "webhook_id": str(job.webhook_id),
                    "event_id": str(job.event_id),
                    "type": job.type,
                    "retry_count": job.retry_count,
                    "created_at": job.created_at,
                }
                for job in pending
            ],
            "recent_failures": [
                {
                    "id": str(job.id),
                    "webhook_id": str(job.webhook_id),
                    "event_id": str(job.event_id),
                    "type": job.type,
                    "retry_count": job.retry_count,
                    "last_error": job.last_error,
                    "error_type": job.error_type,
                    "last_http_status": job.last_http_status,
                    "updated_at": job.updated_at,
                }
                for job in recent
            ],
            "domain_events": {
                "counts": {s.value: event_counts.get(s.value, 0) for s in EventStatus},
                "total_pending": event_counts.get(EventStatus.PENDING.value, 0),
                "oldest_backlog": [
                    {
                        "id": str(event.id),
                        "type": event.type,
                        "status": event.status,
                        "retry_count": event.retry_count,
                        "last_error": event.last_error,
                        "created_at": event.created_at,
                    }
                    for event in backlog
                ],
            },
        }

    async def retry_failed(self, tenant_id: str, webhook_id: Optional[UUID] = None) -> int:
        """Manual retry; exhausted jobs get a fresh budget too."""
        values = await self._values(tenant_id)
        async with self._session_factory() as session:
            count = await OutboxRepository(session).reset_failed(values, webhook_id)
            await session.commit()
        logger.info("webhook_failed_jobs_retried", tenant_id=tenant_id, webhook_id=str(webhook_id) if webhook_id else None, count=count)
        return count

    async def delete_failed(self, tenant_id: str, webhook_id: Optional[UUID] = None) -> int:
        values = await self._values(tenant_id)
        async with self._session_factory() as session:
            count = await OutboxRepository(session).delete_failed(values, webhook_id)
            await session.commit()
        logger.info("webhook_failed_jobs_deleted", tenant_id=tenant_id, webhook_id=str(webhook_id) if webhook_id else None, count=count)
        return count
