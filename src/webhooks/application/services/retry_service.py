# src/webhooks/application/services/retry_service.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.database.base_model import utcnow
from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


class RetryService:
    """
    Requeues failed jobs that still have attempts left once a fixed backoff
    has passed since their last update. Exhausted jobs are left for cleanup.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tenant_resolver: TenantResolver) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver

    async def requeue_failed(
        self,
        tenant_id: Optional[str] = None,
        *,
        max_attempts: int,
        backoff_ms: int,
    ) -> int:
        tenant_values = await self._resolver.match_values(tenant_id) if tenant_id else None
        cutoff = utcnow() - timedelta(milliseconds=backoff_ms)

        async with self._session_factory() as session:
            count = await OutboxRepository(session).requeue_failed(
                max_attempts=max_attempts,
                older_than=cutoff,
                tenant_values=tenant_values,
            )
            await session.commit()

        if count:
            logger.info("webhook_jobs_requeued", tenant_id=tenant_id, count=count, backoff_ms=backoff_ms)
        return count
