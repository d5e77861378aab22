# src/webhooks/application/services/cleanup_service.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.database.base_model import utcnow
from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


class CleanupService:
    """Deletes dead letters: failed, out of attempts, and untouched for ``grace_ms``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tenant_resolver: TenantResolver) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver

    async def purge_dead_letters(
        self,
        tenant_id: Optional[str] = None,
        *,
        max_attempts: int,
        grace_ms: int,
    ) -> int:
        tenant_values = await self._resolver.match_values(tenant_id) if tenant_id else None
        cutoff = utcnow() - timedelta(milliseconds=grace_ms)

        async with self._session_factory() as session:
            deleted = await OutboxRepository(session).purge_dead_letters(
                max_attempts=max_attempts,
                older_than=cutoff,
                tenant_values=tenant_values,
            )
            await session.commit()

        if deleted:
            logger.info("webhook_dead_letters_purged", tenant_id=tenant_id, deleted=deleted, grace_ms=grace_ms)
        return deleted
