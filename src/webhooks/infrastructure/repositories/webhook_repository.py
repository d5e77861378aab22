# src/webhooks/infrastructure/repositories/webhook_repository.py
from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.webhooks.infrastructure.models import Webhook


class WebhookRepository:
    """Tenant-scoped webhook lookups. ``tenant_values`` comes from TenantResolver."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_tenant(self, tenant_values: Sequence[str]) -> List[Webhook]:
        stmt = (
            select(Webhook)
            .where(Webhook.tenant_id.in_(list(tenant_values)))
            .order_by(Webhook.created_at.desc())
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_active(self, tenant_values: Sequence[str]) -> List[Webhook]:
        stmt = (
            select(Webhook)
            .where(Webhook.tenant_id.in_(list(tenant_values)), Webhook.is_active.is_(True))
            .order_by(Webhook.created_at.asc())
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def sample_candidates(self, tenant_values: Sequence[str], limit: int = 5) -> List[Webhook]:
        """Any webhooks for the tenant regardless of state; used for skip diagnostics."""
        stmt = select(Webhook).where(Webhook.tenant_id.in_(list(tenant_values))).limit(limit)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def get(self, webhook_id: UUID, tenant_values: Sequence[str]) -> Optional[Webhook]:
        stmt = select(Webhook).where(Webhook.id == webhook_id, Webhook.tenant_id.in_(list(tenant_values)))
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def get_active(self, webhook_id: UUID, tenant_values: Sequence[str]) -> Optional[Webhook]:
        stmt = select(Webhook).where(
            Webhook.id == webhook_id,
            Webhook.tenant_id.in_(list(tenant_values)),
            Webhook.is_active.is_(True),
        )
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def add(self, webhook: Webhook) -> Webhook:
        self.session.add(webhook)
        await self.session.flush()
        return webhook

    async def delete(self, webhook: Webhook) -> None:
        await self.session.delete(webhook)
        await self.session.flush()
