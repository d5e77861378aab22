# src/webhooks/infrastructure/repositories/tenant_repository.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.webhooks.infrastructure.models import Tenant


class TenantRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, tenant_id: UUID) -> Optional[Tenant]:
        return await self.session.get(Tenant, tenant_id)

    async def get_by_slug(self, slug: str) -> Optional[Tenant]:
        res = await self.session.execute(select(Tenant).where(Tenant.slug == slug))
        return res.scalars().first()

    async def list_active(self) -> List[Tenant]:
        res = await self.session.execute(
            select(Tenant).where(Tenant.status == "active").order_by(Tenant.created_at.asc())
        )
        return list(res.scalars().all())
