# src/webhooks/infrastructure/tenant_resolver.py
"""
Tenant identity expansion.

Events and webhooks written by different producers reference the same tenant
in different shapes: canonical UUID, compact 32-char hex, or slug. Matching
queries use ``tenant_id IN (<all forms>)``.
"""
from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.observability.logger import get_logger
from src.shared.utils.lru_cache import BoundedLRUCache
from src.webhooks.infrastructure.models import Tenant
from src.webhooks.infrastructure.repositories.tenant_repository import TenantRepository

logger = get_logger(__name__)


def parse_uuid(value: object) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _dedupe(values) -> List[str]:
    out: List[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return out


class TenantResolver:
    """
    Expands a tenant reference into every equivalent identifier.

    Memoized per reference in a bounded LRU; a tenant whose slug changes needs
    ``invalidate()`` (or a process restart) to be picked up.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], cache_size: int = 1024) -> None:
        self._session_factory = session_factory
        self._cache: BoundedLRUCache[Tuple[str, ...]] = BoundedLRUCache(cache_size)

    async def match_values(self, ref: object) -> List[str]:
        raw = str(ref).strip() if ref is not None else ""
        if not raw:
            return []

        cached = self._cache.get(raw)
        if cached is not None:
            return list(cached)

        tenant = await self._lookup(raw)
        values = [raw]
        as_uuid = parse_uuid(raw)
        if as_uuid is not None:
            values += [str(as_uuid), as_uuid.hex]
        if tenant is not None:
            values += [str(tenant.id), tenant.id.hex, tenant.slug]

        expanded = tuple(_dedupe(values))
        if tenant is not None:
            self._cache.set(raw, expanded)
        return list(expanded)

    async def resolve(self, ref: object) -> Optional[Tenant]:
        raw = str(ref).strip() if ref is not None else ""
        if not raw:
            return None
        return await self._lookup(raw)

    async def _lookup(self, raw: str) -> Optional[Tenant]:
        async with self._session_factory() as session:
            repo = TenantRepository(session)
            as_uuid = parse_uuid(raw)
            if as_uuid is not None:
                tenant = await repo.get_by_id(as_uuid)
                if tenant is not None:
                    return tenant
            tenant = await repo.get_by_slug(raw)
        if tenant is None:
            logger.debug("tenant_not_resolved", tenant_ref=raw)
        return tenant

    def invalidate(self, ref: Optional[object] = None) -> None:
        if ref is None:
            self._cache.clear()
        else:
            self._cache.invalidate(str(ref).strip())
