# src/webhooks/infrastructure/repositories/domain_event_repository.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.infrastructure.database.base_model import utcnow
from src.webhooks.domain.value_objects import EventStatus
from src.webhooks.infrastructure.models import DomainEvent


class DomainEventRepository:
    """
    Persistence for domain events.

    State changes out of a claimable status are compare-and-swap updates:
    the WHERE clause carries the expected prior status and the caller learns
    whether it won from the affected row count.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, event: DomainEvent) -> DomainEvent:
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_pending(self, limit: int, tenant_values: Optional[Sequence[str]] = None) -> List[DomainEvent]:
        stmt = select(DomainEvent).where(DomainEvent.status == EventStatus.PENDING.value)
        if tenant_values:
            stmt = stmt.where(DomainEvent.tenant_id.in_(list(tenant_values)))
        stmt = stmt.order_by(DomainEvent.created_at.asc(), DomainEvent.id.asc()).limit(limit)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def _transition(self, event_id: UUID, expected: EventStatus, **values) -> bool:
        values.setdefault("updated_at", utcnow())
        stmt = (
            update(DomainEvent)
            .where(DomainEvent.id == event_id, DomainEvent.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return res.rowcount == 1

    async def claim(self, event_id: UUID) -> bool:
        """pending → processing. False when another worker got there first."""
        return await self._transition(
            event_id,
            EventStatus.PENDING,
            status=EventStatus.PROCESSING.value,
            last_error=None,
        )

    async def mark_queued(self, event_id: UUID) -> bool:
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.QUEUED.value,
            last_error=None,
        )

    async def mark_skipped(self, event_id: UUID, reason: str) -> bool:
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.SKIPPED.value,
            last_error=reason,
        )

    async def release_for_retry(self, event_id: UUID, error: str, *, terminal: bool = False) -> bool:
        """processing → pending (or failed when the retry budget is spent), retry_count + 1."""
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=(EventStatus.FAILED if terminal else EventStatus.PENDING).value,
            retry_count=DomainEvent.retry_count + 1,
            last_error=error,
        )

    async def status_counts(self, tenant_values: Sequence[str]) -> Dict[str, int]:
        stmt = (
            select(DomainEvent.status, func.count())
            .where(DomainEvent.tenant_id.in_(list(tenant_values)))
            .group_by(DomainEvent.status)
        )
        res = await self.session.execute(stmt)
        return {status: int(count) for status, count in res.all()}

    async def oldest_backlog(self, tenant_values: Sequence[str], limit: int = 20) -> List[DomainEvent]:
        """Events not yet fanned out (pending or stuck in processing), oldest first."""
        stmt = (
            select(DomainEvent)
            .where(
                DomainEvent.tenant_id.in_(list(tenant_values)),
                DomainEvent.status.in_([EventStatus.PENDING.value, EventStatus.PROCESSING.value]),
            )
            .order_by(DomainEvent.created_at.asc(), DomainEvent.id.asc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())
