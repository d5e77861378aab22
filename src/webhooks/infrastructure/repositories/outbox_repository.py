# src/webhooks/infrastructure/repositories/outbox_repository.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.infrastructure.database.base_model import utcnow
from src.webhooks.domain.subscriptions import OutboxJobDraft
from src.webhooks.domain.value_objects import JobStatus
from src.webhooks.infrastructure.models import WebhookOutboxJob


class OutboxRepository:
    """
    Durable queue of per-webhook delivery jobs.

    Claiming and finalising jobs are compare-and-swap updates on ``status``;
    the retry and cleanup passes are single bulk statements.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------ writes

    async def add_drafts(self, drafts: Sequence[OutboxJobDraft]) -> List[WebhookOutboxJob]:
        jobs = [
            WebhookOutboxJob(
                id=d.id,
                tenant_id=d.tenant_id,
                webhook_id=d.webhook_id,
                event_id=d.event_id,
                type=d.type,
                payload=d.payload,
                status=JobStatus.PENDING.value,
                retry_count=0,
            )
            for d in drafts
        ]
        self.session.add_all(jobs)
        await self.session.flush()
        return jobs

    async def _transition(self, job_id: UUID, expected: JobStatus, **values) -> bool:
        values.setdefault("updated_at", utcnow())
        stmt = (
            update(WebhookOutboxJob)
            .where(WebhookOutboxJob.id == job_id, WebhookOutboxJob.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        return res.rowcount == 1

    async def claim(self, job_id: UUID) -> bool:
        """pending → processing. False when another dispatcher got there first."""
        return await self._transition(
            job_id,
            JobStatus.PENDING,
            status=JobStatus.PROCESSING.value,
            last_error=None,
        )

    async def mark_done(
        self,
        job_id: UUID,
        *,
        last_error: Optional[str] = None,
        http_status: Optional[int] = None,
        duration_ms: Optional[int] = None,
    ) -> bool:
        return await self._transition(
            job_id,
            JobStatus.PROCESSING,
            status=JobStatus.DONE.value,
            last_error=last_error,
            error_type=None,
            last_http_status=http_status,
            last_duration_ms=duration_ms,
        )

    async def mark_failed(
        self,
        job_id: UUID,
        *,
        last_error: str,
        error_type: Optional[str] = None,
        http_status: Optional[int] = None,
        duration_ms: Optional[int] = None,
    ) -> bool:
        return await self._transition(
            job_id,
            JobStatus.PROCESSING,
            status=JobStatus.FAILED.value,
            retry_count=WebhookOutboxJob.retry_count + 1,
            last_error=last_error,
            error_type=error_type,
            last_http_status=http_status,
            last_duration_ms=duration_ms,
        )

    async def requeue_failed(
        self,
        *,
        max_attempts: int,
        older_than: datetime,
        tenant_values: Optional[Sequence[str]] = None,
    ) -> int:
        stmt = (
            update(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.status == JobStatus.FAILED.value,
                WebhookOutboxJob.retry_count < max_attempts,
                WebhookOutboxJob.updated_at <= older_than,
            )
            .values(status=JobStatus.PENDING.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if tenant_values:
            stmt = stmt.where(WebhookOutboxJob.tenant_id.in_(list(tenant_values)))
        res = await self.session.execute(stmt)
        return res.rowcount or 0

    async def purge_dead_letters(
        self,
        *,
        max_attempts: int,
        older_than: datetime,
        tenant_values: Optional[Sequence[str]] = None,
    ) -> int:
        stmt = (
            delete(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.status == JobStatus.FAILED.value,
                WebhookOutboxJob.retry_count >= max_attempts,
                WebhookOutboxJob.updated_at <= older_than,
            )
            .execution_options(synchronize_session=False)
        )
        if tenant_values:
            stmt = stmt.where(WebhookOutboxJob.tenant_id.in_(list(tenant_values)))
        res = await self.session.execute(stmt)
        return res.rowcount or 0

    async def reset_failed(self, tenant_values: Sequence[str], webhook_id: Optional[UUID] = None) -> int:
        """Operator retry: every failed job back to pending with a fresh budget."""
        stmt = (
            update(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.status == JobStatus.FAILED.value,
                WebhookOutboxJob.tenant_id.in_(list(tenant_values)),
            )
            .values(
                status=JobStatus.PENDING.value,
                retry_count=0,
                last_error=None,
                error_type=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if webhook_id is not None:
            stmt = stmt.where(WebhookOutboxJob.webhook_id == webhook_id)
        res = await self.session.execute(stmt)
        return res.rowcount or 0

    async def delete_failed(self, tenant_values: Sequence[str], webhook_id: Optional[UUID] = None) -> int:
        stmt = (
            delete(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.status == JobStatus.FAILED.value,
                WebhookOutboxJob.tenant_id.in_(list(tenant_values)),
            )
            .execution_options(synchronize_session=False)
        )
        if webhook_id is not None:
            stmt = stmt.where(WebhookOutboxJob.webhook_id == webhook_id)
        res = await self.session.execute(stmt)
        return res.rowcount or 0

    # ------------------------------------------------------------------- reads

    async def list_pending(self, limit: int, tenant_values: Optional[Sequence[str]] = None) -> List[WebhookOutboxJob]:
        stmt = select(WebhookOutboxJob).where(WebhookOutboxJob.status == JobStatus.PENDING.value)
        if tenant_values:
            stmt = stmt.where(WebhookOutboxJob.tenant_id.in_(list(tenant_values)))
        stmt = stmt.order_by(WebhookOutboxJob.created_at.asc(), WebhookOutboxJob.id.asc()).limit(limit)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_for_event(self, event_id: UUID) -> List[WebhookOutboxJob]:
        res = await self.session.execute(select(WebhookOutboxJob).where(WebhookOutboxJob.event_id == event_id))
        return list(res.scalars().all())

    async def status_counts(self, tenant_values: Sequence[str]) -> Dict[str, int]:
        stmt = (
            select(WebhookOutboxJob.status, func.count())
            .where(WebhookOutboxJob.tenant_id.in_(list(tenant_values)))
            .group_by(WebhookOutboxJob.status)
        )
        res = await self.session.execute(stmt)
        return {status: int(count) for status, count in res.all()}

    async def count_dead_letters(self, tenant_values: Sequence[str], max_attempts: int) -> int:
        stmt = select(func.count()).select_from(WebhookOutboxJob).where(
            WebhookOutboxJob.tenant_id.in_(list(tenant_values)),
            WebhookOutboxJob.status == JobStatus.FAILED.value,
            WebhookOutboxJob.retry_count >= max_attempts,
        )
        res = await self.session.execute(stmt)
        return int(res.scalar_one())

    async def recent_failed(self, tenant_values: Sequence[str], limit: int = 20) -> List[WebhookOutboxJob]:
        stmt = (
            select(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.tenant_id.in_(list(tenant_values)),
                WebhookOutboxJob.status == JobStatus.FAILED.value,
            )
            .order_by(WebhookOutboxJob.updated_at.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def oldest_pending(self, tenant_values: Sequence[str], limit: int = 20) -> List[WebhookOutboxJob]:
        stmt = (
            select(WebhookOutboxJob)
            .where(
                WebhookOutboxJob.tenant_id.in_(list(tenant_values)),
                WebhookOutboxJob.status == JobStatus.PENDING.value,
            )
            .order_by(WebhookOutboxJob.created_at.asc(), WebhookOutboxJob.id.asc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())
