# src/webhooks/application/services/dispatch_service.py
"""
Dispatcher: pending outbox jobs → signed HTTP POST → done | failed.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.observability.logger import get_logger
from src.shared.infrastructure.security.encryption import SecretBox
from src.webhooks.domain.value_objects import WEBHOOK_GONE_ERROR, terminal_error
from src.webhooks.infrastructure.delivery_client import WebhookDeliveryClient
from src.webhooks.infrastructure.models import WebhookOutboxJob
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository
from src.webhooks.infrastructure.repositories.webhook_repository import WebhookRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


@dataclass
class DispatchResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    dead: int = 0   # failures that just used up the last attempt (also counted in failed)

    def to_dict(self) -> dict:
        return asdict(self)


class DispatchService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tenant_resolver: TenantResolver,
        delivery_client: WebhookDeliveryClient,
        secret_box: Optional[SecretBox] = None,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver
        self._client = delivery_client
        self._secret_box = secret_box or SecretBox()

    async def dispatch_batch(
        self,
        limit: int,
        tenant_id: Optional[str] = None,
        max_attempts: int = 5,
    ) -> DispatchResult:
        tenant_values = await self._resolver.match_values(tenant_id) if tenant_id else None

        async with self._session_factory() as session:
            jobs = await OutboxRepository(session).list_pending(limit, tenant_values)

        result = DispatchResult(processed=len(jobs))
        for job in jobs:
            try:
                await self._dispatch_one(job, max_attempts, result)
            except Exception as e:
                logger.exception(
                    "webhook_dispatch_error",
                    tenant_id=job.tenant_id,
                    job_id=str(job.id),
                    webhook_id=str(job.webhook_id),
                    event_id=str(job.event_id),
                )
                await self._fail_unexpected(job, e, max_attempts, result)

        if jobs:
            logger.info("dispatch_batch_complete", tenant_id=tenant_id, **result.to_dict())
        return result

    async def _dispatch_one(self, job: WebhookOutboxJob, max_attempts: int, result: DispatchResult) -> None:
        async with self._session_factory() as session:
            won = await OutboxRepository(session).claim(job.id)
            await session.commit()
        if not won:
            result.skipped += 1
            return

        context = {
            "tenant_id": job.tenant_id,
            "job_id": str(job.id),
            "webhook_id": str(job.webhook_id),
            "event_id": str(job.event_id),
            "event_type": job.type,
        }

        tenant_values = await self._resolver.match_values(job.tenant_id)
        async with self._session_factory() as session:
            webhook = await WebhookRepository(session).get_active(job.webhook_id, tenant_values)
            if webhook is None:
                await OutboxRepository(session).mark_done(job.id, last_error=WEBHOOK_GONE_ERROR)
                await session.commit()
                result.skipped += 1
                logger.warning("webhook_gone", **context)
                return
            url = webhook.url
            stored_secret = webhook.secret

        outcome = await self._client.deliver(
            url,
            job.payload,
            secret=self._secret_box.decrypt(stored_secret),
            event_type=job.type,
            delivery_id=str(job.id),
        )

        async with self._session_factory() as session:
            repo = OutboxRepository(session)
            if outcome.ok:
                await repo.mark_done(job.id, http_status=outcome.status_code, duration_ms=outcome.duration_ms)
                await session.commit()
                result.succeeded += 1
                logger.info(
                    "webhook_delivered",
                    status_code=outcome.status_code,
                    duration_ms=outcome.duration_ms,
                    response_body=outcome.response_snippet,
                    **context,
                )
                return

            retry_count = job.retry_count + 1
            reached_max = retry_count >= max_attempts
            message = outcome.error or "Unknown error"
            await repo.mark_failed(
                job.id,
                last_error=terminal_error(message, max_attempts) if reached_max else message,
                error_type=outcome.error_type.value if outcome.error_type else None,
                http_status=outcome.status_code,
                duration_ms=outcome.duration_ms,
            )
            await session.commit()

        result.failed += 1
        if reached_max:
            result.dead += 1
        logger.error(
            "webhook_delivery_failed",
            status_code=outcome.status_code,
            duration_ms=outcome.duration_ms,
            response_body=outcome.response_snippet,
            error=message,
            error_type=outcome.error_type.value if outcome.error_type else None,
            retry_count=retry_count,
            max_attempts=max_attempts,
            terminal=reached_max,
            **context,
        )

    async def _fail_unexpected(
        self, job: WebhookOutboxJob, error: Exception, max_attempts: int, result: DispatchResult
    ) -> None:
        # Only jobs this worker holds (processing) are touched; the CAS guard ignores the rest
        message = str(error) or error.__class__.__name__
        reached_max = job.retry_count + 1 >= max_attempts
        try:
            async with self._session_factory() as session:
                changed = await OutboxRepository(session).mark_failed(
                    job.id,
                    last_error=terminal_error(message, max_attempts) if reached_max else message,
                )
                await session.commit()
        except Exception:
            logger.exception("webhook_job_fail_mark_error", job_id=str(job.id))
            return
        if changed:
            result.failed += 1
            if reached_max:
                result.dead += 1
