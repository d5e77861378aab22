# src/webhooks/application/services/fanout_service.py
"""
Fanout: pending domain events → one outbox job per subscribed webhook.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.domain.subscriptions import build_outbox_jobs
from src.webhooks.domain.value_objects import (
    SKIP_NO_ACTIVE_WEBHOOKS,
    SKIP_NO_SUBSCRIBED_WEBHOOKS,
    terminal_error,
)
from src.webhooks.infrastructure.models import DomainEvent
from src.webhooks.infrastructure.repositories.domain_event_repository import DomainEventRepository
from src.webhooks.infrastructure.repositories.outbox_repository import OutboxRepository
from src.webhooks.infrastructure.repositories.webhook_repository import WebhookRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


@dataclass
class FanoutResult:
    processed: int = 0
    queued: int = 0   # jobs created
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class FanoutService:
    """
    Claims pending events and writes their delivery jobs.

    Every event is handled in its own short transactions: claim, then
    jobs + queued mark together, so a crash between the two leaves the event
    in ``processing`` rather than half-fanned-out.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tenant_resolver: TenantResolver,
        max_event_attempts: int = 10,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver
        self._max_event_attempts = max_event_attempts

    async def process_batch(self, limit: int, tenant_id: Optional[str] = None) -> FanoutResult:
        tenant_values = await self._resolver.match_values(tenant_id) if tenant_id else None

        async with self._session_factory() as session:
            events = await DomainEventRepository(session).list_pending(limit, tenant_values)

        result = FanoutResult(processed=len(events))
        if not events:
            return result

        for event in events:
            try:
                won = await self._claim(event)
            except Exception as e:
                # claim never committed; the event is still pending for the next pass
                result.failed += 1
                logger.error(
                    "fanout_event_claim_failed",
                    tenant_id=event.tenant_id,
                    event_id=str(event.id),
                    event_type=event.type,
                    error=str(e) or e.__class__.__name__,
                )
                continue
            if not won:
                result.skipped += 1
                continue
            try:
                outcome = await self._fan_out(event)
            except Exception as e:
                result.failed += 1
                await self._release(event, e)
                continue
            if outcome is None:
                result.skipped += 1
            else:
                result.queued += outcome

        logger.info("fanout_batch_complete", tenant_id=tenant_id, **result.to_dict())
        return result

    async def _claim(self, event: DomainEvent) -> bool:
        async with self._session_factory() as session:
            won = await DomainEventRepository(session).claim(event.id)
            await session.commit()
        if not won:
            logger.debug("event_claim_lost", event_id=str(event.id))
        return won

    async def _fan_out(self, event: DomainEvent) -> Optional[int]:
        """Returns the number of jobs created, or None when the event was skipped."""
        tenant_values = await self._resolver.match_values(event.tenant_id)

        async with self._session_factory() as session:
            events = DomainEventRepository(session)
            hooks_repo = WebhookRepository(session)

            hooks = await hooks_repo.list_active(tenant_values) if tenant_values else []
            if not hooks:
                candidates = await hooks_repo.sample_candidates(tenant_values) if tenant_values else []
                logger.warning(
                    "fanout_no_active_webhooks",
                    tenant_id=event.tenant_id,
                    event_id=str(event.id),
                    identifiers_tried=tenant_values,
                    candidates_found=len(candidates),
                    candidate_sample=[
                        {"id": str(h.id), "tenant_id": h.tenant_id, "is_active": h.is_active, "events": h.events}
                        for h in candidates
                    ],
                )
                await events.mark_skipped(event.id, SKIP_NO_ACTIVE_WEBHOOKS)
                await session.commit()
                return None

            drafts = build_outbox_jobs(event, hooks)
            if not drafts:
                logger.info(
                    "fanout_no_subscribed_webhooks",
                    tenant_id=event.tenant_id,
                    event_id=str(event.id),
                    event_type=event.type,
                    active_webhooks=len(hooks),
                )
                await events.mark_skipped(event.id, SKIP_NO_SUBSCRIBED_WEBHOOKS)
                await session.commit()
                return None

            await OutboxRepository(session).add_drafts(drafts)
            await events.mark_queued(event.id)
            await session.commit()

        logger.info(
            "fanout_event_queued",
            tenant_id=event.tenant_id,
            event_id=str(event.id),
            event_type=event.type,
            jobs=len(drafts),
        )
        return len(drafts)

    async def _release(self, event: DomainEvent, error: Exception) -> None:
        message = str(error) or error.__class__.__name__
        terminal = event.retry_count + 1 >= self._max_event_attempts
        stored = terminal_error(message, self._max_event_attempts) if terminal else message
        log = logger.error if terminal else logger.warning
        log(
            "fanout_event_failed",
            tenant_id=event.tenant_id,
            event_id=str(event.id),
            error=message,
            retry_count=event.retry_count + 1,
            terminal=terminal,
        )
        try:
            async with self._session_factory() as session:
                await DomainEventRepository(session).release_for_retry(event.id, stored, terminal=terminal)
                await session.commit()
        except Exception:
            # Store unreachable; the event stays in processing
            logger.exception("fanout_event_release_failed", event_id=str(event.id))
