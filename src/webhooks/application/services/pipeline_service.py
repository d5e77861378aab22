# src/webhooks/application/services/pipeline_service.py
"""
Tenant pipeline: scheduled publish → fanout → retry → dispatch → cleanup.

Runs for different tenants may overlap, and so may runs for the same tenant:
every state change underneath is a per-record compare-and-swap.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Settings, settings as default_settings
from src.shared.exceptions import ServiceUnavailableError
from src.shared.infrastructure.observability.logger import bind_context, clear_context, get_logger
from src.webhooks.application.options import PipelineOptions, ResolvedPipelineOptions
from src.webhooks.application.services.cleanup_service import CleanupService
from src.webhooks.application.services.dispatch_service import DispatchResult, DispatchService
from src.webhooks.application.services.fanout_service import FanoutResult, FanoutService
from src.webhooks.application.services.retry_service import RetryService
from src.webhooks.application.services.scheduled_publisher import (
    NoopScheduledPublisher,
    ScheduledContentPublisher,
    ScheduledPublishResult,
)
from src.webhooks.domain.exceptions import TenantNotFoundError
from src.webhooks.infrastructure.models import Tenant
from src.webhooks.infrastructure.repositories.tenant_repository import TenantRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)


@dataclass
class TenantPipelineSummary:
    tenant_id: str
    slug: Optional[str] = None
    scheduled: ScheduledPublishResult = field(default_factory=ScheduledPublishResult)
    fanout: FanoutResult = field(default_factory=FanoutResult)
    retry_requeued: int = 0
    dispatch: DispatchResult = field(default_factory=DispatchResult)
    cleanup_deleted: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "slug": self.slug,
            "scheduled": {"matched": self.scheduled.matched, "published": self.scheduled.published},
            "fanout": self.fanout.to_dict(),
            "retry_requeued": self.retry_requeued,
            "dispatch": self.dispatch.to_dict(),
            "cleanup_deleted": self.cleanup_deleted,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


@dataclass
class PipelineAggregate:
    tenants_processed: int = 0
    scheduled_matched: int = 0
    scheduled_published: int = 0
    events_processed: int = 0
    jobs_queued: int = 0
    webhooks_dispatched: int = 0
    webhooks_succeeded: int = 0
    webhooks_failed: int = 0
    retry_requeued: int = 0
    cleanup_deleted: int = 0
    errors: int = 0

    def add(self, summary: TenantPipelineSummary) -> None:
        self.tenants_processed += 1
        self.scheduled_matched += summary.scheduled.matched
        self.scheduled_published += summary.scheduled.published
        self.events_processed += summary.fanout.processed
        self.jobs_queued += summary.fanout.queued
        self.webhooks_dispatched += summary.dispatch.processed
        self.webhooks_succeeded += summary.dispatch.succeeded
        self.webhooks_failed += summary.dispatch.failed
        self.retry_requeued += summary.retry_requeued
        self.cleanup_deleted += summary.cleanup_deleted
        self.errors += len(summary.errors)

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


@dataclass
class PipelineRunResult:
    summaries: List[TenantPipelineSummary]
    aggregate: PipelineAggregate
    options: ResolvedPipelineOptions

    @property
    def ok(self) -> bool:
        return self.aggregate.errors == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "options": self.options.to_dict(),
            "aggregate": self.aggregate.to_dict(),
            "summaries": [s.to_dict() for s in self.summaries],
        }


class WebhookPipelineService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tenant_resolver: TenantResolver,
        fanout: FanoutService,
        dispatcher: DispatchService,
        retry: RetryService,
        cleanup: CleanupService,
        scheduled_publisher: Optional[ScheduledContentPublisher] = None,
        cfg: Optional[Settings] = None,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver
        self._fanout = fanout
        self._dispatcher = dispatcher
        self._retry = retry
        self._cleanup = cleanup
        self._publisher = scheduled_publisher or NoopScheduledPublisher()
        self._settings = cfg or default_settings

    def resolve_options(self, options: Optional[PipelineOptions] = None) -> ResolvedPipelineOptions:
        return (options or PipelineOptions()).resolve(self._settings)

    # ----------------------------------------------------------------- tenant

    async def run_tenant(self, tenant_id: str, options: Optional[PipelineOptions] = None) -> TenantPipelineSummary:
        """On-demand run for one tenant; the first failing stage propagates."""
        tenant = await self._resolver.resolve(tenant_id)
        key = str(tenant.id) if tenant is not None else str(tenant_id)
        summary = TenantPipelineSummary(tenant_id=key, slug=tenant.slug if tenant else None)
        await self._run_stages(summary, self.resolve_options(options), isolate=False)
        return summary

    async def process_tenant(self, tenant: Tenant, opts: ResolvedPipelineOptions) -> TenantPipelineSummary:
        """Cron-side run: a failing stage is recorded and the remaining stages still run."""
        summary = TenantPipelineSummary(tenant_id=str(tenant.id), slug=tenant.slug)
        await self._run_stages(summary, opts, isolate=True)
        return summary

    async def _run_stages(self, summary: TenantPipelineSummary, opts: ResolvedPipelineOptions, *, isolate: bool) -> None:
        tenant_id = summary.tenant_id
        started = time.perf_counter()
        bind_context(tenant_id=tenant_id)

        async def scheduled() -> None:
            summary.scheduled = await self._publisher.publish_due(tenant_id, opts.scheduled_limit)

        async def fanout() -> None:
            summary.fanout = await self._fanout.process_batch(opts.domain_event_limit, tenant_id)

        async def retry() -> None:
            summary.retry_requeued = await self._retry.requeue_failed(
                tenant_id,
                max_attempts=opts.max_retry_attempts,
                backoff_ms=opts.retry_backoff_ms,
            )

        async def dispatch() -> None:
            summary.dispatch = await self._dispatcher.dispatch_batch(
                opts.webhook_limit,
                tenant_id,
                max_attempts=opts.max_retry_attempts,
            )

        async def cleanup() -> None:
            summary.cleanup_deleted = await self._cleanup.purge_dead_letters(
                tenant_id,
                max_attempts=opts.max_retry_attempts,
                grace_ms=opts.dead_letter_grace_ms,
            )

        stages: List[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("scheduled", scheduled),
            ("fanout", fanout),
            ("retry", retry),
            ("dispatch", dispatch),
            ("cleanup", cleanup),
        ]
        try:
            for name, stage in stages:
                try:
                    await stage()
                except Exception as e:
                    if not isolate:
                        raise
                    logger.exception("pipeline_stage_failed", stage=name)
                    summary.errors.append({"stage": name, "error": str(e) or e.__class__.__name__})
        finally:
            summary.duration_ms = int(round((time.perf_counter() - started) * 1000))
            logger.info("pipeline_tenant_complete", **summary.to_dict())
            clear_context()

    # -------------------------------------------------------------------- run

    async def run(self, tenant: Optional[str] = None, options: Optional[PipelineOptions] = None) -> PipelineRunResult:
        """
        Run the pipeline for one tenant (id or slug) or for every active tenant.

        Raises:
            TenantNotFoundError: ``tenant`` does not match any tenant
            ServiceUnavailableError: tenants could not be loaded at all
        """
        opts = self.resolve_options(options)
        tenants = await self._load_tenants(tenant)

        aggregate = PipelineAggregate()
        summaries: List[TenantPipelineSummary] = []
        for t in tenants:
            summary = await self.process_tenant(t, opts)
            summaries.append(summary)
            aggregate.add(summary)

        logger.info("pipeline_run_complete", tenant=tenant, **aggregate.to_dict())
        return PipelineRunResult(summaries=summaries, aggregate=aggregate, options=opts)

    async def _load_tenants(self, tenant: Optional[str]) -> List[Tenant]:
        try:
            if tenant:
                found = await self._resolver.resolve(tenant)
                if found is None:
                    raise TenantNotFoundError(f"Tenant not found: {tenant}")
                return [found]
            async with self._session_factory() as session:
                return await TenantRepository(session).list_active()
        except TenantNotFoundError:
            raise
        except Exception as e:
            logger.exception("pipeline_tenants_unavailable")
            raise ServiceUnavailableError("Unable to load tenants for webhook pipeline") from e
