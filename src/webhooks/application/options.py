# src/webhooks/application/options.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from src.config import Settings, coerce_int, settings as default_settings


@dataclass(frozen=True)
class ResolvedPipelineOptions:
    domain_event_limit: int
    webhook_limit: int
    max_retry_attempts: int
    retry_backoff_ms: int
    dead_letter_grace_ms: int
    scheduled_limit: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PipelineOptions:
    """
    Per-run overrides. Anything missing, non-numeric or out of range falls
    back to the configured default instead of failing the run.
    """
    domain_event_limit: Optional[Any] = None
    webhook_limit: Optional[Any] = None
    max_retry_attempts: Optional[Any] = None
    retry_backoff_ms: Optional[Any] = None
    dead_letter_grace_ms: Optional[Any] = None
    scheduled_limit: Optional[Any] = None

    def resolve(self, cfg: Optional[Settings] = None) -> ResolvedPipelineOptions:
        cfg = cfg or default_settings
        return ResolvedPipelineOptions(
            domain_event_limit=coerce_int(self.domain_event_limit, cfg.DOMAIN_EVENT_BATCH_LIMIT, 1),
            webhook_limit=coerce_int(self.webhook_limit, cfg.WEBHOOK_DISPATCH_LIMIT, 1),
            max_retry_attempts=coerce_int(self.max_retry_attempts, cfg.WEBHOOK_MAX_RETRY_ATTEMPTS, 1),
            retry_backoff_ms=coerce_int(self.retry_backoff_ms, cfg.WEBHOOK_RETRY_BACKOFF_MS, 0),
            dead_letter_grace_ms=coerce_int(self.dead_letter_grace_ms, cfg.WEBHOOK_FAILED_CLEANUP_MS, 0),
            scheduled_limit=coerce_int(self.scheduled_limit, cfg.SCHEDULED_PUBLISH_LIMIT, 1),
        )
