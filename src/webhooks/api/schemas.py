from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.webhooks.application.options import PipelineOptions
from src.webhooks.infrastructure.models import Webhook


class WebhookCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    events: Optional[List[str]] = None
    secret: Optional[str] = Field(default=None, max_length=512)
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class WebhookUpdate(BaseModel):
    url: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    events: Optional[List[str]] = None
    secret: Optional[str] = Field(default=None, max_length=512)
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class WebhookResponse(BaseModel):
    id: UUID
    tenant_id: str
    url: str
    events: List[str]
    is_active: bool
    has_secret: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, webhook: Webhook) -> "WebhookResponse":
        return cls(
            id=webhook.id,
            tenant_id=webhook.tenant_id,
            url=webhook.url,
            events=list(webhook.events or []),
            is_active=webhook.is_active,
            has_secret=bool(webhook.secret),
            created_at=webhook.created_at,
            updated_at=webhook.updated_at,
        )


class WebhookSecretResponse(WebhookResponse):
    """Only returned by create and rotate-secret; the secret is never readable afterwards."""
    secret: str


class WebhookTestRequest(BaseModel):
    payload: Optional[Dict[str, Any]] = None


class WebhookTestResponse(BaseModel):
    ok: bool
    status: Optional[int] = None
    duration_ms: int


class PipelineTriggerRequest(BaseModel):
    domain_event_limit: Optional[int] = Field(default=None, ge=1, le=500, alias="domainEventLimit")
    webhook_limit: Optional[int] = Field(default=None, ge=1, le=500, alias="webhookLimit")
    max_retry_attempts: Optional[int] = Field(default=None, ge=1, le=50, alias="maxRetryAttempts")
    retry_backoff_ms: Optional[int] = Field(default=None, ge=0, alias="retryBackoffMs")
    dead_letter_grace_ms: Optional[int] = Field(default=None, ge=0, alias="deadLetterGraceMs")

    model_config = ConfigDict(populate_by_name=True)

    def to_options(self) -> PipelineOptions:
        return PipelineOptions(
            domain_event_limit=self.domain_event_limit,
            webhook_limit=self.webhook_limit,
            max_retry_attempts=self.max_retry_attempts,
            retry_backoff_ms=self.retry_backoff_ms,
            dead_letter_grace_ms=self.dead_letter_grace_ms,
        )


class BulkActionResponse(BaseModel):
    ok: bool = True
    count: int


class PipelineRunResponse(BaseModel):
    ok: bool
    options: Dict[str, int]
    aggregate: Dict[str, int]
    summaries: List[Dict[str, Any]]
