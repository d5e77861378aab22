# src/webhooks/application/services/webhook_service.py
"""
Webhook registry: CRUD, secret management and synchronous test delivery.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.exceptions import ValidationError
from src.shared.infrastructure.database.base_model import utcnow
from src.shared.infrastructure.observability.logger import get_logger
from src.shared.infrastructure.security.encryption import SecretBox
from src.shared.utils.crypto import generate_secret
from src.webhooks.domain.event_types import TEST_EVENT_TYPE
from src.webhooks.domain.exceptions import (
    DuplicateWebhookError,
    WebhookDeliveryError,
    WebhookNotFoundError,
)
from src.webhooks.domain.subscriptions import build_event_envelope, normalize_events
from src.webhooks.domain.value_objects import WEBHOOK_GONE_ERROR
from src.webhooks.infrastructure.delivery_client import WebhookDeliveryClient
from src.webhooks.infrastructure.models import Webhook
from src.webhooks.infrastructure.repositories.webhook_repository import WebhookRepository
from src.webhooks.infrastructure.tenant_resolver import TenantResolver

logger = get_logger(__name__)

_UPDATABLE_FIELDS = ("url", "events", "is_active", "secret")


def validate_url(value: Optional[str]) -> str:
    url = (value or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid webhook URL", details={"url": value})
    return url


@dataclass
class WebhookWithSecret:
    """A webhook plus its plaintext secret; only returned on create and rotation."""
    webhook: Webhook
    secret: str


@dataclass
class WebhookTestOutcome:
    ok: bool
    status: Optional[int]
    duration_ms: int
    signature: str


class WebhookService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tenant_resolver: TenantResolver,
        delivery_client: WebhookDeliveryClient,
        secret_box: Optional[SecretBox] = None,
        test_timeout_seconds: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = tenant_resolver
        self._client = delivery_client
        self._secret_box = secret_box or SecretBox()
        self._test_timeout_seconds = test_timeout_seconds

    async def _tenant_values(self, tenant_id: str) -> List[str]:
        values = await self._resolver.match_values(tenant_id)
        if not values:
            raise ValidationError("tenant_id is required")
        return values

    async def _canonical_tenant(self, tenant_id: str) -> str:
        tenant = await self._resolver.resolve(tenant_id)
        return str(tenant.id) if tenant is not None else str(tenant_id).strip()

    async def list_webhooks(self, tenant_id: str) -> List[Webhook]:
        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            return await WebhookRepository(session).list_for_tenant(values)

    async def get_webhook(self, tenant_id: str, webhook_id: UUID) -> Webhook:
        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            webhook = await WebhookRepository(session).get(webhook_id, values)
        if webhook is None:
            raise WebhookNotFoundError("Webhook not found")
        return webhook

    async def create_webhook(
        self,
        tenant_id: str,
        *,
        url: str,
        events: Optional[Iterable[str]] = None,
        secret: Optional[str] = None,
        is_active: bool = True,
    ) -> WebhookWithSecret:
        clean_url = validate_url(url)
        normalized = normalize_events(events)
        plain_secret = secret if secret is not None else generate_secret()
        values = await self._tenant_values(tenant_id)
        owner = await self._canonical_tenant(tenant_id)

        async with self._session_factory() as session:
            repo = WebhookRepository(session)
            existing = await repo.list_for_tenant(values)
            if any(h.url == clean_url for h in existing):
                raise DuplicateWebhookError("A webhook with this URL already exists")
            webhook = Webhook(
                tenant_id=owner,
                url=clean_url,
                events=normalized,
                secret=self._secret_box.encrypt(plain_secret),
                is_active=bool(is_active),
            )
            try:
                await repo.add(webhook)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateWebhookError("A webhook with this URL already exists") from e

        logger.info("webhook_created", tenant_id=owner, webhook_id=str(webhook.id), events=normalized)
        return WebhookWithSecret(webhook=webhook, secret=plain_secret)

    async def update_webhook(self, tenant_id: str, webhook_id: UUID, patch: Dict[str, Any]) -> Webhook:
        changes = {k: v for k, v in (patch or {}).items() if k in _UPDATABLE_FIELDS and v is not None}
        if not changes:
            raise ValidationError("No changes provided")

        if "url" in changes:
            changes["url"] = validate_url(changes["url"])
        if "events" in changes:
            changes["events"] = normalize_events(changes["events"])
        if "secret" in changes:
            changes["secret"] = self._secret_box.encrypt(changes["secret"])

        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            repo = WebhookRepository(session)
            webhook = await repo.get(webhook_id, values)
            if webhook is None:
                raise WebhookNotFoundError("Webhook not found")
            for key, value in changes.items():
                setattr(webhook, key, value)
            webhook.updated_at = utcnow()
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateWebhookError("A webhook with this URL already exists") from e

        logger.info("webhook_updated", tenant_id=webhook.tenant_id, webhook_id=str(webhook_id), fields=sorted(changes))
        return webhook

    async def delete_webhook(self, tenant_id: str, webhook_id: UUID) -> None:
        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            repo = WebhookRepository(session)
            webhook = await repo.get(webhook_id, values)
            if webhook is None:
                raise WebhookNotFoundError("Webhook not found")
            await repo.delete(webhook)
            await session.commit()
        logger.info("webhook_deleted", tenant_id=tenant_id, webhook_id=str(webhook_id))

    async def rotate_secret(self, tenant_id: str, webhook_id: UUID) -> WebhookWithSecret:
        """
        Issue a new signing secret. Jobs already being dispatched may still be
        signed with the previous one.
        """
        new_secret = generate_secret()
        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            webhook = await WebhookRepository(session).get(webhook_id, values)
            if webhook is None:
                raise WebhookNotFoundError("Webhook not found")
            webhook.secret = self._secret_box.encrypt(new_secret)
            webhook.updated_at = utcnow()
            await session.commit()
        logger.info("webhook_secret_rotated", tenant_id=webhook.tenant_id, webhook_id=str(webhook_id))
        return WebhookWithSecret(webhook=webhook, secret=new_secret)

    async def send_test_webhook(
        self,
        tenant_id: str,
        webhook_id: UUID,
        payload: Optional[Dict[str, Any]] = None,
    ) -> WebhookTestOutcome:
        """
        Deliver a synthetic ``webhook.test`` event right away, bypassing the outbox.

        ``payload`` replaces the default test body as the envelope's ``payload``.
        Inactive webhooks are treated as missing.
        """
        values = await self._tenant_values(tenant_id)
        async with self._session_factory() as session:
            webhook = await WebhookRepository(session).get_active(webhook_id, values)
        if webhook is None:
            raise WebhookNotFoundError(WEBHOOK_GONE_ERROR)
        if payload is None:
            payload = {"message": "This is a test webhook", "webhookId": str(webhook.id)}
        envelope = build_event_envelope(
            event_id=uuid4(),
            tenant_id=webhook.tenant_id,
            event_type=TEST_EVENT_TYPE,
            occurred_at=utcnow(),
            payload=payload,
            metadata={"test": True, "triggeredBy": "user", "webhookId": str(webhook.id)},
        )
        outcome = await self._client.deliver(
            webhook.url,
            envelope,
            secret=self._secret_box.decrypt(webhook.secret),
            event_type=TEST_EVENT_TYPE,
            delivery_id=envelope["id"],
            timeout_seconds=self._test_timeout_seconds,
        )
        log_ctx = {
            "tenant_id": webhook.tenant_id,
            "webhook_id": str(webhook.id),
            "status_code": outcome.status_code,
            "duration_ms": outcome.duration_ms,
            "response_body": outcome.response_snippet,
        }
        if not outcome.ok:
            logger.warning("webhook_test_failed", error=outcome.error, **log_ctx)
            raise WebhookDeliveryError(
                f"Test webhook failed: {outcome.error}",
                status=outcome.status_code,
                response_snippet=outcome.response_snippet,
            )
        logger.info("webhook_test_delivered", **log_ctx)
        return WebhookTestOutcome(
            ok=True,
            status=outcome.status_code,
            duration_ms=outcome.duration_ms,
            signature=outcome.signature,
        )
