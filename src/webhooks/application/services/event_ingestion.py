# src/webhooks/application/services/event_ingestion.py
"""
Producer-side entry point of the outbox.

Producers call ``emit_domain_event`` with the session of their own write so
the event commits (or rolls back) together with it. Emission never raises for
bad input: an unknown type or a missing tenant is logged and dropped.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.infrastructure.database.base_model import utcnow
from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.domain.event_types import is_known_event_type
from src.webhooks.domain.value_objects import EventStatus
from src.webhooks.infrastructure.models import DomainEvent
from src.webhooks.infrastructure.repositories.domain_event_repository import DomainEventRepository

logger = get_logger(__name__)


async def emit_domain_event(
    session: AsyncSession,
    *,
    tenant_id: str | UUID,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> Optional[UUID]:
    """
    Add a pending DomainEvent to ``session`` and flush it (no commit).

    Returns:
        The new event id, or None when the event was rejected
    """
    tenant = str(tenant_id).strip() if tenant_id is not None else ""
    if not tenant:
        logger.warning("domain_event_rejected", reason="missing_tenant", event_type=type)
        return None
    if not is_known_event_type(type):
        logger.warning("domain_event_rejected", reason="unknown_type", event_type=type, tenant_id=tenant)
        return None

    event = DomainEvent(
        tenant_id=tenant,
        type=type,
        occurred_at=occurred_at or utcnow(),
        payload=dict(payload or {}),
        event_metadata=dict(metadata or {}),
        status=EventStatus.PENDING.value,
        retry_count=0,
    )
    await DomainEventRepository(session).add(event)
    logger.debug("domain_event_emitted", tenant_id=tenant, event_id=str(event.id), event_type=type)
    return event.id
