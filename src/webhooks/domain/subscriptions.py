# src/webhooks/domain/subscriptions.py
"""
Subscription matching and fanout job construction.

These functions are pure: they take the event/webhook attributes they need and
return new values, so they are shared by the fanout service and its tests.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID, uuid4

from src.shared.exceptions import ValidationError
from src.webhooks.domain.event_types import WILDCARD, is_known_event_type


@dataclass(frozen=True, slots=True)
class OutboxJobDraft:
    """A delivery job ready to be inserted; ``payload`` is owned by this draft alone."""
    tenant_id: str
    webhook_id: UUID
    event_id: UUID
    type: str
    payload: Dict[str, Any]
    id: UUID = field(default_factory=uuid4)


def normalize_events(events: Optional[Iterable[str]]) -> List[str]:
    """
    Normalize a subscription list.

    - None / empty → ["*"]
    - any "*" → ["*"]
    - unknown types → ValidationError
    - duplicates removed, order kept
    """
    if events is None:
        return [WILDCARD]
    if isinstance(events, str):
        events = [events]

    cleaned: List[str] = []
    invalid: List[str] = []
    for raw in events:
        value = str(raw).strip() if raw is not None else ""
        if not value:
            continue
        if value == WILDCARD:
            return [WILDCARD]
        if not is_known_event_type(value):
            invalid.append(value)
            continue
        if value not in cleaned:
            cleaned.append(value)

    if invalid:
        raise ValidationError(
            f"Unsupported event types: {', '.join(invalid)}",
            details={"invalid_events": invalid},
        )
    return cleaned or [WILDCARD]


def is_subscribed(webhook_events: Optional[Sequence[str]], event_type: str) -> bool:
    # An empty list is a misconfiguration, not "all"
    if not webhook_events:
        return False
    return WILDCARD in webhook_events or event_type in webhook_events


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def build_event_envelope(
    *,
    event_id: UUID | str,
    tenant_id: str,
    event_type: str,
    occurred_at: Optional[datetime],
    payload: Any,
    metadata: Any,
) -> Dict[str, Any]:
    """The body delivered to webhook receivers."""
    return {
        "id": str(event_id),
        "tenantId": tenant_id,
        "type": event_type,
        "occurredAt": _iso(occurred_at),
        "payload": copy.deepcopy(payload) if payload is not None else {},
        "metadata": copy.deepcopy(metadata) if metadata is not None else {},
    }


def build_outbox_jobs(event: Any, webhooks: Iterable[Any]) -> List[OutboxJobDraft]:
    """
    One draft per webhook subscribed to ``event.type``.

    Each draft receives its own deep copy of the envelope, so neither later
    changes to the event nor changes to a sibling job leak into it.
    """
    envelope = build_event_envelope(
        event_id=event.id,
        tenant_id=event.tenant_id,
        event_type=event.type,
        occurred_at=event.occurred_at,
        payload=event.payload,
        metadata=event.event_metadata,
    )
    drafts: List[OutboxJobDraft] = []
    for hook in webhooks:
        if not is_subscribed(hook.events, event.type):
            continue
        drafts.append(
            OutboxJobDraft(
                tenant_id=event.tenant_id,
                webhook_id=hook.id,
                event_id=event.id,
                type=event.type,
                payload=copy.deepcopy(envelope),
            )
        )
    return drafts
