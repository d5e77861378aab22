# src/webhooks/domain/event_types.py
"""Catalogue of domain event types producers may emit and webhooks may subscribe to."""

from typing import FrozenSet, Tuple

WILDCARD = "*"
TEST_EVENT_TYPE = "webhook.test"

DOMAIN_EVENT_TYPES: Tuple[str, ...] = (
    "content.created",
    "content.updated",
    "content.published",
    "content.unpublished",
    "content.deleted",
    "form.created",
    "form.updated",
    "form.submitted",
    "placement.created",
    "placement.updated",
    "placement.deleted",
    "menu.created",
    "menu.updated",
    "menu.deleted",
    "tenantSettings.updated",
    "media.updated",
    "collection.created",
    "collection.updated",
    "collection.entry.created",
    "collection.entry.updated",
    "collection.entry.deleted",
)

_KNOWN: FrozenSet[str] = frozenset(DOMAIN_EVENT_TYPES)


def is_known_event_type(value: str) -> bool:
    return value in _KNOWN
