# src/webhooks/application/services/scheduled_publisher.py
"""
Hook for the content module's scheduled publishing.

The pipeline calls it first on every tenant pass so that content whose publish
time has arrived emits its ``content.published`` events before fanout runs.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class ScheduledPublishResult:
    matched: int = 0
    published: int = 0


class ScheduledContentPublisher(Protocol):
    async def publish_due(self, tenant_id: str, limit: int) -> ScheduledPublishResult:
        ...


class NoopScheduledPublisher:
    """Used when no content module is wired in."""

    async def publish_due(self, tenant_id: str, limit: int) -> ScheduledPublishResult:
        return ScheduledPublishResult()
