# src/webhooks/domain/value_objects.py
"""
Status enums and fixed diagnostic strings for the outbox pipeline.
"""
from enum import Enum


class EventStatus(str, Enum):
    """
    Domain event lifecycle.

    Flow: pending → processing → queued | skipped
    Retry: processing → pending (retry_count + 1)
    Budget exhausted: processing → failed (terminal)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    QUEUED = "queued"
    SKIPPED = "skipped"
    FAILED = "failed"


class JobStatus(str, Enum):
    """
    Outbox job lifecycle.

    Flow: pending → processing → done | failed
    Retry: failed → pending while retry_count < max_attempts
    """
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class DeliveryErrorType(str, Enum):
    """Diagnostic classification of a failed delivery. Does not change retry policy."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    TIMEOUT = "timeout"


def classify_delivery_error(status_code: int | None, timed_out: bool = False) -> DeliveryErrorType:
    if timed_out:
        return DeliveryErrorType.TIMEOUT
    if status_code is not None and 400 <= status_code < 500 and status_code not in (408, 429):
        return DeliveryErrorType.PERMANENT
    return DeliveryErrorType.TRANSIENT


TERMINAL_ERROR_PREFIX = "[terminal] "

SKIP_NO_ACTIVE_WEBHOOKS = "No active webhooks"
SKIP_NO_SUBSCRIBED_WEBHOOKS = "No subscribed webhooks"
WEBHOOK_GONE_ERROR = "Webhook not found or inactive"


def terminal_error(message: str, max_attempts: int) -> str:
    return f"{TERMINAL_ERROR_PREFIX}Max attempts reached ({max_attempts}). Last error: {message}"
