# src/webhooks/domain/exceptions.py
"""
Webhook Domain Exceptions
"""
from typing import Optional

from src.shared.exceptions import ConflictError, DomainError, NotFoundError


class WebhookNotFoundError(NotFoundError):
    code = "webhook_not_found"


class TenantNotFoundError(NotFoundError):
    code = "tenant_not_found"


class DuplicateWebhookError(ConflictError):
    code = "webhook_url_conflict"


class WebhookDeliveryError(DomainError):
    """Raised by synchronous test deliveries when the receiver does not answer 2xx."""
    code = "webhook_delivery_failed"
    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None, response_snippet: Optional[str] = None) -> None:
        super().__init__(
            message,
            details={"status": status, "response": response_snippet},
        )
        self.status = status
        self.response_snippet = response_snippet
