"""Dependency injection for the webhooks module."""

from fastapi import Depends, Request

from src.shared.database import get_session_factory
from src.webhooks.application.services.pipeline_service import WebhookPipelineService
from src.webhooks.application.services.queue_service import WebhookQueueService
from src.webhooks.application.services.webhook_service import WebhookService
from src.webhooks.infrastructure.container import WebhookContainer, build_webhook_container


def get_webhook_container(request: Request) -> WebhookContainer:
    """One container per app, created on first use (or by the lifespan)."""
    container = getattr(request.app.state, "webhooks", None)
    if container is None:
        container = build_webhook_container(get_session_factory())
        request.app.state.webhooks = container
    return container


def get_webhook_service(container: WebhookContainer = Depends(get_webhook_container)) -> WebhookService:
    return container.webhooks


def get_queue_service(container: WebhookContainer = Depends(get_webhook_container)) -> WebhookQueueService:
    return container.queue


def get_pipeline_service(container: WebhookContainer = Depends(get_webhook_container)) -> WebhookPipelineService:
    return container.pipeline
