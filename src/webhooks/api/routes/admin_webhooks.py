from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from src.dependencies import require_tenant_admin
from src.webhooks.api.schemas import (
    BulkActionResponse,
    PipelineTriggerRequest,
    WebhookCreate,
    WebhookResponse,
    WebhookSecretResponse,
    WebhookTestRequest,
    WebhookTestResponse,
    WebhookUpdate,
)
from src.webhooks.application.services.pipeline_service import WebhookPipelineService
from src.webhooks.application.services.queue_service import WebhookQueueService
from src.webhooks.application.services.webhook_service import WebhookService
from src.webhooks.domain.event_types import DOMAIN_EVENT_TYPES, WILDCARD
from src.webhooks.infrastructure.dependencies import (
    get_pipeline_service,
    get_queue_service,
    get_webhook_service,
)

router = APIRouter(prefix="/admin", tags=["Webhooks: Admin"])

TENANT_WEBHOOKS = "/tenants/{tenant_id}/webhooks"


@router.get("/domain-event-types")
async def list_domain_event_types() -> Dict[str, Any]:
    return {"wildcard": WILDCARD, "types": list(DOMAIN_EVENT_TYPES)}


@router.get(TENANT_WEBHOOKS, response_model=List[WebhookResponse])
async def list_webhooks(
    tenant_id: str,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> List[WebhookResponse]:
    return [WebhookResponse.from_model(w) for w in await svc.list_webhooks(tenant_id)]


@router.post(TENANT_WEBHOOKS, response_model=WebhookSecretResponse, status_code=status.HTTP_201_CREATED)
async def create_webhook(
    tenant_id: str,
    body: WebhookCreate,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> WebhookSecretResponse:
    created = await svc.create_webhook(
        tenant_id,
        url=body.url,
        events=body.events,
        secret=body.secret,
        is_active=body.is_active,
    )
    return WebhookSecretResponse(**WebhookResponse.from_model(created.webhook).model_dump(), secret=created.secret)


@router.get(TENANT_WEBHOOKS + "/queue")
async def queue_status(
    tenant_id: str,
    _claims=Depends(require_tenant_admin),
    svc: WebhookQueueService = Depends(get_queue_service),
) -> Dict[str, Any]:
    return await svc.get_queue_status(tenant_id)


@router.post(TENANT_WEBHOOKS + "/trigger")
async def trigger_pipeline(
    tenant_id: str,
    body: Optional[PipelineTriggerRequest] = None,
    _claims=Depends(require_tenant_admin),
    svc: WebhookPipelineService = Depends(get_pipeline_service),
) -> Dict[str, Any]:
    summary = await svc.run_tenant(tenant_id, (body or PipelineTriggerRequest()).to_options())
    return {"ok": not summary.errors, "summary": summary.to_dict()}


@router.post(TENANT_WEBHOOKS + "/failed/retry", response_model=BulkActionResponse)
async def retry_failed_jobs(
    tenant_id: str,
    webhook_id: Optional[UUID] = Query(default=None),
    _claims=Depends(require_tenant_admin),
    svc: WebhookQueueService = Depends(get_queue_service),
) -> BulkActionResponse:
    return BulkActionResponse(count=await svc.retry_failed(tenant_id, webhook_id))


@router.delete(TENANT_WEBHOOKS + "/failed", response_model=BulkActionResponse)
async def delete_failed_jobs(
    tenant_id: str,
    webhook_id: Optional[UUID] = Query(default=None),
    _claims=Depends(require_tenant_admin),
    svc: WebhookQueueService = Depends(get_queue_service),
) -> BulkActionResponse:
    return BulkActionResponse(count=await svc.delete_failed(tenant_id, webhook_id))


@router.put(TENANT_WEBHOOKS + "/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    tenant_id: str,
    webhook_id: UUID,
    body: WebhookUpdate,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> WebhookResponse:
    webhook = await svc.update_webhook(tenant_id, webhook_id, body.model_dump(exclude_unset=True))
    return WebhookResponse.from_model(webhook)


@router.delete(TENANT_WEBHOOKS + "/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_webhook(
    tenant_id: str,
    webhook_id: UUID,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> Response:
    await svc.delete_webhook(tenant_id, webhook_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(TENANT_WEBHOOKS + "/{webhook_id}/rotate-secret", response_model=WebhookSecretResponse)
async def rotate_secret(
    tenant_id: str,
    webhook_id: UUID,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> WebhookSecretResponse:
    rotated = await svc.rotate_secret(tenant_id, webhook_id)
    return WebhookSecretResponse(**WebhookResponse.from_model(rotated.webhook).model_dump(), secret=rotated.secret)


@router.post(TENANT_WEBHOOKS + "/{webhook_id}/test", response_model=WebhookTestResponse)
async def send_test_webhook(
    tenant_id: str,
    webhook_id: UUID,
    body: Optional[WebhookTestRequest] = None,
    _claims=Depends(require_tenant_admin),
    svc: WebhookService = Depends(get_webhook_service),
) -> WebhookTestResponse:
    outcome = await svc.send_test_webhook(tenant_id, webhook_id, payload=body.payload if body else None)
    return WebhookTestResponse(ok=outcome.ok, status=outcome.status, duration_ms=outcome.duration_ms)
