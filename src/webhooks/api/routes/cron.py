from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from src.dependencies import require_cron_secret
from src.webhooks.api.schemas import PipelineRunResponse, PipelineTriggerRequest
from src.webhooks.application.services.pipeline_service import WebhookPipelineService
from src.webhooks.infrastructure.dependencies import get_pipeline_service

router = APIRouter(prefix="/cron", tags=["Webhooks: Cron"])


@router.post("/webhooks", response_model=PipelineRunResponse, dependencies=[Depends(require_cron_secret)])
async def run_webhook_cron(
    tenant: Optional[str] = Query(default=None, description="Tenant id or slug; all active tenants when omitted"),
    body: Optional[PipelineTriggerRequest] = None,
    svc: WebhookPipelineService = Depends(get_pipeline_service),
) -> Dict[str, Any]:
    result = await svc.run(tenant, (body or PipelineTriggerRequest()).to_options())
    return result.to_dict()
