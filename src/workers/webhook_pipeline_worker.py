from typing import Optional

from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.application.options import PipelineOptions
from src.webhooks.application.services.pipeline_service import PipelineRunResult, WebhookPipelineService
from src.workers.base_worker import BaseWorker

logger = get_logger(__name__)


class WebhookPipelineWorker(BaseWorker):
    """Runs the webhook pipeline for every active tenant on a fixed interval."""

    def __init__(
        self,
        pipeline: WebhookPipelineService,
        interval_seconds: float = 5.0,
        options: Optional[PipelineOptions] = None,
    ):
        super().__init__("webhook_pipeline", interval_seconds)
        self.pipeline = pipeline
        self.options = options
        self.last_result: Optional[PipelineRunResult] = None

    async def execute(self) -> PipelineRunResult:
        result = await self.pipeline.run(None, self.options)
        self.last_result = result
        if not result.ok:
            logger.warning("webhook_pipeline_errors", **result.aggregate.to_dict())
        return result
