import asyncio
import signal
from typing import Dict, Optional

from src.config import Settings, settings as default_settings
from src.shared.infrastructure.observability.logger import get_logger
from src.webhooks.infrastructure.container import WebhookContainer
from src.workers.base_worker import BaseWorker
from src.workers.webhook_pipeline_worker import WebhookPipelineWorker

logger = get_logger(__name__)


class WorkerManager:
    """Manager for all background workers."""

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {}
        self.shutdown_event = asyncio.Event()

    def register_worker(self, worker: BaseWorker) -> None:
        self.workers[worker.worker_name] = worker
        logger.info("worker_registered", worker=worker.worker_name)

    def setup_signal_handlers(self) -> None:
        """SIGINT/SIGTERM request a graceful shutdown (unix event loops only)."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown_event.set)
            except (NotImplementedError, RuntimeError):
                logger.warning("signal_handler_unavailable", signal=sig.name)

    async def start_all(self) -> None:
        logger.info("workers_starting", count=len(self.workers))
        for worker in self.workers.values():
            worker.start()

    async def shutdown(self, timeout: Optional[float] = 30.0) -> None:
        """Stop every worker, letting in-flight iterations finish."""
        logger.info("workers_shutting_down")
        self.shutdown_event.set()
        for name, worker in self.workers.items():
            try:
                await worker.stop(timeout=timeout)
            except Exception:
                logger.exception("worker_shutdown_failed", worker=name)
        logger.info("workers_shutdown_complete")

    async def wait_for_shutdown(self) -> None:
        await self.shutdown_event.wait()

    def get_worker_status(self) -> Dict[str, str]:
        return {name: "running" if w.is_running else "stopped" for name, w in self.workers.items()}


def create_default_worker_manager(container: WebhookContainer, cfg: Optional[Settings] = None) -> WorkerManager:
    cfg = cfg or default_settings
    manager = WorkerManager()
    manager.register_worker(
        WebhookPipelineWorker(container.pipeline, interval_seconds=cfg.WEBHOOK_WORKER_INTERVAL_MS / 1000)
    )
    return manager
