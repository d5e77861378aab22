import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """Base class for interval-driven background workers."""

    def __init__(self, worker_name: str, interval_seconds: float = 5.0):
        self.worker_name = worker_name
        self.interval_seconds = max(float(interval_seconds), 0.001)
        self.runs = 0
        self.failures = 0
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Schedule ``execute`` on the running event loop. Starting twice is a no-op."""
        if self.is_running:
            return
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id=self.worker_name,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("worker_started", worker=self.worker_name, interval_seconds=self.interval_seconds)

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling new ticks and wait for the in-flight one to finish."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return
        scheduler.shutdown(wait=False)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("worker_stop_timeout", worker=self.worker_name, timeout=timeout)
        logger.info("worker_stopped", worker=self.worker_name, runs=self.runs, failures=self.failures)

    async def _tick(self) -> None:
        self._idle.clear()
        try:
            await self.run_once()
        finally:
            self._idle.set()

    async def run_once(self) -> Any:
        """Execute one iteration; failures are logged and the schedule keeps going."""
        started = time.perf_counter()
        self.runs += 1
        try:
            result = await self.execute()
        except Exception:
            self.failures += 1
            logger.exception("worker_iteration_failed", worker=self.worker_name)
            return None
        logger.debug(
            "worker_iteration_complete",
            worker=self.worker_name,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return result

    @abstractmethod
    async def execute(self) -> Any:
        """Execute the worker's main task. Must be implemented by subclasses."""
