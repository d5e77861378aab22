import asyncio

from src.workers.__main__ import build_parser
from src.workers.base_worker import BaseWorker
from src.workers.manager import WorkerManager, create_default_worker_manager
from src.workers.webhook_pipeline_worker import WebhookPipelineWorker


class CountingWorker(BaseWorker):
    def __init__(self, fail=False):
        super().__init__("counting", interval_seconds=0.01)
        self.calls = 0
        self.fail = fail

    async def execute(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")
        return self.calls


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        assert asyncio.get_running_loop().time() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


async def test_worker_runs_on_interval_and_stops():
    worker = CountingWorker()
    worker.start()
    assert worker.is_running
    await _wait_for(lambda: worker.calls >= 2)

    await worker.stop(timeout=1.0)

    assert not worker.is_running
    calls = worker.calls
    await asyncio.sleep(0.05)
    assert worker.calls == calls


async def test_start_and_stop_are_idempotent():
    worker = CountingWorker()
    await worker.stop(timeout=1.0)

    worker.start()
    scheduler = worker._scheduler
    worker.start()
    assert worker._scheduler is scheduler

    await worker.stop(timeout=1.0)
    await worker.stop(timeout=1.0)
    assert not worker.is_running


async def test_failures_do_not_stop_the_schedule():
    worker = CountingWorker(fail=True)
    worker.start()
    await _wait_for(lambda: worker.failures >= 2)
    await worker.stop(timeout=1.0)
    assert worker.runs >= 2


async def test_pipeline_worker_runs_pipeline(container, tenant, add_webhook, add_event, receiver):
    await add_webhook(tenant.id)
    await add_event(tenant.id)
    worker = WebhookPipelineWorker(container.pipeline, interval_seconds=60)

    result = await worker.run_once()

    assert result.ok
    assert worker.last_result is result
    assert len(receiver.requests) == 1


async def test_manager_lifecycle(container, cfg):
    manager = create_default_worker_manager(container, cfg)
    assert list(manager.workers) == ["webhook_pipeline"]

    await manager.start_all()
    assert manager.get_worker_status() == {"webhook_pipeline": "running"}
    await _wait_for(lambda: manager.workers["webhook_pipeline"].runs >= 1)

    await manager.shutdown(timeout=5.0)
    assert manager.get_worker_status() == {"webhook_pipeline": "stopped"}
    assert manager.shutdown_event.is_set()


async def test_manager_registers_custom_workers():
    manager = WorkerManager()
    manager.register_worker(CountingWorker())
    assert manager.get_worker_status() == {"counting": "stopped"}


def test_cli_arguments():
    args = build_parser().parse_args(["once", "--tenant", "acme", "--event-limit", "10", "--webhook-limit", "20"])
    assert args.command == "once"
    assert args.tenant == "acme"
    assert args.event_limit == 10
    assert args.webhook_limit == 20
    assert build_parser().parse_args([]).command is None
