#!/usr/bin/env python3
"""
CLI entry points for the webhook pipeline.

    python -m src.workers run                       # long-running worker
    python -m src.workers once [--tenant acme]      # single pass, JSON on stdout
"""

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from src.config import settings
from src.shared.database import close_database_engine, create_database_engine
from src.shared.infrastructure.observability.logger import configure_logging, get_logger
from src.webhooks.application.options import PipelineOptions
from src.webhooks.infrastructure.container import build_webhook_container
from src.workers.manager import create_default_worker_manager

logger = get_logger(__name__)


async def run_workers() -> None:
    database = create_database_engine()
    container = build_webhook_container(database.session_factory)
    manager = create_default_worker_manager(container)
    manager.setup_signal_handlers()
    try:
        await manager.start_all()
        await manager.wait_for_shutdown()
    finally:
        await manager.shutdown()
        await close_database_engine()


async def run_once(tenant: Optional[str], options: PipelineOptions) -> dict:
    database = create_database_engine()
    try:
        container = build_webhook_container(database.session_factory)
        result = await container.pipeline.run(tenant, options)
        return result.to_dict()
    finally:
        await close_database_engine()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m src.workers", description="Webhook outbox pipeline")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run the pipeline worker until SIGINT/SIGTERM")

    once = sub.add_parser("once", help="Run one pipeline pass and print the result")
    once.add_argument("--tenant", help="Tenant id or slug (default: all active tenants)")
    once.add_argument("--event-limit", type=int, dest="event_limit")
    once.add_argument("--webhook-limit", type=int, dest="webhook_limit")
    once.add_argument("--max-attempts", type=int, dest="max_attempts")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
    command = args.command or "run"

    try:
        if command == "run":
            asyncio.run(run_workers())
            return 0
        options = PipelineOptions(
            domain_event_limit=args.event_limit,
            webhook_limit=args.webhook_limit,
            max_retry_attempts=args.max_attempts,
        )
        payload = asyncio.run(run_once(args.tenant, options))
        print(json.dumps(payload, indent=2, default=str))
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception:
        logger.exception("webhook_pipeline_fatal", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
