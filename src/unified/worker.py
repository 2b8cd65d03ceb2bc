"""Sync worker entrypoint.

Usage:
    unified-sync run
    unified-sync sync-now --tenant <tenant-uuid> [--object crm.contact ...]
    unified-sync list-jobs

``run`` starts the cron scheduler and blocks until SIGINT/SIGTERM; on
shutdown in-flight connection cycles finish and no new ones are started.
Reads DATABASE_URL and the SYNC_* settings from environment or .env file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys

import structlog
from prometheus_client import start_http_server

from src.unified.bootstrap import SyncEngine, build_engine
from src.unified.config import get_settings
from src.unified.core.database import close_db, init_db
from src.unified.core.errors import UnifiedSyncError
from src.unified.core.logging import configure_structlog

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unified-sync",
        description="Run and trigger unified provider syncs.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("run", help="Start the cron scheduler until interrupted")

    sync_now = commands.add_parser("sync-now", help="Sync one tenant immediately")
    sync_now.add_argument("--tenant", required=True, help="Tenant UUID")
    sync_now.add_argument(
        "--object",
        dest="objects",
        action="append",
        help="Object key to sync, e.g. crm.contact (repeatable; default: all)",
    )

    commands.add_parser("list-jobs", help="Print registered sync jobs")
    return parser


async def _serve(engine: SyncEngine) -> int:
    settings = engine.settings
    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)
        logger.info("worker.metrics_listening", port=settings.METRICS_PORT)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    engine.scheduler.start()
    logger.info("worker.started", jobs=[job["id"] for job in engine.scheduler.list_jobs()])
    await stop.wait()

    logger.info("worker.stopping")
    engine.scheduler.stop()
    await engine.scheduler.drain()
    logger.info("worker.stopped")
    return 0


async def _sync_now(engine: SyncEngine, tenant_id: str, objects: list[str] | None) -> int:
    try:
        reports = await engine.scheduler.sync_now(tenant_id, objects)
    except KeyError as exc:
        print(f"error: {exc.args[0]}", file=sys.stderr)
        return 2
    except UnifiedSyncError as exc:
        logger.error("worker.sync_now_failed", tenant_id=tenant_id, error=str(exc))
        return 1

    print(json.dumps([report.model_dump(mode="json") for report in reports], indent=2))
    return 0


def _list_jobs(engine: SyncEngine) -> int:
    for job in engine.scheduler.list_jobs():
        print(f"{job['id']:<28} {job['trigger']}")
    return 0


async def _main(args: argparse.Namespace) -> int:
    configure_structlog()
    engine = build_engine(get_settings())
    if args.command == "list-jobs":
        return _list_jobs(engine)

    await init_db()
    try:
        if args.command == "run":
            return await _serve(engine)
        return await _sync_now(engine, args.tenant, args.objects)
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
