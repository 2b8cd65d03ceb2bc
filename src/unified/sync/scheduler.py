"""Cron scheduling for sync orchestrators.

Wraps an APScheduler AsyncIOScheduler. Every (vertical, object type) gets
one cron job named ``sync_<vertical>_<object>`` running its orchestrator;
sync_now() runs the registered orchestrators for a single tenant right away
(onboarding, "sync now" buttons).

Jobs coalesce and never overlap themselves: a tick that fires while the
previous run of the same job is still going is dropped. Handlers are safe to
run more than once since ingestion upserts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.unified.core.errors import UnifiedSyncError
from src.unified.sync.orchestrator import SyncOrchestrator
from src.unified.sync.schemas import SyncRunResult

logger = structlog.get_logger(__name__)


class SyncScheduler:
    """Cron-driven runner for the registered sync orchestrators.

    Args:
        scheduler: AsyncIOScheduler to register jobs on; one is created if omitted.
        misfire_grace_seconds: How late a missed tick may still run.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler | None = None,
        misfire_grace_seconds: int = 3600,
    ) -> None:
        self._scheduler = scheduler or AsyncIOScheduler()
        self._misfire_grace_seconds = misfire_grace_seconds
        self._orchestrators: dict[str, SyncOrchestrator] = {}
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    @property
    def orchestrators(self) -> dict[str, SyncOrchestrator]:
        return dict(self._orchestrators)

    # ── Registration ────────────────────────────────────────────────────────

    def register_cron_job(
        self,
        name: str,
        cron_expression: str,
        handler: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        """Run ``handler(*args)`` on a standard five-field cron expression.

        Re-registering a name replaces the previous job.

        Raises:
            ValueError: The cron expression is invalid.
        """
        self._scheduler.add_job(
            handler,
            trigger=CronTrigger.from_crontab(cron_expression),
            args=list(args),
            id=name,
            name=name,
            misfire_grace_time=self._misfire_grace_seconds,
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        logger.info("scheduler.job_registered", job=name, cron=cron_expression)

    def register_orchestrator(self, orchestrator: SyncOrchestrator, cron_expression: str) -> None:
        """Schedule ``orchestrator`` and make it available to sync_now()."""
        self._orchestrators[orchestrator.object_key] = orchestrator
        self.register_cron_job(
            orchestrator.job_name, cron_expression, self._run_scheduled, orchestrator
        )

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def start(self) -> bool:
        """Start firing jobs. Must be called from inside a running event loop."""
        if self._started:
            return False
        self._scheduler.start()
        self._started = True
        logger.info("scheduler.started", jobs=[job["id"] for job in self.list_jobs()])
        return True

    def stop(self) -> None:
        """Stop firing jobs and ask in-flight runs to wind down after their current connections."""
        for orchestrator in self._orchestrators.values():
            orchestrator.request_stop()
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("scheduler.stopped")

    # ── Execution ───────────────────────────────────────────────────────────

    async def _run_scheduled(self, orchestrator: SyncOrchestrator) -> None:
        logger.info("scheduler.job_triggered", job=orchestrator.job_name)
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            await orchestrator.run()
        except UnifiedSyncError as exc:
            logger.error(
                "scheduler.job_failed",
                job=orchestrator.job_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def drain(self) -> None:
        """Wait for scheduled runs still in flight (after stop(), they end early)."""
        pending = [task for task in self._in_flight if task is not asyncio.current_task()]
        if pending:
            logger.info("scheduler.draining", runs=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def sync_now(
        self,
        tenant_id: str,
        object_keys: Sequence[str] | None = None,
    ) -> list[SyncRunResult]:
        """Run the registered orchestrators for one tenant immediately.

        Orchestrators run one after another in registration order, so
        referenced objects (users) land before the objects pointing at them.

        Raises:
            KeyError: An object key in ``object_keys`` has no orchestrator.
        """
        if object_keys is None:
            selected = list(self._orchestrators.values())
        else:
            missing = [key for key in object_keys if key not in self._orchestrators]
            if missing:
                raise KeyError(f"No sync registered for {', '.join(missing)}")
            selected = [self._orchestrators[key] for key in object_keys]

        logger.info(
            "scheduler.sync_now",
            tenant_id=tenant_id,
            objects=[o.object_key for o in selected],
        )
        return [await orchestrator.run(tenant_id) for orchestrator in selected]

    def list_jobs(self) -> list[dict[str, Any]]:
        """Registered jobs with their trigger and next fire time (None until started)."""
        return [
            {
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": getattr(job, "next_run_time", None),
            }
            for job in self._scheduler.get_jobs()
        ]
