"""Sync orchestrator -- one scheduled run per (vertical, object type).

A run walks tenants -> projects -> linked accounts -> connections for the
vertical and drives one fetch-unify-persist cycle per connection whose
provider has a registered fetcher:

1. Look up the tenant's field mappings for (provider, linked account, object).
2. Fetch raw records, narrowed to the mapped custom field ids.
3. Unify the batch through CoreUnification.
4. Persist unified records and raw payloads through IngestionService.

Cycles run concurrently in a bounded pool and are isolated: a failure in one
is logged and reported, never propagated to its siblings. Connections that
are not active are skipped with a warning. Provider auth failures flag the
connection for re-authentication; transient failures and rate limits leave
it active for the next scheduled run. Only storage unavailability and a
fetcher registered without a matching mapper abort the whole run.

request_stop() is cooperative: in-flight cycles finish, queued ones are not
started. Every run has its own stop flag, so overlapping runs of one
orchestrator (a scheduled run and a sync-now) never clear each other's.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import OperationalError

from src.unified.core.context import SyncContext, sync_context
from src.unified.core.errors import (
    ProviderAuthFailure,
    ProviderFetchFailure,
    RegistryLookupFailure,
    StorageUnavailable,
)
from src.unified.core.monitoring import track_cycle
from src.unified.field_mapping.service import FieldMappingService
from src.unified.models.shared import ConnectionStatus
from src.unified.sync.ingestion import IngestionService
from src.unified.sync.repository import ConnectionRepository
from src.unified.sync.schemas import (
    ConnectionRead,
    ConnectionSyncResult,
    CycleOutcome,
    SyncRunResult,
)
from src.unified.unification.dispatcher import CoreUnification
from src.unified.unification.registry import FetcherRegistry

logger = structlog.get_logger(__name__)

_FATAL = (StorageUnavailable, RegistryLookupFailure)


@dataclass(frozen=True)
class _Target:
    tenant_id: str
    project_id: str
    linked_account_id: str
    connection: ConnectionRead


class SyncOrchestrator:
    """Drives scheduled syncs of one (vertical, object type).

    Args:
        vertical: Vertical slug, e.g. "crm".
        object_type: Object type within the vertical, e.g. "contact".
        repository: ConnectionRepository for the tenancy hierarchy.
        fetchers: FetcherRegistry holding provider fetch services.
        dispatcher: CoreUnification used to unify fetched batches.
        field_mappings: FieldMappingService resolving custom fields.
        ingestion: IngestionService persisting unified batches.
        max_concurrency: Connection cycles allowed in flight at once.
    """

    def __init__(
        self,
        vertical: str,
        object_type: str,
        *,
        repository: ConnectionRepository,
        fetchers: FetcherRegistry,
        dispatcher: CoreUnification,
        field_mappings: FieldMappingService,
        ingestion: IngestionService,
        max_concurrency: int = 4,
    ) -> None:
        self.vertical = vertical
        self.object_type = object_type
        self._repository = repository
        self._fetchers = fetchers
        self._dispatcher = dispatcher
        self._field_mappings = field_mappings
        self._ingestion = ingestion
        self._max_concurrency = max(1, max_concurrency)
        self._active_stops: set[asyncio.Event] = set()

    @property
    def object_key(self) -> str:
        return f"{self.vertical}.{self.object_type}"

    @property
    def job_name(self) -> str:
        return f"sync_{self.vertical}_{self.object_type}"

    def request_stop(self) -> None:
        """Finish in-flight connection cycles of every active run and dispatch no new ones."""
        for stop in self._active_stops:
            stop.set()
        logger.info("sync.stop_requested", object_key=self.object_key)

    @property
    def stop_requested(self) -> bool:
        return any(stop.is_set() for stop in self._active_stops)

    # ── Run ─────────────────────────────────────────────────────────────────

    async def run(self, tenant_id: str | None = None) -> SyncRunResult:
        """Sync every eligible connection, or only those of ``tenant_id``.

        Raises:
            StorageUnavailable: The database could not be reached.
            RegistryLookupFailure: A provider has a fetcher but no mapper.
        """
        stop = asyncio.Event()
        self._active_stops.add(stop)
        try:
            return await self._run(tenant_id, stop)
        finally:
            self._active_stops.discard(stop)

    async def _run(self, tenant_id: str | None, stop: asyncio.Event) -> SyncRunResult:
        report = SyncRunResult(
            vertical=self.vertical,
            object_type=self.object_type,
            started_at=datetime.now(timezone.utc),
        )
        logger.info("sync.run_started", object_key=self.object_key, tenant_id=tenant_id)

        try:
            targets = await self._enumerate(tenant_id)
        except OperationalError as exc:
            logger.error("sync.run_failed", object_key=self.object_key, error=str(exc))
            raise StorageUnavailable(str(exc)) from exc

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _guarded(target: _Target) -> ConnectionSyncResult | None:
            async with semaphore:
                if stop.is_set():
                    return None
                try:
                    return await self._sync_connection(target)
                except _FATAL:
                    stop.set()
                    raise

        outcomes = await asyncio.gather(
            *(_guarded(target) for target in targets), return_exceptions=True
        )

        fatal: BaseException | None = None
        for outcome in outcomes:
            if outcome is None:
                report.cancelled = True
            elif isinstance(outcome, BaseException):
                fatal = fatal or outcome
            else:
                report.connections.append(outcome)
        report.finished_at = datetime.now(timezone.utc)

        if fatal is not None:
            logger.error(
                "sync.run_failed",
                object_key=self.object_key,
                error=str(fatal),
                error_type=type(fatal).__name__,
            )
            raise fatal

        logger.info(
            "sync.run_completed",
            object_key=self.object_key,
            tenant_id=tenant_id,
            connections=len(report.connections),
            succeeded=report.count(CycleOutcome.SUCCEEDED),
            skipped=report.count(CycleOutcome.SKIPPED),
            needs_reauth=report.count(CycleOutcome.NEEDS_REAUTH),
            retry_pending=report.count(CycleOutcome.RETRY_PENDING),
            failed=report.count(CycleOutcome.FAILED),
            cancelled=report.cancelled,
        )
        return report

    async def _enumerate(self, tenant_id: str | None) -> list[_Target]:
        providers = set(self._fetchers.providers_for(self.vertical, self.object_type))
        targets: list[_Target] = []
        if not providers:
            logger.warning("sync.no_fetchers", object_key=self.object_key)
            return targets

        for tenant in await self._repository.list_tenants(tenant_id):
            for project in await self._repository.list_projects(tenant.id):
                for account in await self._repository.list_linked_accounts(project.id):
                    connections = await self._repository.list_connections(
                        account.id, self.vertical
                    )
                    for connection in connections:
                        if connection.provider_slug not in providers:
                            continue
                        targets.append(
                            _Target(
                                tenant_id=tenant.id,
                                project_id=project.id,
                                linked_account_id=account.id,
                                connection=connection,
                            )
                        )
        return targets

    # ── One connection ──────────────────────────────────────────────────────

    async def _sync_connection(self, target: _Target) -> ConnectionSyncResult:
        connection = target.connection
        provider = connection.provider_slug
        result = ConnectionSyncResult(
            connection_id=connection.id,
            tenant_id=target.tenant_id,
            linked_account_id=target.linked_account_id,
            provider=provider,
            outcome=CycleOutcome.FAILED,
        )
        ctx = SyncContext(
            tenant_id=target.tenant_id,
            project_id=target.project_id,
            linked_account_id=target.linked_account_id,
            connection_id=connection.id,
            provider=provider,
            vertical=self.vertical,
            object_type=self.object_type,
        )

        with sync_context(ctx), track_cycle(self.vertical, self.object_type, provider) as cycle:
            if connection.status != ConnectionStatus.ACTIVE.value:
                logger.warning("sync.connection_skipped", reason=connection.status)
                result.outcome = CycleOutcome.SKIPPED
                cycle["outcome"] = result.outcome.value
                return result

            try:
                await self._run_cycle(target, result)
                result.outcome = CycleOutcome.SUCCEEDED
            except ProviderAuthFailure as exc:
                result.outcome = CycleOutcome.NEEDS_REAUTH
                result.error = str(exc)
                logger.warning("sync.connection_auth_failed", error=str(exc))
                try:
                    await self._repository.mark_needs_reauth(connection.id)
                except OperationalError as storage_exc:
                    raise StorageUnavailable(str(storage_exc)) from storage_exc
            except ProviderFetchFailure as exc:
                result.outcome = (
                    CycleOutcome.RETRY_PENDING if exc.retryable else CycleOutcome.FAILED
                )
                result.error = str(exc)
                logger.warning(
                    "sync.connection_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    retry_eligible=exc.retryable,
                )
            except _FATAL:
                raise
            except OperationalError as exc:
                raise StorageUnavailable(str(exc)) from exc
            except Exception as exc:
                result.outcome = CycleOutcome.FAILED
                result.error = str(exc)
                logger.warning(
                    "sync.connection_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    retry_eligible=False,
                )
            cycle["outcome"] = result.outcome.value
        return result

    async def _run_cycle(self, target: _Target, result: ConnectionSyncResult) -> None:
        connection = target.connection
        provider = connection.provider_slug

        mappings = await self._field_mappings.get_field_mappings(
            provider, target.linked_account_id, self.object_key
        )
        fetcher = self._fetchers.resolve(self.vertical, self.object_type, provider)
        fetched = await fetcher.fetch(
            target.linked_account_id, [mapping.remote_id for mapping in mappings]
        )
        result.fetched = len(fetched.data)

        unified = await self._dispatcher.unify(
            source_object=fetched.data,
            target_type=self.object_type,
            provider_name=provider,
            vertical=self.vertical,
            connection_id=connection.id,
            field_mappings=mappings,
            linked_account_id=target.linked_account_id,
        )
        persisted = await self._ingestion.persist(
            unified, connection.id, fetched.data, object_type=self.object_key
        )
        result.persisted = len(persisted.ids)
        result.rejected = len(persisted.failures)

        await self._repository.mark_synced(connection.id)
        logger.info(
            "sync.connection_completed",
            fetched=result.fetched,
            persisted=result.persisted,
            rejected=result.rejected,
        )
