"""Explicit init phase: wire registries, services and orchestrators.

Every mapper and fetcher is registered here before any sync traffic starts;
after build_engine() returns the registries are only read.

Orchestrators are created for each object type that has both a fetcher and
a persistence descriptor, in SYNC_ORDER so that sync_now() lands referenced
objects (users) before the objects that point at them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

from src.unified.config import Settings, get_settings
from src.unified.core.database import SessionFactory, get_session
from src.unified.crm.fetchers import FETCHERS as CRM_FETCHERS
from src.unified.crm.mappers import MAPPERS as CRM_MAPPERS
from src.unified.crm.objects import LOOKUP_MODELS as CRM_LOOKUP_MODELS
from src.unified.crm.objects import OBJECT_SPECS as CRM_OBJECT_SPECS
from src.unified.field_mapping.service import FieldMappingService
from src.unified.sync.fetcher import TokenProvider
from src.unified.sync.ingestion import IngestionService
from src.unified.sync.locks import KeyedLock
from src.unified.sync.orchestrator import SyncOrchestrator
from src.unified.sync.repository import ConnectionRepository
from src.unified.sync.scheduler import SyncScheduler
from src.unified.ticketing.fetchers import FETCHERS as TICKETING_FETCHERS
from src.unified.ticketing.mappers import MAPPERS as TICKETING_MAPPERS
from src.unified.ticketing.objects import LOOKUP_MODELS as TICKETING_LOOKUP_MODELS
from src.unified.ticketing.objects import OBJECT_SPECS as TICKETING_OBJECT_SPECS
from src.unified.unification.dispatcher import CoreUnification
from src.unified.unification.lookup import SqlRemoteIdLookup
from src.unified.unification.mapper import RemoteIdLookup
from src.unified.unification.registry import (
    FetcherRegistry,
    MapperRegistry,
    get_fetcher_registry,
    get_mapper_registry,
)

logger = structlog.get_logger(__name__)

SYNC_ORDER = [
    "crm.user",
    "crm.contact",
    "ticketing.user",
    "ticketing.team",
    "ticketing.ticket",
    "ticketing.attachment",
]


def provider_base_urls(settings: Settings) -> dict[str, str]:
    return {
        "hubspot": settings.HUBSPOT_BASE_URL,
        "zendesk": settings.ZENDESK_SELL_BASE_URL,
        "front": settings.FRONT_BASE_URL,
    }


def register_mappers(
    registry: MapperRegistry,
    dispatcher: CoreUnification,
    lookup: RemoteIdLookup | None,
) -> None:
    """Instantiate and register every provider mapper."""
    for mapper_cls in [*CRM_MAPPERS, *TICKETING_MAPPERS]:
        registry.register_mapper(mapper_cls(dispatcher=dispatcher, lookup=lookup))


def register_fetchers(
    registry: FetcherRegistry,
    token_provider: TokenProvider,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Instantiate and register every provider fetcher."""
    base_urls = provider_base_urls(settings)
    for fetcher_cls in [*CRM_FETCHERS, *TICKETING_FETCHERS]:
        registry.register_fetcher(
            fetcher_cls(
                token_provider,
                base_urls[fetcher_cls.provider],
                client=client,
                max_attempts=settings.FETCH_MAX_ATTEMPTS,
                timeout=settings.FETCH_TIMEOUT_SECONDS,
                page_limit=settings.FETCH_PAGE_LIMIT,
                max_retry_after=settings.FETCH_MAX_RETRY_AFTER_SECONDS,
            )
        )


@dataclass
class SyncEngine:
    """Everything a worker process needs, wired together."""

    settings: Settings
    mappers: MapperRegistry
    fetchers: FetcherRegistry
    dispatcher: CoreUnification
    field_mappings: FieldMappingService
    repository: ConnectionRepository
    ingestion: IngestionService
    scheduler: SyncScheduler
    orchestrators: dict[str, SyncOrchestrator] = field(default_factory=dict)


def build_engine(
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
    mapper_registry: MapperRegistry | None = None,
    fetcher_registry: FetcherRegistry | None = None,
    http_client: httpx.AsyncClient | None = None,
    token_provider: TokenProvider | None = None,
) -> SyncEngine:
    """Build the sync engine and register orchestrators on the scheduler.

    Args:
        settings: Settings; defaults to get_settings().
        session_factory: Session factory; defaults to the module-level engine.
        mapper_registry: Registry to populate; defaults to the process-wide one.
        fetcher_registry: Registry to populate; defaults to the process-wide one.
        http_client: Shared httpx client handed to every fetcher.
        token_provider: Access token source; defaults to the connections table.
    """
    settings = settings or get_settings()
    session_factory = session_factory or get_session
    mappers = mapper_registry if mapper_registry is not None else get_mapper_registry()
    fetchers = fetcher_registry if fetcher_registry is not None else get_fetcher_registry()

    field_mappings = FieldMappingService(session_factory)
    repository = ConnectionRepository(session_factory)
    lookup = SqlRemoteIdLookup(
        session_factory, {**CRM_LOOKUP_MODELS, **TICKETING_LOOKUP_MODELS}
    )
    dispatcher = CoreUnification(
        mappers,
        field_mapping_service=field_mappings,
        max_depth=settings.UNIFICATION_MAX_DEPTH,
    )
    register_mappers(mappers, dispatcher, lookup)
    register_fetchers(
        fetchers,
        token_provider or repository.get_access_token,
        settings,
        client=http_client,
    )

    ingestion = IngestionService(
        session_factory,
        [*CRM_OBJECT_SPECS, *TICKETING_OBJECT_SPECS],
        max_attempts=settings.PERSIST_MAX_ATTEMPTS,
        lock=KeyedLock(),
    )
    scheduler = SyncScheduler(misfire_grace_seconds=settings.SYNC_MISFIRE_GRACE_SECONDS)
    engine = SyncEngine(
        settings=settings,
        mappers=mappers,
        fetchers=fetchers,
        dispatcher=dispatcher,
        field_mappings=field_mappings,
        repository=repository,
        ingestion=ingestion,
        scheduler=scheduler,
    )

    fetched_keys = {f"{vertical}.{object_type}" for vertical, object_type in fetchers.object_keys()}
    for object_key in SYNC_ORDER:
        if object_key not in fetched_keys or not ingestion.supports(object_key):
            continue
        vertical, object_type = object_key.split(".", 1)
        orchestrator = SyncOrchestrator(
            vertical,
            object_type,
            repository=repository,
            fetchers=fetchers,
            dispatcher=dispatcher,
            field_mappings=field_mappings,
            ingestion=ingestion,
            max_concurrency=settings.SYNC_MAX_CONCURRENCY,
        )
        engine.orchestrators[object_key] = orchestrator
        scheduler.register_orchestrator(orchestrator, settings.cron_for(object_key))

    logger.info(
        "bootstrap.completed",
        mappers=len(mappers),
        fetchers=len(fetchers),
        orchestrators=list(engine.orchestrators),
    )
    return engine
