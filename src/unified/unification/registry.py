"""Registries keyed by (vertical, object_type, provider).

The MapperRegistry is the only way to reach a provider mapper; the
FetcherRegistry plays the same role for provider fetch services. Both are
plain in-memory dicts populated during the bootstrap phase, before any sync
traffic starts. After that they are read-only in practice, so lookups take
no lock.

Registration is idempotent: registering the same key twice silently replaces
the previous service (last registration wins, used for test overrides).
Resolving an unregistered key raises RegistryLookupFailure, never None.

Module-level singletons are provided via get_mapper_registry() and
get_fetcher_registry() for application-wide access.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from src.unified.core.errors import RegistryLookupFailure

if TYPE_CHECKING:
    from src.unified.sync.fetcher import ProviderFetcher
    from src.unified.unification.mapper import ProviderMapper

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceKey:
    """Composite registry key."""

    vertical: str
    object_type: str
    provider: str

    @property
    def object_key(self) -> str:
        """``vertical.object_type``, the form used by field mappings and job names."""
        return f"{self.vertical}.{self.object_type}"

    def __str__(self) -> str:
        return f"{self.vertical}_{self.object_type}_{self.provider}"


class KeyedRegistry(Generic[T]):
    """In-memory associative store of services keyed by ServiceKey.

    Thread safety note: registration is expected to complete before the
    event loop starts dispatching sync work. Concurrent reads need no lock.
    """

    kind = "service"

    def __init__(self) -> None:
        self._services: dict[ServiceKey, T] = {}

    def register(self, vertical: str, object_type: str, provider: str, service: T) -> None:
        """Store ``service`` under the composite key, replacing any previous one."""
        key = ServiceKey(vertical, object_type, provider)
        replaced = key in self._services
        self._services[key] = service
        logger.debug(
            f"registry.{self.kind}_registered",
            key=str(key),
            replaced=replaced,
        )

    def resolve(self, vertical: str, object_type: str, provider: str) -> T:
        """Return the service registered under the key.

        Raises:
            RegistryLookupFailure: If nothing is registered under the key.
        """
        try:
            return self._services[ServiceKey(vertical, object_type, provider)]
        except KeyError:
            raise RegistryLookupFailure(vertical, object_type, provider) from None

    def providers_for(self, vertical: str, object_type: str) -> list[str]:
        """Providers with a service registered for (vertical, object_type), sorted."""
        return sorted(
            key.provider
            for key in self._services
            if key.vertical == vertical and key.object_type == object_type
        )

    def object_keys(self) -> list[tuple[str, str]]:
        """Distinct (vertical, object_type) pairs with at least one service."""
        return sorted({(key.vertical, key.object_type) for key in self._services})

    def clear(self) -> None:
        self._services.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._services

    def __iter__(self) -> Iterator[ServiceKey]:
        return iter(list(self._services))

    def __len__(self) -> int:
        return len(self._services)


class MapperRegistry(KeyedRegistry["ProviderMapper"]):
    """Registry of provider mappers."""

    kind = "mapper"

    def register_mapper(self, mapper: ProviderMapper) -> None:
        """Register a mapper under the key its class declares."""
        key = mapper.key
        self.register(key.vertical, key.object_type, key.provider, mapper)


class FetcherRegistry(KeyedRegistry["ProviderFetcher"]):
    """Registry of provider fetch services."""

    kind = "fetcher"

    def register_fetcher(self, fetcher: ProviderFetcher) -> None:
        """Register a fetcher under the key its class declares."""
        key = fetcher.key
        self.register(key.vertical, key.object_type, key.provider, fetcher)


# ── Module-level singletons ─────────────────────────────────────────────────

_mapper_registry: MapperRegistry | None = None
_fetcher_registry: FetcherRegistry | None = None


def get_mapper_registry() -> MapperRegistry:
    """Get or create the process-wide MapperRegistry."""
    global _mapper_registry
    if _mapper_registry is None:
        _mapper_registry = MapperRegistry()
    return _mapper_registry


def get_fetcher_registry() -> FetcherRegistry:
    """Get or create the process-wide FetcherRegistry."""
    global _fetcher_registry
    if _fetcher_registry is None:
        _fetcher_registry = FetcherRegistry()
    return _fetcher_registry
