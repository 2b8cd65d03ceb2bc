"""Provider mapper interface -- the contract every (provider, object type) implements.

A mapper converts between a provider's native payload and the unified shape:

- unify(): provider payload (one or a list) -> unified object (one or a list).
  Singular input yields singular output, list input yields a list in the same
  order. Cross-referenced remote ids are resolved to local ids through the
  RemoteIdLookup collaborator; a missing local row drops the reference.
  Nested unified types (e.g. a ticket's tags) go back through the dispatcher
  so the per-provider mapper for that type is reused.
- desunify(): unified input -> provider write payload, or None when the
  provider cannot create this object type.

Mappers are never called directly by the orchestrator or ingestion; they are
registered in the MapperRegistry and reached through CoreUnification.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

from src.unified.field_mapping.translate import apply_custom_values, extract_custom_values
from src.unified.unification.registry import ServiceKey
from src.unified.unification.schemas import FieldMappingDefinition, UnifiedInput, UnifiedObject

if TYPE_CHECKING:
    from src.unified.unification.dispatcher import CoreUnification

ProviderPayload = dict[str, Any]


class RemoteIdLookup(Protocol):
    """Storage-backed lookup between provider ids and local ids."""

    async def resolve_local_id(
        self, remote_id: str, connection_id: str, object_type: str
    ) -> str | None: ...

    async def resolve_remote_id(self, local_id: str, object_type: str) -> str | None: ...


class ProviderMapper(ABC):
    """Abstract interface for provider <-> unified conversion.

    Subclasses declare the registry key as class attributes.
    """

    vertical: ClassVar[str]
    object_type: ClassVar[str]
    provider: ClassVar[str]

    @property
    def key(self) -> ServiceKey:
        return ServiceKey(self.vertical, self.object_type, self.provider)

    @abstractmethod
    async def desunify(
        self,
        source: UnifiedInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        """Convert a unified input to the provider write shape, or None if unsupported."""
        ...

    @abstractmethod
    async def unify(
        self,
        source: ProviderPayload | list[ProviderPayload],
        connection_id: str,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> UnifiedObject | list[UnifiedObject]:
        """Convert one or many provider payloads to unified objects."""
        ...


class BaseProviderMapper(ProviderMapper):
    """ProviderMapper with the shared plumbing filled in.

    Subclasses implement _unify_one() and desunify(). Batch handling,
    cross-reference lookup, nested unification and custom field
    translation live here.

    Args:
        dispatcher: CoreUnification used for nested object types.
        lookup: RemoteIdLookup for cross-referenced ids.
    """

    def __init__(
        self,
        dispatcher: CoreUnification | None = None,
        lookup: RemoteIdLookup | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._lookup = lookup

    async def unify(
        self,
        source: ProviderPayload | list[ProviderPayload],
        connection_id: str,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> UnifiedObject | list[UnifiedObject]:
        if isinstance(source, list):
            # Sequential on purpose: output order must match input order
            return [
                await self._unify_one(item, connection_id, field_mappings or [])
                for item in source
            ]
        return await self._unify_one(source, connection_id, field_mappings or [])

    @abstractmethod
    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedObject:
        ...

    # ── Helpers for subclasses ──────────────────────────────────────────────

    async def _local_id(
        self, remote_id: Any, connection_id: str, object_type: str
    ) -> str | None:
        """Resolve a provider id to a local id; None when unknown or unresolvable."""
        if remote_id in (None, "") or self._lookup is None:
            return None
        return await self._lookup.resolve_local_id(str(remote_id), connection_id, object_type)

    async def _remote_id(self, local_id: str | None, object_type: str) -> str | None:
        """Resolve a local id back to the provider id (desunify direction)."""
        if not local_id or self._lookup is None:
            return None
        return await self._lookup.resolve_remote_id(local_id, object_type)

    async def _unify_nested(
        self,
        source: ProviderPayload | list[ProviderPayload],
        target_type: str,
        connection_id: str,
    ) -> Any:
        """Unify a nested object type through the dispatcher (same provider and vertical)."""
        if self._dispatcher is None:
            raise RuntimeError(
                f"{type(self).__name__} needs a dispatcher to unify nested {target_type}"
            )
        return await self._dispatcher.unify(
            source_object=source,
            target_type=target_type,
            provider_name=self.provider,
            vertical=self.vertical,
            connection_id=connection_id,
            field_mappings=[],
        )

    @staticmethod
    def _custom_values(
        container: dict[str, Any] | None,
        field_mappings: list[FieldMappingDefinition],
    ) -> dict[str, Any]:
        return extract_custom_values(container or {}, field_mappings)

    @staticmethod
    def _place_custom_values(
        target: dict[str, Any],
        source: UnifiedInput,
        field_mappings: list[FieldMappingDefinition] | None,
    ) -> dict[str, Any]:
        if field_mappings and source.field_mappings:
            apply_custom_values(source.field_mappings, field_mappings, target)
        return target
