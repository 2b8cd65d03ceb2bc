"""CoreUnification -- the single entry point for unify/desunify.

Resolves the mapper from the MapperRegistry, resolves custom field mappings
through the FieldMappingService when the caller did not supply them, and
invokes the mapper. Mappers call back into unify() for nested object types.

Nesting is bounded: the current depth travels with the call in a context
variable set around every mapper invocation. A call that would exceed
``max_depth`` raises CyclicUnification instead of recursing further.
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING, Any

import structlog

from src.unified.core.errors import CyclicUnification
from src.unified.unification.registry import MapperRegistry
from src.unified.unification.schemas import FieldMappingDefinition, UnifiedInput

if TYPE_CHECKING:
    from src.unified.field_mapping.service import FieldMappingService

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 4

_unification_depth: contextvars.ContextVar[int] = contextvars.ContextVar(
    "unification_depth", default=0
)


def current_depth() -> int:
    """Nesting depth of the unify/desunify call currently executing (0 outside)."""
    return _unification_depth.get()


class CoreUnification:
    """Dispatches unify/desunify calls to registered provider mappers.

    Args:
        registry: MapperRegistry holding one mapper per (vertical, object, provider).
        field_mapping_service: Optional resolver used when field mappings are not supplied.
        max_depth: Maximum nesting depth before CyclicUnification is raised.
    """

    def __init__(
        self,
        registry: MapperRegistry,
        field_mapping_service: FieldMappingService | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._registry = registry
        self._field_mappings = field_mapping_service
        self._max_depth = max_depth

    async def unify(
        self,
        *,
        source_object: Any,
        target_type: str,
        provider_name: str,
        vertical: str,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition] | None = None,
        linked_account_id: str | None = None,
    ) -> Any:
        """Unify provider payload(s) into the unified shape for ``vertical.target_type``.

        Raises:
            RegistryLookupFailure: No mapper registered for the key.
            CyclicUnification: Nesting depth limit exceeded.
        """
        depth = self._enter(vertical, target_type)
        mapper = self._registry.resolve(vertical, target_type, provider_name)
        if field_mappings is None:
            field_mappings = await self._resolve_field_mappings(
                provider_name, linked_account_id, f"{vertical}.{target_type}"
            )

        token = _unification_depth.set(depth)
        try:
            return await mapper.unify(source_object, connection_id, field_mappings)
        finally:
            _unification_depth.reset(token)

    async def desunify(
        self,
        *,
        source_object: UnifiedInput,
        target_type: str,
        provider_name: str,
        vertical: str,
        field_mappings: list[FieldMappingDefinition] | None = None,
        linked_account_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Convert a unified input to the provider write payload.

        Returns None when the provider cannot create ``target_type``.
        """
        depth = self._enter(vertical, target_type)
        mapper = self._registry.resolve(vertical, target_type, provider_name)
        if field_mappings is None:
            field_mappings = await self._resolve_field_mappings(
                provider_name, linked_account_id, f"{vertical}.{target_type}"
            )

        token = _unification_depth.set(depth)
        try:
            result = await mapper.desunify(source_object, field_mappings)
        finally:
            _unification_depth.reset(token)

        if result is None:
            logger.info(
                "unification.desunify_unsupported",
                vertical=vertical,
                object_type=target_type,
                provider=provider_name,
            )
        return result

    def _enter(self, vertical: str, target_type: str) -> int:
        depth = _unification_depth.get() + 1
        if depth > self._max_depth:
            raise CyclicUnification(depth, self._max_depth, f"{vertical}.{target_type}")
        return depth

    async def _resolve_field_mappings(
        self,
        provider: str,
        linked_account_id: str | None,
        object_key: str,
    ) -> list[FieldMappingDefinition]:
        if self._field_mappings is None or linked_account_id is None:
            return []
        return await self._field_mappings.get_field_mappings(
            provider, linked_account_id, object_key
        )
