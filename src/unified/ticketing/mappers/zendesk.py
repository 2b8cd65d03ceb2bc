"""Zendesk ticketing team (group) mapper. Teams are read-only through the sync."""

from __future__ import annotations

from src.unified.ticketing.schemas import UnifiedTeamInput, UnifiedTeamOutput
from src.unified.unification.mapper import BaseProviderMapper, ProviderPayload
from src.unified.unification.schemas import FieldMappingDefinition


class ZendeskTeamMapper(BaseProviderMapper):
    vertical = "ticketing"
    object_type = "team"
    provider = "zendesk"

    async def desunify(
        self,
        source: UnifiedTeamInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        return None

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedTeamOutput:
        return UnifiedTeamOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            name=source.get("name"),
            description=source.get("description"),
            field_mappings=self._custom_values(source, field_mappings),
        )
