"""Jira ticketing attachment mapper.

The fetcher stamps each attachment with ``parent_remote_id`` (the issue id)
since Jira returns attachments nested under their issue.
"""

from __future__ import annotations

from src.unified.ticketing.schemas import UnifiedAttachmentInput, UnifiedAttachmentOutput
from src.unified.unification.mapper import BaseProviderMapper, ProviderPayload
from src.unified.unification.schemas import FieldMappingDefinition


class JiraAttachmentMapper(BaseProviderMapper):
    vertical = "ticketing"
    object_type = "attachment"
    provider = "jira"

    async def desunify(
        self,
        source: UnifiedAttachmentInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        return None

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedAttachmentOutput:
        ticket_id = await self._local_id(
            source.get("parent_remote_id"), connection_id, "ticketing.ticket"
        )
        author = source.get("author") or {}
        uploader = await self._local_id(
            author.get("accountId"), connection_id, "ticketing.user"
        )
        return UnifiedAttachmentOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            file_name=source.get("filename"),
            file_url=source.get("content"),
            ticket_id=ticket_id,
            uploader=uploader,
        )
