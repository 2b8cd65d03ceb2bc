"""Front ticketing mappers: conversations (tickets), tags, and teammates (users).

Front conversations embed their tags; those are unified through the
dispatcher with the Front tag mapper instead of being converted here.
Custom field mappings address keys inside ``custom_fields``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from src.unified.ticketing.schemas import (
    TicketStatus,
    UnifiedTagInput,
    UnifiedTagOutput,
    UnifiedTicketInput,
    UnifiedTicketingUserOutput,
    UnifiedTicketOutput,
)
from src.unified.unification.mapper import BaseProviderMapper, ProviderPayload
from src.unified.unification.schemas import FieldMappingDefinition, UnifiedInput

_CLOSED_STATUSES = {"archived", "deleted", "resolved"}
_FRONT_STATUSES = {TicketStatus.OPEN.value: "open", TicketStatus.CLOSED.value: "archived"}

# Conversations have nowhere to keep these
_UNWRITABLE_FIELDS = ("priority", "due_date", "type", "parent_ticket")


def _from_epoch(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def _opening_body(source: ProviderPayload) -> str | None:
    comment = source.get("comment")
    if isinstance(comment, dict):
        return comment.get("body")
    return None


class FrontTicketMapper(BaseProviderMapper):
    vertical = "ticketing"
    object_type = "ticket"
    provider = "front"

    async def desunify(
        self,
        source: UnifiedTicketInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        """Build a discussion payload, or None when the ticket sets a field Front cannot hold.

        A discussion carries one opening comment, which doubles as the ticket
        description; a description that differs from an explicit comment has
        no place to go.
        """
        if any(getattr(source, name) is not None for name in _UNWRITABLE_FIELDS):
            return None
        if source.status is not None and source.status not in _FRONT_STATUSES:
            return None
        if (
            source.comment is not None
            and source.description is not None
            and source.description != source.comment.body
        ):
            return None

        result: dict[str, Any] = {
            "type": "discussion",
            "subject": source.name,
        }
        if source.status is not None:
            result["status"] = _FRONT_STATUSES[source.status]

        if source.comment is None and source.description is not None:
            result["comment"] = {"body": source.description}
        elif source.comment is not None:
            comment: dict[str, Any] = {"body": source.comment.body}
            if source.comment.creator_type == "user":
                author_id = await self._remote_id(source.comment.user_id, "ticketing.user")
                if author_id:
                    comment["author_id"] = author_id
            if source.comment.attachments:
                comment["attachments"] = source.comment.attachments
            result["comment"] = comment

        if source.assigned_to:
            teammate_ids = []
            for assignee in source.assigned_to:
                remote = await self._remote_id(assignee, "ticketing.user")
                if remote:
                    teammate_ids.append(remote)
            result["teammate_ids"] = teammate_ids

        if source.tags:
            result["tags"] = list(source.tags)

        custom_fields: dict[str, Any] = {}
        self._place_custom_values(custom_fields, source, field_mappings)
        if custom_fields:
            result["custom_fields"] = custom_fields
        return result

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedTicketOutput:
        assigned_to = None
        assignee = source.get("assignee")
        if assignee:
            user_id = await self._local_id(assignee.get("id"), connection_id, "ticketing.user")
            if user_id:
                assigned_to = [user_id]

        tags = None
        if source.get("tags") is not None:
            tags = await self._unify_nested(source["tags"], "tag", connection_id)

        status = source.get("status")
        unified_status = None
        if status:
            unified_status = (
                TicketStatus.CLOSED.value if status in _CLOSED_STATUSES else TicketStatus.OPEN.value
            )

        return UnifiedTicketOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            name=source.get("subject"),
            status=unified_status,
            description=_opening_body(source) or source.get("subject"),
            due_date=None,
            assigned_to=assigned_to,
            tags=tags,
            created_at=_from_epoch(source.get("created_at")),
            field_mappings=self._custom_values(source.get("custom_fields"), field_mappings),
        )


class FrontTagMapper(BaseProviderMapper):
    vertical = "ticketing"
    object_type = "tag"
    provider = "front"

    async def desunify(
        self,
        source: UnifiedTagInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload:
        return {"name": source.name}

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedTagOutput:
        return UnifiedTagOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            name=source.get("name"),
        )


class FrontUserMapper(BaseProviderMapper):
    """Front teammates -> ticketing users. Teammates cannot be created over the API."""

    vertical = "ticketing"
    object_type = "user"
    provider = "front"

    async def desunify(
        self,
        source: UnifiedInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        return None

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedTicketingUserOutput:
        name = " ".join(
            part for part in (source.get("first_name"), source.get("last_name")) if part
        )
        return UnifiedTicketingUserOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            name=name or source.get("username"),
            email_address=source.get("email"),
            field_mappings=self._custom_values(source.get("custom_fields"), field_mappings),
        )
