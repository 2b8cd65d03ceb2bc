"""Persistence descriptors for ticketing unified objects.

Tags live only nested under tickets and are matched by Front's tag id, so a
reordered tag list updates rows instead of renaming them.
"""

from __future__ import annotations

from src.unified.models.ticketing import (
    TicketingAttachmentModel,
    TicketingTeamModel,
    TicketingTicketModel,
    TicketingTicketTagModel,
    TicketingUserModel,
)
from src.unified.sync.ingestion import ObjectSpec, SubEntitySpec

TICKET = ObjectSpec(
    vertical="ticketing",
    object_type="ticket",
    model=TicketingTicketModel,
    fields={
        "name": "name",
        "status": "status",
        "description": "description",
        "due_date": "due_date",
        "type": "ticket_type",
        "priority": "priority",
        "parent_ticket": "parent_ticket",
        "assigned_to": "assigned_to",
        "completed_at": "completed_at",
    },
    sub_entities=(
        SubEntitySpec(
            attr="tags",
            model=TicketingTicketTagModel,
            owner_column="ticket_id",
            fields={"name": "name"},
            match_on="remote_id",
        ),
    ),
)

USER = ObjectSpec(
    vertical="ticketing",
    object_type="user",
    model=TicketingUserModel,
    fields={"name": "name", "email_address": "email_address", "teams": "teams"},
)

TEAM = ObjectSpec(
    vertical="ticketing",
    object_type="team",
    model=TicketingTeamModel,
    fields={"name": "name", "description": "description"},
)

ATTACHMENT = ObjectSpec(
    vertical="ticketing",
    object_type="attachment",
    model=TicketingAttachmentModel,
    fields={
        "file_name": "file_name",
        "file_url": "file_url",
        "uploader": "uploader",
        "ticket_id": "ticket_id",
    },
)

OBJECT_SPECS = [TICKET, USER, TEAM, ATTACHMENT]

LOOKUP_MODELS = {
    "ticketing.ticket": TicketingTicketModel,
    "ticketing.user": TicketingUserModel,
    "ticketing.team": TicketingTeamModel,
    "ticketing.attachment": TicketingAttachmentModel,
}
