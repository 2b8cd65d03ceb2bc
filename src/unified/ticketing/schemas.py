"""Unified ticketing schemas -- tickets, tags, users, teams, attachments."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from src.unified.unification.schemas import UnifiedInput, UnifiedObject


class TicketingObject(str, Enum):
    """Ticketing object types with a registered mapper."""

    ticket = "ticket"
    tag = "tag"
    user = "user"
    team = "team"
    attachment = "attachment"


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ── Tags ────────────────────────────────────────────────────────────────────


class UnifiedTagInput(UnifiedInput):
    name: str


class UnifiedTagOutput(UnifiedObject):
    name: str | None = None


# ── Tickets ─────────────────────────────────────────────────────────────────


class UnifiedCommentInput(BaseModel):
    body: str
    creator_type: str | None = None  # "user" or "contact"
    user_id: str | None = None
    attachments: list[str] | None = None


class UnifiedTicketInput(UnifiedInput):
    name: str
    status: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    type: str | None = None
    priority: str | None = None
    parent_ticket: str | None = None
    assigned_to: list[str] | None = None
    tags: list[str] | None = None
    comment: UnifiedCommentInput | None = None


class UnifiedTicketOutput(UnifiedObject):
    name: str | None = None
    status: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    type: str | None = None
    priority: str | None = None
    parent_ticket: str | None = None
    assigned_to: list[str] | None = None
    tags: list[UnifiedTagOutput] | None = None
    completed_at: datetime | None = None


# ── Users / Teams ───────────────────────────────────────────────────────────


class UnifiedTicketingUserOutput(UnifiedObject):
    name: str | None = None
    email_address: str | None = None
    teams: list[str] | None = None


class UnifiedTeamInput(UnifiedInput):
    name: str
    description: str | None = None


class UnifiedTeamOutput(UnifiedObject):
    name: str | None = None
    description: str | None = None


# ── Attachments ─────────────────────────────────────────────────────────────


class UnifiedAttachmentInput(UnifiedInput):
    file_name: str
    file_url: str


class UnifiedAttachmentOutput(UnifiedObject):
    file_name: str | None = None
    file_url: str | None = None
    uploader: str | None = None
    ticket_id: str | None = None
