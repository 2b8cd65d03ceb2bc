"""Ticketing unified tables: users, teams, tickets, ticket tags, attachments.

Cross references (assignees, parent ticket, uploader) hold local ids resolved
at unify time; there are no FK constraints on them because the referenced row
may be synced later or by another object's schedule.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.unified.core.database import Base
from src.unified.models.mixins import RemoteObjectMixin, SubEntityMixin


class TicketingUserModel(RemoteObjectMixin, Base):
    __tablename__ = "ticketing_users"
    __table_args__ = (
        UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_users_remote_connection"),
    )

    name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    email_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    teams: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)


class TicketingTeamModel(RemoteObjectMixin, Base):
    __tablename__ = "ticketing_teams"
    __table_args__ = (
        UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_teams_remote_connection"),
    )

    name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class TicketingTicketModel(RemoteObjectMixin, Base):
    __tablename__ = "ticketing_tickets"
    __table_args__ = (
        UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_tickets_remote_connection"),
    )

    name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ticket_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    parent_ticket: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_to: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TicketingTicketTagModel(SubEntityMixin, Base):
    __tablename__ = "ticketing_ticket_tags"

    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("ticketing_tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)


class TicketingAttachmentModel(RemoteObjectMixin, Base):
    __tablename__ = "ticketing_attachments"
    __table_args__ = (
        UniqueConstraint(
            "remote_id", "connection_id", name="uq_ticketing_attachments_remote_connection"
        ),
    )

    file_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploader: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    ticket_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
