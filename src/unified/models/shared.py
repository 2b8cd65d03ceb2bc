"""Tenancy hierarchy models: tenant -> project -> linked account -> connection.

The orchestrator walks this hierarchy on every scheduled run. A Connection
is the authorized link between one linked account and one provider for one
vertical; every unified row references the connection it was fetched through.
Connections are soft-disabled (status), never deleted, so their rows survive.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.unified.core.database import Base


class ConnectionStatus(str, Enum):
    """Lifecycle of a provider connection."""

    ACTIVE = "active"
    NEEDS_REAUTH = "needs_reauth"
    INACTIVE = "inactive"


class Tenant(Base):
    """Top-level customer of the platform."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class Project(Base):
    """A tenant's project; owns linked accounts."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class LinkedAccount(Base):
    """End-customer identity under a project. Connections hang off it."""

    __tablename__ = "linked_accounts"
    __table_args__ = (
        UniqueConstraint("project_id", "origin_id", name="uq_linked_accounts_project_origin"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    origin_id: Mapped[str] = mapped_column(String(200), nullable=False)
    alias: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class Connection(Base):
    """Authorized link between a linked account and one provider for one vertical.

    ``access_token`` is written by the external auth flow and only read here.
    """

    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint(
            "linked_account_id",
            "provider_slug",
            "vertical",
            name="uq_connections_account_provider_vertical",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    linked_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    vertical: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ConnectionStatus.ACTIVE.value)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
