"""Custom field storage: attributes, entities, values, and raw payloads.

- AttributeModel: tenant-defined custom field (slug) scoped to a linked account
  and object type; once mapped it also carries the provider field id
  (``remote_id``) and the provider it applies to (``source``).
- EntityModel: anchor row for one unified record that owns custom values.
- ValueModel: one value per (attribute, entity).
- RemoteDataModel: verbatim provider payload, 1:1 with its unified record,
  replaced on every fetch.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
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


class AttributeStatus(str, Enum):
    DEFINED = "defined"
    MAPPED = "mapped"


class AttributeModel(Base):
    """Custom field definition and its provider mapping."""

    __tablename__ = "attributes"
    __table_args__ = (
        UniqueConstraint(
            "linked_account_id",
            "object_type",
            "slug",
            "source",
            name="uq_attributes_account_object_slug_source",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    linked_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    object_type: Mapped[str] = mapped_column(String(100), nullable=False)  # e.g. "crm.contact"
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    data_type: Mapped[str] = mapped_column(String(50), default="string")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remote_id: Mapped[str | None] = mapped_column(String(300), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=AttributeStatus.DEFINED.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class EntityModel(Base):
    """Anchor linking custom values to the unified record that owns them."""

    __tablename__ = "entities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resource_owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class ValueModel(Base):
    """One custom value for one (attribute, entity) pair."""

    __tablename__ = "values"
    __table_args__ = (
        UniqueConstraint("attribute_id", "entity_id", name="uq_values_attribute_entity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    attribute_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class RemoteDataModel(Base):
    """Latest verbatim provider payload for a unified record."""

    __tablename__ = "remote_data"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resource_owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    format: Mapped[str] = mapped_column(String(20), default="json")
    data: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
