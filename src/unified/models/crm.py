"""CRM unified tables: users, contacts and contact sub-entities."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.unified.core.database import Base
from src.unified.models.mixins import RemoteObjectMixin, SubEntityMixin


class CrmUserModel(RemoteObjectMixin, Base):
    """CRM user (record owner) as seen in the provider."""

    __tablename__ = "crm_users"
    __table_args__ = (
        UniqueConstraint("remote_id", "connection_id", name="uq_crm_users_remote_connection"),
    )

    name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    email: Mapped[str | None] = mapped_column(String(300), nullable=True)


class CrmContactModel(RemoteObjectMixin, Base):
    """CRM contact."""

    __tablename__ = "crm_contacts"
    __table_args__ = (
        UniqueConstraint("remote_id", "connection_id", name="uq_crm_contacts_remote_connection"),
    )

    first_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("crm_users.id", ondelete="SET NULL"), nullable=True
    )


class CrmEmailAddressModel(SubEntityMixin, Base):
    __tablename__ = "crm_email_addresses"

    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm_contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    email_address_type: Mapped[str | None] = mapped_column(String(50), nullable=True)


class CrmPhoneNumberModel(SubEntityMixin, Base):
    __tablename__ = "crm_phone_numbers"

    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm_contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phone_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_type: Mapped[str | None] = mapped_column(String(50), nullable=True)


class CrmAddressModel(SubEntityMixin, Base):
    __tablename__ = "crm_addresses"

    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crm_contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    street_1: Mapped[str | None] = mapped_column(String(300), nullable=True)
    street_2: Mapped[str | None] = mapped_column(String(300), nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state: Mapped[str | None] = mapped_column(String(200), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
