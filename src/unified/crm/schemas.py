"""Unified CRM schemas -- contacts, their sub-entities, and CRM users.

A list field left as None means "not provided by the source" and is ignored
by partial updates; an empty list means the provider returned none.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from src.unified.unification.schemas import UnifiedInput, UnifiedObject


class CrmObject(str, Enum):
    """CRM object types with a registered mapper."""

    contact = "contact"
    user = "user"


class EmailType(str, Enum):
    PERSONAL = "PERSONAL"
    WORK = "WORK"


class PhoneType(str, Enum):
    WORK = "WORK"
    MOBILE = "MOBILE"
    HOME = "HOME"


# ── Sub-entities ────────────────────────────────────────────────────────────


class UnifiedEmail(BaseModel):
    email_address: str
    email_address_type: str | None = None


class UnifiedPhone(BaseModel):
    phone_number: str
    phone_type: str | None = None


class UnifiedAddress(BaseModel):
    street_1: str | None = None
    street_2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    address_type: str | None = None


# ── Contacts ────────────────────────────────────────────────────────────────


class UnifiedContactInput(UnifiedInput):
    """Contact authored locally and pushed to a provider."""

    first_name: str | None = None
    last_name: str | None = None
    email_addresses: list[UnifiedEmail] | None = None
    phone_numbers: list[UnifiedPhone] | None = None
    addresses: list[UnifiedAddress] | None = None
    user_id: str | None = None


class UnifiedContactOutput(UnifiedObject):
    """Contact as unified from a provider payload."""

    first_name: str | None = None
    last_name: str | None = None
    email_addresses: list[UnifiedEmail] | None = None
    phone_numbers: list[UnifiedPhone] | None = None
    addresses: list[UnifiedAddress] | None = None
    user_id: str | None = None


# ── Users ───────────────────────────────────────────────────────────────────


class UnifiedCrmUserInput(UnifiedInput):
    name: str | None = None
    email: str | None = None


class UnifiedCrmUserOutput(UnifiedObject):
    name: str | None = None
    email: str | None = None
