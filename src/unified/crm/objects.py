"""Persistence descriptors for CRM unified objects."""

from __future__ import annotations

from src.unified.models.crm import (
    CrmAddressModel,
    CrmContactModel,
    CrmEmailAddressModel,
    CrmPhoneNumberModel,
    CrmUserModel,
)
from src.unified.sync.ingestion import ObjectSpec, SubEntitySpec

CONTACT = ObjectSpec(
    vertical="crm",
    object_type="contact",
    model=CrmContactModel,
    fields={
        "first_name": "first_name",
        "last_name": "last_name",
        "user_id": "user_id",
    },
    sub_entities=(
        SubEntitySpec(
            attr="email_addresses",
            model=CrmEmailAddressModel,
            owner_column="contact_id",
            fields={
                "email_address": "email_address",
                "email_address_type": "email_address_type",
            },
        ),
        SubEntitySpec(
            attr="phone_numbers",
            model=CrmPhoneNumberModel,
            owner_column="contact_id",
            fields={"phone_number": "phone_number", "phone_type": "phone_type"},
        ),
        SubEntitySpec(
            attr="addresses",
            model=CrmAddressModel,
            owner_column="contact_id",
            fields={
                "street_1": "street_1",
                "street_2": "street_2",
                "city": "city",
                "state": "state",
                "postal_code": "postal_code",
                "country": "country",
                "address_type": "address_type",
            },
        ),
    ),
)

USER = ObjectSpec(
    vertical="crm",
    object_type="user",
    model=CrmUserModel,
    fields={"name": "name", "email": "email"},
)

OBJECT_SPECS = [CONTACT, USER]

# Object key -> table, for remote id lookups
LOOKUP_MODELS = {
    "crm.contact": CrmContactModel,
    "crm.user": CrmUserModel,
}
