"""HubSpot CRM mappers: contacts and owners (users).

HubSpot v3 objects carry their fields under ``properties``; custom field
mappings address keys inside that dict in both directions.
"""

from __future__ import annotations

from typing import Any

from src.unified.crm.schemas import (
    EmailType,
    PhoneType,
    UnifiedAddress,
    UnifiedContactInput,
    UnifiedContactOutput,
    UnifiedCrmUserInput,
    UnifiedCrmUserOutput,
    UnifiedEmail,
    UnifiedPhone,
)
from src.unified.unification.mapper import BaseProviderMapper, ProviderPayload
from src.unified.unification.schemas import FieldMappingDefinition

_ADDRESS_PROPERTIES = {
    "address": "street_1",
    "city": "city",
    "state": "state",
    "zip": "postal_code",
    "country": "country",
}


class HubSpotContactMapper(BaseProviderMapper):
    vertical = "crm"
    object_type = "contact"
    provider = "hubspot"

    async def desunify(
        self,
        source: UnifiedContactInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload:
        properties: dict[str, Any] = {}
        if source.first_name is not None:
            properties["firstname"] = source.first_name
        if source.last_name is not None:
            properties["lastname"] = source.last_name
        if source.email_addresses:
            properties["email"] = source.email_addresses[0].email_address
        for phone in source.phone_numbers or []:
            key = "mobilephone" if phone.phone_type == PhoneType.MOBILE.value else "phone"
            properties.setdefault(key, phone.phone_number)
        if source.addresses:
            address = source.addresses[0]
            for hubspot_key, unified_key in _ADDRESS_PROPERTIES.items():
                value = getattr(address, unified_key)
                if value is not None:
                    properties[hubspot_key] = value

        owner_id = await self._remote_id(source.user_id, "crm.user")
        if owner_id:
            properties["hubspot_owner_id"] = owner_id

        self._place_custom_values(properties, source, field_mappings)
        return {"properties": properties}

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedContactOutput:
        properties: dict[str, Any] = source.get("properties") or {}

        emails = []
        if properties.get("email"):
            emails.append(
                UnifiedEmail(
                    email_address=properties["email"],
                    email_address_type=EmailType.PERSONAL.value,
                )
            )

        phones = []
        if properties.get("phone"):
            phones.append(
                UnifiedPhone(phone_number=properties["phone"], phone_type=PhoneType.WORK.value)
            )
        if properties.get("mobilephone"):
            phones.append(
                UnifiedPhone(
                    phone_number=properties["mobilephone"], phone_type=PhoneType.MOBILE.value
                )
            )

        addresses = []
        address_fields = {
            unified_key: properties.get(hubspot_key)
            for hubspot_key, unified_key in _ADDRESS_PROPERTIES.items()
        }
        if any(address_fields.values()):
            addresses.append(UnifiedAddress(**address_fields, address_type="PERSONAL"))

        user_id = await self._local_id(
            properties.get("hubspot_owner_id"), connection_id, "crm.user"
        )

        return UnifiedContactOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            first_name=properties.get("firstname"),
            last_name=properties.get("lastname"),
            email_addresses=emails,
            phone_numbers=phones,
            addresses=addresses,
            user_id=user_id,
            field_mappings=self._custom_values(properties, field_mappings),
        )


class HubSpotUserMapper(BaseProviderMapper):
    """HubSpot owners -> CRM users. Owners are managed in HubSpot settings only."""

    vertical = "crm"
    object_type = "user"
    provider = "hubspot"

    async def desunify(
        self,
        source: UnifiedCrmUserInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload | None:
        return None

    async def _unify_one(
        self,
        source: ProviderPayload,
        connection_id: str,
        field_mappings: list[FieldMappingDefinition],
    ) -> UnifiedCrmUserOutput:
        name = " ".join(
            part for part in (source.get("firstName"), source.get("lastName")) if part
        )
        return UnifiedCrmUserOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            name=name or None,
            email=source.get("email"),
            field_mappings=self._custom_values(source, field_mappings),
        )
