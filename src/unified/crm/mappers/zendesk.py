"""Zendesk Sell CRM contact mapper.

Custom field mappings address keys inside the contact's ``custom_fields``.
"""

from __future__ import annotations

from typing import Any

from src.unified.crm.schemas import (
    EmailType,
    PhoneType,
    UnifiedAddress,
    UnifiedContactInput,
    UnifiedContactOutput,
    UnifiedEmail,
    UnifiedPhone,
)
from src.unified.unification.mapper import BaseProviderMapper, ProviderPayload
from src.unified.unification.schemas import FieldMappingDefinition


class ZendeskContactMapper(BaseProviderMapper):
    vertical = "crm"
    object_type = "contact"
    provider = "zendesk"

    async def desunify(
        self,
        source: UnifiedContactInput,
        field_mappings: list[FieldMappingDefinition] | None = None,
    ) -> ProviderPayload:
        result: dict[str, Any] = {
            "first_name": source.first_name,
            "last_name": source.last_name,
        }
        if source.email_addresses:
            result["email"] = source.email_addresses[0].email_address
        for phone in source.phone_numbers or []:
            key = "mobile" if phone.phone_type == PhoneType.MOBILE.value else "phone"
            result.setdefault(key, phone.phone_number)
        if source.addresses:
            address = source.addresses[0]
            result["address"] = {
                "line1": address.street_1,
                "city": address.city,
                "state": address.state,
                "postal_code": address.postal_code,
                "country": address.country,
            }

        owner_id = await self._remote_id(source.user_id, "crm.user")
        if owner_id:
            result["owner_id"] = int(owner_id) if owner_id.isdigit() else owner_id

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
    ) -> UnifiedContactOutput:
        emails = []
        if source.get("email"):
            emails.append(
                UnifiedEmail(
                    email_address=source["email"], email_address_type=EmailType.PERSONAL.value
                )
            )

        phones = []
        if source.get("phone"):
            phones.append(
                UnifiedPhone(phone_number=source["phone"], phone_type=PhoneType.WORK.value)
            )
        if source.get("mobile"):
            phones.append(
                UnifiedPhone(phone_number=source["mobile"], phone_type=PhoneType.MOBILE.value)
            )

        addresses = []
        address = source.get("address") or {}
        if any(address.values()):
            addresses.append(
                UnifiedAddress(
                    street_1=address.get("line1"),
                    city=address.get("city"),
                    state=address.get("state"),
                    postal_code=address.get("postal_code"),
                    country=address.get("country"),
                    address_type="PERSONAL",
                )
            )

        user_id = await self._local_id(source.get("owner_id"), connection_id, "crm.user")

        return UnifiedContactOutput(
            remote_id=str(source["id"]) if source.get("id") is not None else None,
            remote_data=source,
            first_name=source.get("first_name"),
            last_name=source.get("last_name"),
            email_addresses=emails,
            phone_numbers=phones,
            addresses=addresses,
            user_id=user_id,
            field_mappings=self._custom_values(source.get("custom_fields"), field_mappings),
        )
