"""Tests for the HubSpot and Zendesk Sell CRM mappers."""

from __future__ import annotations

from src.unified.crm.mappers import HubSpotContactMapper, HubSpotUserMapper, ZendeskContactMapper
from src.unified.crm.schemas import (
    UnifiedAddress,
    UnifiedContactInput,
    UnifiedContactOutput,
    UnifiedCrmUserInput,
    UnifiedEmail,
    UnifiedPhone,
)
from src.unified.unification.schemas import FieldMappingDefinition


# ── Helpers ────────────────────────────────────────────────────────────────


def _hubspot_contact(**properties) -> dict:
    defaults = {
        "firstname": "Ada",
        "lastname": "Lovelace",
        "email": "ada@example.com",
        "phone": "+44 20 1234",
        "mobilephone": "+44 77 5678",
        "city": "London",
        "country": "UK",
        "hubspot_owner_id": "501",
    }
    defaults.update(properties)
    return {"id": "42", "properties": defaults}


def _zendesk_contact(**fields) -> dict:
    defaults = {
        "id": 7,
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "phone": "555-0100",
        "mobile": "555-0199",
        "owner_id": 88,
        "address": {"line1": "1 Navy Way", "city": "Arlington", "country": "US"},
        "custom_fields": {"tier": "gold"},
    }
    defaults.update(fields)
    return defaults


# ── HubSpot contacts ───────────────────────────────────────────────────────


class TestHubSpotContactUnify:
    async def test_core_fields_and_sub_entities(self, lookup):
        lookup.add("crm.user", "501", "user-local-1")
        mapper = HubSpotContactMapper(lookup=lookup)

        contact = await mapper.unify(_hubspot_contact(), "conn-1")

        assert isinstance(contact, UnifiedContactOutput)
        assert contact.remote_id == "42"
        assert (contact.first_name, contact.last_name) == ("Ada", "Lovelace")
        assert [e.email_address for e in contact.email_addresses] == ["ada@example.com"]
        assert [(p.phone_number, p.phone_type) for p in contact.phone_numbers] == [
            ("+44 20 1234", "WORK"),
            ("+44 77 5678", "MOBILE"),
        ]
        assert contact.addresses[0].city == "London"
        assert contact.addresses[0].country == "UK"
        assert contact.user_id == "user-local-1"
        assert contact.remote_data["properties"]["firstname"] == "Ada"

    async def test_unknown_owner_is_dropped_not_an_error(self, lookup):
        """An owner that has not been synced yet leaves user_id empty."""
        mapper = HubSpotContactMapper(lookup=lookup)

        contact = await mapper.unify(_hubspot_contact(hubspot_owner_id="999"), "conn-1")

        assert contact.user_id is None

    async def test_no_address_properties_means_no_address(self, lookup):
        mapper = HubSpotContactMapper(lookup=lookup)

        contact = await mapper.unify(_hubspot_contact(city=None, country=None), "conn-1")

        assert contact.addresses == []

    async def test_custom_fields_read_from_properties(self, lookup):
        mapper = HubSpotContactMapper(lookup=lookup)
        mappings = [
            FieldMappingDefinition(slug="favorite_color", remote_id="favorite_color"),
            FieldMappingDefinition(slug="not_fetched", remote_id="missing_prop"),
        ]

        contact = await mapper.unify(
            _hubspot_contact(favorite_color="teal"), "conn-1", mappings
        )

        assert contact.field_mappings == {"favorite_color": "teal"}

    async def test_batch_keeps_order_and_survives_missing_owner(self, lookup):
        """One record without an owner mapping does not fail the batch."""
        lookup.add("crm.user", "501", "user-local-1")
        mapper = HubSpotContactMapper(lookup=lookup)
        batch = [
            {**_hubspot_contact(), "id": "1"},
            {**_hubspot_contact(hubspot_owner_id="404"), "id": "2"},
            {**_hubspot_contact(), "id": "3"},
        ]

        contacts = await mapper.unify(batch, "conn-1")

        assert [c.remote_id for c in contacts] == ["1", "2", "3"]
        assert [c.user_id for c in contacts] == ["user-local-1", None, "user-local-1"]


class TestHubSpotContactDesunify:
    async def test_builds_properties_payload(self, lookup):
        lookup.add("crm.user", "501", "user-local-1")
        mapper = HubSpotContactMapper(lookup=lookup)
        contact = UnifiedContactInput(
            first_name="Ada",
            last_name="Lovelace",
            email_addresses=[UnifiedEmail(email_address="ada@example.com")],
            phone_numbers=[
                UnifiedPhone(phone_number="111", phone_type="WORK"),
                UnifiedPhone(phone_number="222", phone_type="MOBILE"),
            ],
            addresses=[UnifiedAddress(street_1="12 St James's Sq", city="London")],
            user_id="user-local-1",
            field_mappings={"favorite_color": "teal", "unmapped": "x"},
        )
        mappings = [FieldMappingDefinition(slug="favorite_color", remote_id="favorite_color")]

        payload = await mapper.desunify(contact, mappings)

        assert payload == {
            "properties": {
                "firstname": "Ada",
                "lastname": "Lovelace",
                "email": "ada@example.com",
                "phone": "111",
                "mobilephone": "222",
                "address": "12 St James's Sq",
                "city": "London",
                "hubspot_owner_id": "501",
                "favorite_color": "teal",
            }
        }

    async def test_round_trip_preserves_core_fields(self, lookup):
        """unify(desunify(x)) keeps the core fields present in x."""
        lookup.add("crm.user", "501", "user-local-1")
        mapper = HubSpotContactMapper(lookup=lookup)
        original = UnifiedContactInput(
            first_name="Ada",
            last_name="Lovelace",
            email_addresses=[
                UnifiedEmail(email_address="ada@example.com", email_address_type="PERSONAL")
            ],
            phone_numbers=[UnifiedPhone(phone_number="111", phone_type="WORK")],
            user_id="user-local-1",
        )

        payload = await mapper.desunify(original)
        unified = await mapper.unify({"id": "42", **payload}, "conn-1")

        assert unified.first_name == original.first_name
        assert unified.last_name == original.last_name
        assert unified.email_addresses == original.email_addresses
        assert unified.phone_numbers == original.phone_numbers
        assert unified.user_id == original.user_id


class TestHubSpotUserMapper:
    async def test_unify_owner(self):
        mapper = HubSpotUserMapper()

        user = await mapper.unify(
            {"id": 501, "firstName": "Charles", "lastName": "Babbage", "email": "cb@example.com"},
            "conn-1",
        )

        assert user.remote_id == "501"
        assert user.name == "Charles Babbage"
        assert user.email == "cb@example.com"

    async def test_desunify_unsupported(self):
        assert await HubSpotUserMapper().desunify(UnifiedCrmUserInput(name="x")) is None


# ── Zendesk Sell contacts ──────────────────────────────────────────────────


class TestZendeskContactMapper:
    async def test_unify_flat_payload(self, lookup):
        lookup.add("crm.user", "88", "user-local-9")
        mapper = ZendeskContactMapper(lookup=lookup)
        mappings = [FieldMappingDefinition(slug="tier", remote_id="tier")]

        contact = await mapper.unify(_zendesk_contact(), "conn-1", mappings)

        assert contact.remote_id == "7"
        assert contact.first_name == "Grace"
        assert [p.phone_type for p in contact.phone_numbers] == ["WORK", "MOBILE"]
        assert contact.addresses[0].street_1 == "1 Navy Way"
        assert contact.user_id == "user-local-9"
        assert contact.field_mappings == {"tier": "gold"}

    async def test_empty_address_is_skipped(self, lookup):
        mapper = ZendeskContactMapper(lookup=lookup)

        contact = await mapper.unify(
            _zendesk_contact(address={"line1": None, "city": None}), "conn-1"
        )

        assert contact.addresses == []

    async def test_desunify_numeric_owner_and_custom_fields(self, lookup):
        lookup.add("crm.user", "88", "user-local-9")
        mapper = ZendeskContactMapper(lookup=lookup)
        contact = UnifiedContactInput(
            first_name="Grace",
            last_name="Hopper",
            user_id="user-local-9",
            field_mappings={"tier": "platinum"},
        )

        payload = await mapper.desunify(
            contact, [FieldMappingDefinition(slug="tier", remote_id="tier")]
        )

        assert payload["owner_id"] == 88
        assert payload["custom_fields"] == {"tier": "platinum"}
        assert payload["first_name"] == "Grace"
