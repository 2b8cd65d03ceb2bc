"""Tests for custom field translation and the FieldMappingService."""

from __future__ import annotations

import uuid

from src.unified.field_mapping.schemas import AttributeCreate
from src.unified.field_mapping.service import FieldMappingService
from src.unified.field_mapping.translate import (
    apply_custom_values,
    extract_custom_values,
    get_path,
    set_path,
)
from src.unified.unification.schemas import FieldMappingDefinition


class TestTranslate:
    def test_get_path_nested_and_missing(self):
        payload = {"properties": {"tier": "gold"}, "flat": 1}

        assert get_path(payload, "properties.tier") == "gold"
        assert get_path(payload, "flat") == 1
        assert extract_custom_values(
            payload, [FieldMappingDefinition(slug="x", remote_id="properties.nope")]
        ) == {}

    def test_exact_dotted_key_wins(self):
        """Provider ids that contain dots still resolve as plain keys."""
        payload = {"cf.tier": "silver", "cf": {"tier": "gold"}}

        assert get_path(payload, "cf.tier") == "silver"

    def test_explicit_none_is_extracted(self):
        """A field the provider returned as null is a value, unlike a missing field."""
        mappings = [FieldMappingDefinition(slug="tier", remote_id="tier")]

        assert extract_custom_values({"tier": None}, mappings) == {"tier": None}

    def test_set_path_creates_intermediate_dicts(self):
        target: dict = {"custom": "overwritten"}
        set_path(target, "custom.plan.tier", "gold")

        assert target == {"custom": {"plan": {"tier": "gold"}}}

    def test_apply_ignores_unmapped_slugs(self):
        mappings = [FieldMappingDefinition(slug="tier", remote_id="custom_fields.tier")]

        result = apply_custom_values({"tier": "gold", "other": 1}, mappings, {})

        assert result == {"custom_fields": {"tier": "gold"}}


class TestFieldMappingService:
    async def test_define_then_map(self, session_factory, seed):
        account = await seed([("crm", "hubspot")])
        service = FieldMappingService(session_factory)

        attribute = await service.define_attribute(
            AttributeCreate(
                tenant_id=account.tenant_id,
                linked_account_id=account.linked_account_id,
                object_type="crm.contact",
                slug="favorite_color",
            )
        )
        assert attribute.status == "defined"
        assert attribute.remote_id is None

        mapped = await service.map_attribute(attribute.id, "hubspot", "favorite_color")
        assert mapped.status == "mapped"
        assert mapped.source == "hubspot"

    async def test_only_mapped_attributes_returned(self, session_factory, seed):
        """Defined-but-unmapped slugs are not usable mappings yet."""
        account = await seed([("crm", "hubspot")])
        service = FieldMappingService(session_factory)
        for slug in ("tier", "region"):
            await service.define_attribute(
                AttributeCreate(
                    tenant_id=account.tenant_id,
                    linked_account_id=account.linked_account_id,
                    object_type="crm.contact",
                    slug=slug,
                )
            )
        attributes = await service.list_attributes(account.linked_account_id)
        tier = next(a for a in attributes if a.slug == "tier")
        await service.map_attribute(tier.id, "hubspot", "properties.tier")

        mappings = await service.get_field_mappings(
            "hubspot", account.linked_account_id, "crm.contact"
        )

        assert mappings == [FieldMappingDefinition(slug="tier", remote_id="properties.tier")]

    async def test_scoped_by_provider_and_object_type(self, session_factory, seed):
        account = await seed([("crm", "hubspot")])
        service = FieldMappingService(session_factory)
        attribute = await service.define_attribute(
            AttributeCreate(
                tenant_id=account.tenant_id,
                linked_account_id=account.linked_account_id,
                object_type="crm.contact",
                slug="tier",
            )
        )
        await service.map_attribute(attribute.id, "hubspot", "tier")

        assert await service.get_field_mappings(
            "zendesk", account.linked_account_id, "crm.contact"
        ) == []
        assert await service.get_field_mappings(
            "hubspot", account.linked_account_id, "crm.user"
        ) == []

    async def test_no_configuration_is_empty_not_error(self, session_factory):
        service = FieldMappingService(session_factory)

        assert await service.get_field_mappings("hubspot", str(uuid.uuid4()), "crm.contact") == []

    async def test_map_unknown_attribute_returns_none(self, session_factory):
        service = FieldMappingService(session_factory)

        assert await service.map_attribute(str(uuid.uuid4()), "hubspot", "tier") is None

    async def test_list_filters_by_object_type(self, session_factory, seed):
        account = await seed([("crm", "hubspot")])
        service = FieldMappingService(session_factory)
        for object_type in ("crm.contact", "crm.user"):
            await service.define_attribute(
                AttributeCreate(
                    tenant_id=account.tenant_id,
                    linked_account_id=account.linked_account_id,
                    object_type=object_type,
                    slug="tier",
                )
            )

        users = await service.list_attributes(account.linked_account_id, "crm.user")

        assert [a.object_type for a in users] == ["crm.user"]
