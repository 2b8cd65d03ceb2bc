"""Pydantic schemas for custom field definitions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.unified.unification.schemas import FieldMappingDefinition

__all__ = ["AttributeCreate", "AttributeRead", "FieldMappingDefinition"]


class AttributeCreate(BaseModel):
    """Schema for defining a custom field on a unified object type."""

    tenant_id: str
    linked_account_id: str
    object_type: str = Field(description="Dotted object key, e.g. 'crm.contact'")
    slug: str = Field(min_length=1, max_length=200)
    data_type: str = "string"
    description: str | None = None


class AttributeRead(BaseModel):
    """Schema for reading a custom field definition."""

    id: str
    tenant_id: str
    linked_account_id: str
    object_type: str
    slug: str
    data_type: str
    description: str | None = None
    source: str | None = None
    remote_id: str | None = None
    status: str
    created_at: datetime | None = None
