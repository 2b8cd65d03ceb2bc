"""Shared Pydantic schemas for unified objects and field mappings."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FieldMappingDefinition(BaseModel):
    """A configured custom field: local slug <-> provider field id."""

    model_config = ConfigDict(frozen=True)

    slug: str
    remote_id: str


class UnifiedObject(BaseModel):
    """Fields every unified output carries.

    ``field_mappings`` is the transient slug -> value form of custom fields;
    once persisted it becomes Attribute/Value rows.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    remote_id: str | None = None
    remote_data: dict[str, Any] | None = None
    field_mappings: dict[str, Any] | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


class UnifiedInput(BaseModel):
    """Base for locally authored objects pushed out through desunify."""

    model_config = ConfigDict(extra="ignore")

    field_mappings: dict[str, Any] | None = Field(default=None)
