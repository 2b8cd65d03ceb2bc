"""FieldMappingService -- define custom fields and resolve their provider mappings.

A custom field starts as a defined attribute (slug on an object type for a
linked account) and becomes usable once mapped to a provider field id.
get_field_mappings() is a pure read used by mappers at unify/desunify time;
no configured mappings is not an error, it returns an empty list.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select

from src.unified.core.database import SessionFactory
from src.unified.field_mapping.schemas import AttributeCreate, AttributeRead
from src.unified.models.eav import AttributeModel, AttributeStatus
from src.unified.unification.schemas import FieldMappingDefinition

logger = structlog.get_logger(__name__)


def _model_to_attribute(model: AttributeModel) -> AttributeRead:
    """Convert AttributeModel to AttributeRead schema."""
    return AttributeRead(
        id=str(model.id),
        tenant_id=str(model.tenant_id),
        linked_account_id=str(model.linked_account_id),
        object_type=model.object_type,
        slug=model.slug,
        data_type=model.data_type,
        description=model.description,
        source=model.source,
        remote_id=model.remote_id,
        status=model.status,
        created_at=model.created_at,
    )


class FieldMappingService:
    """Async access to custom field definitions and mappings.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_field_mappings(
        self,
        provider: str,
        linked_account_id: str,
        object_type: str,
    ) -> list[FieldMappingDefinition]:
        """Mapped custom fields for (provider, linked account, object type), oldest first.

        Args:
            provider: Provider slug the mapping applies to.
            linked_account_id: Linked account UUID string.
            object_type: Dotted object key, e.g. "crm.contact".

        Returns:
            Ordered list of slug/remote_id pairs; empty if none are configured.
        """
        async for session in self._session_factory():
            stmt = (
                select(AttributeModel.slug, AttributeModel.remote_id)
                .where(
                    AttributeModel.source == provider,
                    AttributeModel.linked_account_id == uuid.UUID(str(linked_account_id)),
                    AttributeModel.object_type == object_type,
                    AttributeModel.status == AttributeStatus.MAPPED.value,
                    AttributeModel.remote_id.is_not(None),
                )
                .order_by(AttributeModel.created_at, AttributeModel.slug)
            )
            rows = (await session.execute(stmt)).all()
            return [FieldMappingDefinition(slug=row.slug, remote_id=row.remote_id) for row in rows]
        return []

    async def define_attribute(self, data: AttributeCreate) -> AttributeRead:
        """Define a custom field slug on an object type (not yet mapped to a provider)."""
        async for session in self._session_factory():
            model = AttributeModel(
                tenant_id=uuid.UUID(data.tenant_id),
                linked_account_id=uuid.UUID(data.linked_account_id),
                object_type=data.object_type,
                slug=data.slug,
                data_type=data.data_type,
                description=data.description,
                status=AttributeStatus.DEFINED.value,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "field_mapping.attribute_defined",
                attribute_id=str(model.id),
                object_type=data.object_type,
                slug=data.slug,
            )
            return _model_to_attribute(model)
        raise RuntimeError("session_factory yielded no session")

    async def map_attribute(
        self, attribute_id: str, source: str, remote_id: str
    ) -> AttributeRead | None:
        """Bind a defined attribute to a provider field id.

        Returns:
            The updated attribute, or None if the attribute does not exist.
        """
        async for session in self._session_factory():
            model = await session.get(AttributeModel, uuid.UUID(attribute_id))
            if model is None:
                return None
            model.source = source
            model.remote_id = remote_id
            model.status = AttributeStatus.MAPPED.value
            await session.commit()
            await session.refresh(model)
            logger.info(
                "field_mapping.attribute_mapped",
                attribute_id=attribute_id,
                source=source,
                remote_id=remote_id,
            )
            return _model_to_attribute(model)
        return None

    async def list_attributes(
        self, linked_account_id: str, object_type: str | None = None
    ) -> list[AttributeRead]:
        """All attributes for a linked account, optionally narrowed to one object type."""
        async for session in self._session_factory():
            stmt = select(AttributeModel).where(
                AttributeModel.linked_account_id == uuid.UUID(linked_account_id)
            )
            if object_type is not None:
                stmt = stmt.where(AttributeModel.object_type == object_type)
            stmt = stmt.order_by(AttributeModel.created_at, AttributeModel.slug)
            result = await session.execute(stmt)
            return [_model_to_attribute(m) for m in result.scalars().all()]
        return []
