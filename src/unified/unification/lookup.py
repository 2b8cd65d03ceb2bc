"""SQL-backed RemoteIdLookup over the unified tables.

Maps ``(remote_id, connection_id, object_type)`` to the local row id and back.
``object_type`` is the dotted object key (``crm.user``, ``ticketing.ticket``);
the table is picked from the model map supplied at construction.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping

import structlog
from sqlalchemy import select

from src.unified.core.database import SessionFactory

logger = structlog.get_logger(__name__)


class SqlRemoteIdLookup:
    """RemoteIdLookup implementation using the session_factory pattern.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        models: Object key -> SQLAlchemy model carrying ``remote_id``/``connection_id``.
    """

    def __init__(self, session_factory: SessionFactory, models: Mapping[str, type]) -> None:
        self._session_factory = session_factory
        self._models = dict(models)

    def _model(self, object_type: str) -> type | None:
        model = self._models.get(object_type)
        if model is None:
            logger.warning("lookup.unknown_object_type", object_type=object_type)
        return model

    async def resolve_local_id(
        self, remote_id: str, connection_id: str, object_type: str
    ) -> str | None:
        """Return the local id for a provider id, or None if not synced yet."""
        model = self._model(object_type)
        if model is None:
            return None
        async for session in self._session_factory():
            stmt = select(model.id).where(
                model.remote_id == str(remote_id),
                model.connection_id == uuid.UUID(str(connection_id)),
            )
            local_id = (await session.execute(stmt)).scalar_one_or_none()
            return str(local_id) if local_id is not None else None
        return None

    async def resolve_remote_id(self, local_id: str, object_type: str) -> str | None:
        """Return the provider id of a local row, or None."""
        model = self._model(object_type)
        if model is None:
            return None
        try:
            key = uuid.UUID(str(local_id))
        except ValueError:
            return None
        async for session in self._session_factory():
            stmt = select(model.remote_id).where(model.id == key)
            return (await session.execute(stmt)).scalar_one_or_none()
        return None
