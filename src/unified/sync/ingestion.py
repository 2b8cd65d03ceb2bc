"""Ingestion -- idempotent upsert of unified batches.

persist() takes a batch of unified records fetched through one connection
together with their raw payloads and, per record keyed by (remote_id,
connection_id):

1. Rejects records with no remote_id (MissingOriginId) before any write.
2. Creates the row, or updates only the core fields carrying a value.
3. Reconciles sub-entity lists (emails, phones, addresses, tags). Lists the
   provider omitted are left alone. Items are matched by the provider's
   sub-entity id where the ObjectSpec declares one, else by position.
4. Writes custom values: one Entity anchor per record, one Value per
   (Attribute, Entity). Slugs with no Attribute for this linked account and
   provider are skipped.
5. Replaces the stored raw payload.

Each record commits on its own. A rejected record is reported in the
PersistResult and never aborts its siblings; StorageUnavailable is the one
failure that propagates.
"""

from __future__ import annotations

import uuid
from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import Uuid, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.unified.core.database import SessionFactory
from src.unified.core.errors import (
    MissingOriginId,
    PersistenceConflict,
    StorageUnavailable,
    UnifiedSyncError,
)
from src.unified.core.monitoring import sync_records_persisted_total, sync_records_rejected_total
from src.unified.models.eav import AttributeModel, EntityModel, RemoteDataModel, ValueModel
from src.unified.models.shared import Connection
from src.unified.sync.locks import KeyedLock
from src.unified.sync.schemas import PersistResult, RecordFailure
from src.unified.unification.schemas import UnifiedObject

logger = structlog.get_logger(__name__)


# ── Persistence descriptors ─────────────────────────────────────────────────


@dataclass(frozen=True)
class SubEntitySpec:
    """How one list attribute of a unified object maps to a child table.

    Args:
        attr: Attribute on the unified object holding the list.
        model: Child table model (SubEntityMixin).
        owner_column: FK column on the child pointing at the owning row.
        fields: Sub-item field name -> child column.
        match_on: "remote_id" to match items by provider sub-entity id; None for position.
    """

    attr: str
    model: type
    owner_column: str
    fields: Mapping[str, str]
    match_on: str | None = None


@dataclass(frozen=True)
class ObjectSpec:
    """How a unified object type maps to its table."""

    vertical: str
    object_type: str
    model: type
    fields: Mapping[str, str]
    sub_entities: tuple[SubEntitySpec, ...] = field(default_factory=tuple)

    @property
    def object_key(self) -> str:
        return f"{self.vertical}.{self.object_type}"


@dataclass(frozen=True)
class _ConnectionScope:
    connection_id: uuid.UUID
    linked_account_id: uuid.UUID
    provider: str


def _item_value(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _column_value(model: type, column: str, value: Any) -> Any:
    """Coerce string ids to uuid.UUID for Uuid columns."""
    if value is None:
        return None
    if isinstance(model.__table__.c[column].type, Uuid) and not isinstance(value, uuid.UUID):
        return uuid.UUID(str(value))
    return value


class IngestionService:
    """Persists unified batches using the session_factory pattern.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        specs: ObjectSpecs for every persistable object type.
        max_attempts: Upsert attempts per record when a PersistenceConflict occurs.
        lock: Shared KeyedLock; one is created when omitted.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        specs: Sequence[ObjectSpec],
        max_attempts: int = 3,
        lock: KeyedLock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._specs = {spec.object_key: spec for spec in specs}
        self._max_attempts = max_attempts
        self._lock = lock or KeyedLock()

    def supports(self, object_key: str) -> bool:
        return object_key in self._specs

    def spec_for(self, object_key: str) -> ObjectSpec:
        try:
            return self._specs[object_key]
        except KeyError:
            raise LookupError(f"No persistence spec for {object_key}") from None

    # ── Public API ──────────────────────────────────────────────────────────

    async def persist(
        self,
        unified_batch: UnifiedObject | Sequence[UnifiedObject],
        connection_id: str,
        raw_batch: Sequence[Any] | None = None,
        *,
        object_type: str,
    ) -> PersistResult:
        """Upsert a batch of unified records fetched through ``connection_id``.

        Args:
            unified_batch: Unified records (one or many) in fetch order.
            connection_id: Connection the batch was fetched through.
            raw_batch: Raw payloads aligned with ``unified_batch``; falls back
                to each record's ``remote_data``.
            object_type: Object key, e.g. "crm.contact".

        Returns:
            PersistResult with the local ids of stored records in input order
            and one RecordFailure per rejected record.

        Raises:
            StorageUnavailable: The database could not be reached.
        """
        spec = self.spec_for(object_type)
        batch = list(unified_batch) if isinstance(unified_batch, Sequence) else [unified_batch]
        scope = await self._connection_scope(connection_id)
        result = PersistResult()

        for index, record in enumerate(batch):
            raw = raw_batch[index] if raw_batch is not None and index < len(raw_batch) else None
            if raw is None:
                raw = record.remote_data
            try:
                local_id = await self._persist_record(spec, scope, record, raw, index)
            except StorageUnavailable:
                raise
            except (UnifiedSyncError, SQLAlchemyError, ValueError, TypeError) as exc:
                result.failures.append(
                    RecordFailure(
                        index=index,
                        remote_id=record.remote_id,
                        error_type=type(exc).__name__,
                        message=str(exc),
                    )
                )
                logger.warning(
                    "ingest.record_rejected",
                    object_type=spec.object_key,
                    connection_id=connection_id,
                    index=index,
                    remote_id=record.remote_id,
                    error=str(exc),
                )
                continue
            result.ids.append(local_id)

        labels = {
            "vertical": spec.vertical,
            "object_type": spec.object_type,
            "provider": scope.provider,
        }
        sync_records_persisted_total.labels(**labels).inc(len(result.ids))
        if result.failures:
            sync_records_rejected_total.labels(**labels).inc(len(result.failures))

        logger.info(
            "ingest.batch_persisted",
            object_type=spec.object_key,
            connection_id=connection_id,
            stored=len(result.ids),
            rejected=len(result.failures),
        )
        return result

    # ── Per-record upsert ───────────────────────────────────────────────────

    async def _persist_record(
        self,
        spec: ObjectSpec,
        scope: _ConnectionScope,
        record: UnifiedObject,
        raw: Any,
        index: int,
    ) -> str:
        if not record.remote_id:
            raise MissingOriginId(spec.object_key, index)

        key: Hashable = (spec.object_key, record.remote_id, scope.connection_id)
        async with self._lock.hold(key):
            retrying = AsyncRetrying(
                retry=retry_if_exception_type(PersistenceConflict),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=0.05, max=1),
                reraise=True,
            )
            return await retrying(self._upsert, spec, scope, record, raw)

    async def _upsert(
        self,
        spec: ObjectSpec,
        scope: _ConnectionScope,
        record: UnifiedObject,
        raw: Any,
    ) -> str:
        async for session in self._session_factory():
            try:
                row = await self._upsert_row(session, spec, scope, record)
                for sub_spec in spec.sub_entities:
                    items = getattr(record, sub_spec.attr, None)
                    if items is not None:
                        await self._merge_sub_entities(session, sub_spec, row.id, items)
                if record.field_mappings:
                    await self._write_custom_values(
                        session, spec, scope, row.id, record.field_mappings
                    )
                if raw is not None:
                    await self._upsert_remote_data(session, row.id, raw)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise PersistenceConflict(
                    spec.object_key, str(record.remote_id), str(scope.connection_id)
                ) from exc
            except OperationalError as exc:
                raise StorageUnavailable(str(exc)) from exc
            return str(row.id)
        raise StorageUnavailable("session factory yielded no session")

    async def _upsert_row(
        self,
        session: AsyncSession,
        spec: ObjectSpec,
        scope: _ConnectionScope,
        record: UnifiedObject,
    ) -> Any:
        model = spec.model
        values = {
            column: _column_value(model, column, getattr(record, attr, None))
            for attr, column in spec.fields.items()
            if getattr(record, attr, None) is not None
        }
        stmt = select(model).where(
            model.remote_id == str(record.remote_id),
            model.connection_id == scope.connection_id,
        )
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = model(
                remote_id=str(record.remote_id),
                connection_id=scope.connection_id,
                **values,
            )
            session.add(row)
            await session.flush()
            logger.debug("ingest.row_created", object_type=spec.object_key, id=str(row.id))
        else:
            for column, value in values.items():
                setattr(row, column, value)
        return row

    async def _merge_sub_entities(
        self,
        session: AsyncSession,
        sub_spec: SubEntitySpec,
        owner_id: uuid.UUID,
        items: Sequence[Any],
    ) -> None:
        model = sub_spec.model
        owner_col = getattr(model, sub_spec.owner_column)
        stmt = select(model).where(owner_col == owner_id).order_by(model.position)
        existing = list((await session.execute(stmt)).scalars().all())

        by_remote_id = {row.remote_id: row for row in existing if row.remote_id}
        by_position = {row.position: row for row in existing}
        matched: set[uuid.UUID] = set()

        for position, item in enumerate(items):
            if isinstance(item, BaseModel):
                item = item.model_dump()
            remote_id = _item_value(item, "remote_id")
            remote_id = str(remote_id) if remote_id not in (None, "") else None

            if sub_spec.match_on == "remote_id" and remote_id is not None:
                row = by_remote_id.get(remote_id)
            else:
                row = by_position.get(position)
                if row is not None and sub_spec.match_on == "remote_id" and row.remote_id:
                    # Keyed rows only match by id
                    row = None

            values = {
                column: _item_value(item, name)
                for name, column in sub_spec.fields.items()
                if _item_value(item, name) is not None
            }
            if row is None:
                row = model(position=position, remote_id=remote_id, **values)
                setattr(row, sub_spec.owner_column, owner_id)
                session.add(row)
            else:
                matched.add(row.id)
                row.position = position
                if remote_id is not None:
                    row.remote_id = remote_id
                for column, value in values.items():
                    setattr(row, column, value)

        if sub_spec.match_on == "remote_id":
            # The provider list is the whole set; rows it no longer names are detached
            for row in existing:
                if row.id not in matched:
                    await session.delete(row)
        await session.flush()

    async def _write_custom_values(
        self,
        session: AsyncSession,
        spec: ObjectSpec,
        scope: _ConnectionScope,
        owner_id: uuid.UUID,
        field_mappings: dict[str, Any],
    ) -> None:
        stmt = select(AttributeModel).where(
            AttributeModel.linked_account_id == scope.linked_account_id,
            AttributeModel.object_type == spec.object_key,
            AttributeModel.source == scope.provider,
            AttributeModel.slug.in_(list(field_mappings)),
        )
        attributes = {a.slug: a for a in (await session.execute(stmt)).scalars().all()}

        entity: EntityModel | None = None
        for slug, data in field_mappings.items():
            attribute = attributes.get(slug)
            if attribute is None:
                logger.debug(
                    "ingest.custom_field_unmapped",
                    object_type=spec.object_key,
                    slug=slug,
                )
                continue

            if entity is None:
                entity = await self._get_or_create_entity(session, owner_id)

            value_stmt = select(ValueModel).where(
                ValueModel.attribute_id == attribute.id,
                ValueModel.entity_id == entity.id,
            )
            value = (await session.execute(value_stmt)).scalar_one_or_none()
            if value is None:
                session.add(ValueModel(attribute_id=attribute.id, entity_id=entity.id, data=data))
            else:
                value.data = data
        await session.flush()

    @staticmethod
    async def _get_or_create_entity(session: AsyncSession, owner_id: uuid.UUID) -> EntityModel:
        stmt = select(EntityModel).where(EntityModel.resource_owner_id == owner_id)
        entity = (await session.execute(stmt)).scalar_one_or_none()
        if entity is None:
            entity = EntityModel(resource_owner_id=owner_id)
            session.add(entity)
            await session.flush()
        return entity

    @staticmethod
    async def _upsert_remote_data(session: AsyncSession, owner_id: uuid.UUID, raw: Any) -> None:
        stmt = select(RemoteDataModel).where(RemoteDataModel.resource_owner_id == owner_id)
        remote = (await session.execute(stmt)).scalar_one_or_none()
        if remote is None:
            session.add(RemoteDataModel(resource_owner_id=owner_id, format="json", data=raw))
        else:
            remote.data = raw

    # ── Helpers ─────────────────────────────────────────────────────────────

    async def _connection_scope(self, connection_id: str) -> _ConnectionScope:
        try:
            key = uuid.UUID(str(connection_id))
        except ValueError:
            raise ValueError(f"Invalid connection id {connection_id!r}") from None
        async for session in self._session_factory():
            try:
                connection = await session.get(Connection, key)
            except OperationalError as exc:
                raise StorageUnavailable(str(exc)) from exc
            if connection is None:
                raise LookupError(f"Unknown connection {connection_id}")
            return _ConnectionScope(
                connection_id=connection.id,
                linked_account_id=connection.linked_account_id,
                provider=connection.provider_slug,
            )
        raise StorageUnavailable("session factory yielded no session")
