"""Connection repository -- reads the tenancy hierarchy and tracks connection state.

Provides ConnectionRepository with the session_factory callable pattern.
The orchestrator walks tenants -> projects -> linked accounts -> connections
through it and reports each cycle's outcome back (last_synced_at on
success, needs_reauth on auth failure). Connections are never deleted here;
disable() flips their status so rows fetched through them survive.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update

from src.unified.core.database import SessionFactory
from src.unified.models.shared import Connection, ConnectionStatus, LinkedAccount, Project, Tenant
from src.unified.sync.schemas import ConnectionRead, LinkedAccountRead, ProjectRead, TenantRead

logger = structlog.get_logger(__name__)


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_connection(model: Connection) -> ConnectionRead:
    """Convert Connection to ConnectionRead schema."""
    return ConnectionRead(
        id=str(model.id),
        linked_account_id=str(model.linked_account_id),
        provider_slug=model.provider_slug,
        vertical=model.vertical,
        status=model.status,
        last_synced_at=model.last_synced_at,
    )


class ConnectionRepository:
    """Async access to tenants, projects, linked accounts and connections.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    # ── Hierarchy enumeration ───────────────────────────────────────────────

    async def list_tenants(self, tenant_id: str | None = None) -> list[TenantRead]:
        """Active tenants, narrowed to ``tenant_id`` when given."""
        async for session in self._session_factory():
            stmt = select(Tenant).where(Tenant.is_active.is_(True)).order_by(Tenant.created_at)
            if tenant_id is not None:
                stmt = stmt.where(Tenant.id == _as_uuid(tenant_id))
            rows = (await session.execute(stmt)).scalars().all()
            return [TenantRead(id=str(t.id), slug=t.slug, name=t.name) for t in rows]
        return []

    async def list_projects(self, tenant_id: str) -> list[ProjectRead]:
        async for session in self._session_factory():
            stmt = (
                select(Project)
                .where(Project.tenant_id == _as_uuid(tenant_id))
                .order_by(Project.created_at)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                ProjectRead(id=str(p.id), tenant_id=str(p.tenant_id), name=p.name) for p in rows
            ]
        return []

    async def list_linked_accounts(self, project_id: str) -> list[LinkedAccountRead]:
        async for session in self._session_factory():
            stmt = (
                select(LinkedAccount)
                .where(LinkedAccount.project_id == _as_uuid(project_id))
                .order_by(LinkedAccount.created_at)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                LinkedAccountRead(
                    id=str(a.id),
                    project_id=str(a.project_id),
                    origin_id=a.origin_id,
                    alias=a.alias,
                )
                for a in rows
            ]
        return []

    async def list_connections(self, linked_account_id: str, vertical: str) -> list[ConnectionRead]:
        """Every connection of a linked account for ``vertical``, whatever its status."""
        async for session in self._session_factory():
            stmt = (
                select(Connection)
                .where(
                    Connection.linked_account_id == _as_uuid(linked_account_id),
                    Connection.vertical == vertical,
                )
                .order_by(Connection.provider_slug)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_model_to_connection(c) for c in rows]
        return []

    async def get_connection(self, connection_id: str) -> ConnectionRead | None:
        async for session in self._session_factory():
            model = await session.get(Connection, _as_uuid(connection_id))
            return _model_to_connection(model) if model is not None else None
        return None

    # ── State transitions ───────────────────────────────────────────────────

    async def mark_synced(self, connection_id: str, at: datetime | None = None) -> None:
        """Record a successful cycle."""
        await self._update(
            connection_id, last_synced_at=at or datetime.now(timezone.utc)
        )

    async def mark_needs_reauth(self, connection_id: str) -> None:
        """Flag a connection whose credentials the provider rejected."""
        await self._update(connection_id, status=ConnectionStatus.NEEDS_REAUTH.value)
        logger.warning("connection.needs_reauth", connection_id=connection_id)

    async def disable(self, connection_id: str) -> bool:
        """Soft-disable a connection. Returns False if it does not exist.

        Unified rows fetched through the connection are kept.
        """
        updated = await self._update(connection_id, status=ConnectionStatus.INACTIVE.value)
        if updated:
            logger.info("connection.disabled", connection_id=connection_id)
        return updated

    async def _update(self, connection_id: str, **values: object) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                update(Connection)
                .where(Connection.id == _as_uuid(connection_id))
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0
        return False

    # ── Credentials ─────────────────────────────────────────────────────────

    async def get_access_token(
        self, linked_account_id: str, provider: str, vertical: str
    ) -> str | None:
        """Access token of the active connection, or None. Usable as a fetcher token provider."""
        async for session in self._session_factory():
            stmt = select(Connection.access_token).where(
                Connection.linked_account_id == _as_uuid(linked_account_id),
                Connection.provider_slug == provider,
                Connection.vertical == vertical,
                Connection.status == ConnectionStatus.ACTIVE.value,
            )
            return (await session.execute(stmt)).scalar_one_or_none()
        return None
