"""Shared fixtures for sync engine tests.

Provides:
- A temporary-file SQLite database (aiosqlite) with every table created
- A session_factory bound to it
- seed(): builds a tenant -> project -> linked account -> connections hierarchy
- FakeLookup: in-memory RemoteIdLookup for mapper tests
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.unified.core.database import SessionFactory, init_db, make_session_factory
from src.unified.models.shared import Connection, LinkedAccount, Project, Tenant


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database per test."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}")
    await init_db(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine) -> SessionFactory:
    return make_session_factory(engine)


# ── Hierarchy seeding ──────────────────────────────────────────────────────


@dataclass
class SeededAccount:
    tenant_id: str
    project_id: str
    linked_account_id: str
    connections: dict[str, str] = field(default_factory=dict)  # "vertical.provider" -> id


@pytest.fixture
def seed(session_factory):
    """Return a coroutine that creates a tenant with one linked account and its connections.

    ``connections`` items are (vertical, provider) or (vertical, provider, status).
    """

    async def _seed(
        connections: list[tuple[str, ...]],
        tenant_slug: str | None = None,
        access_token: str | None = "token-abc",
    ) -> SeededAccount:
        slug = tenant_slug or f"tenant-{uuid.uuid4().hex[:8]}"
        async for session in session_factory():
            tenant = Tenant(slug=slug, name=slug.title())
            session.add(tenant)
            await session.flush()
            project = Project(tenant_id=tenant.id, name="Default")
            session.add(project)
            await session.flush()
            account = LinkedAccount(project_id=project.id, origin_id=f"origin-{slug}")
            session.add(account)
            await session.flush()

            seeded = SeededAccount(
                tenant_id=str(tenant.id),
                project_id=str(project.id),
                linked_account_id=str(account.id),
            )
            for item in connections:
                vertical, provider = item[0], item[1]
                status = item[2] if len(item) > 2 else "active"
                connection = Connection(
                    linked_account_id=account.id,
                    provider_slug=provider,
                    vertical=vertical,
                    status=status,
                    access_token=access_token,
                )
                session.add(connection)
                await session.flush()
                seeded.connections[f"{vertical}.{provider}"] = str(connection.id)
            await session.commit()
            return seeded
        raise RuntimeError("no session")

    return _seed


# ── Remote id lookup ───────────────────────────────────────────────────────


class FakeLookup:
    """In-memory RemoteIdLookup keyed by (remote_id, connection_id, object_type)."""

    def __init__(self) -> None:
        self.local: dict[tuple[str, str, str], str] = {}
        self.remote: dict[tuple[str, str], str] = {}

    def add(self, object_type: str, remote_id: str, local_id: str, connection_id: str = "conn-1") -> None:
        self.local[(remote_id, connection_id, object_type)] = local_id
        self.remote[(local_id, object_type)] = remote_id

    async def resolve_local_id(self, remote_id: str, connection_id: str, object_type: str) -> str | None:
        return self.local.get((remote_id, connection_id, object_type))

    async def resolve_remote_id(self, local_id: str, object_type: str) -> str | None:
        return self.remote.get((local_id, object_type))


@pytest.fixture
def lookup() -> FakeLookup:
    return FakeLookup()
