"""Pydantic schemas for the sync hierarchy, ingestion results and run reports."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ── Hierarchy ───────────────────────────────────────────────────────────────


class TenantRead(BaseModel):
    id: str
    slug: str
    name: str


class ProjectRead(BaseModel):
    id: str
    tenant_id: str
    name: str


class LinkedAccountRead(BaseModel):
    id: str
    project_id: str
    origin_id: str
    alias: str | None = None


class ConnectionRead(BaseModel):
    id: str
    linked_account_id: str
    provider_slug: str
    vertical: str
    status: str
    last_synced_at: datetime | None = None


# ── Ingestion ───────────────────────────────────────────────────────────────


class RecordFailure(BaseModel):
    """One record rejected by ingestion; its siblings were still persisted."""

    index: int
    remote_id: str | None = None
    error_type: str
    message: str


class PersistResult(BaseModel):
    """Outcome of persist(): stored local ids in input order plus rejected records."""

    ids: list[str] = Field(default_factory=list)
    failures: list[RecordFailure] = Field(default_factory=list)


# ── Orchestration ───────────────────────────────────────────────────────────


class CycleOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    NEEDS_REAUTH = "needs_reauth"
    RETRY_PENDING = "retry_pending"
    FAILED = "failed"


class ConnectionSyncResult(BaseModel):
    """Result of one connection's fetch-unify-persist cycle."""

    connection_id: str
    tenant_id: str
    linked_account_id: str
    provider: str
    outcome: CycleOutcome
    fetched: int = 0
    persisted: int = 0
    rejected: int = 0
    error: str | None = None


class SyncRunResult(BaseModel):
    """Report of one orchestrator run for a (vertical, object type)."""

    vertical: str
    object_type: str
    started_at: datetime
    finished_at: datetime | None = None
    cancelled: bool = False
    connections: list[ConnectionSyncResult] = Field(default_factory=list)

    def count(self, outcome: CycleOutcome) -> int:
        return sum(1 for result in self.connections if result.outcome == outcome)
