"""Sync context propagation via Python contextvars.

The SyncContext is set by the orchestrator at the start of each connection
cycle and is readable anywhere in the call stack via get_current_sync_context().
The structlog processor add_sync_context() merges it into every log event,
so mapper, fetcher and ingestion logs carry the tenant and connection they
belong to without threading ids through every call.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any

# ── Sync Context ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SyncContext:
    """Immutable context for one connection's fetch-unify-persist cycle."""

    tenant_id: str
    project_id: str
    linked_account_id: str
    connection_id: str
    provider: str
    vertical: str
    object_type: str


_sync_context: contextvars.ContextVar[SyncContext] = contextvars.ContextVar("sync_context")


def get_current_sync_context() -> SyncContext | None:
    """Get the sync context for the current task, or None outside a cycle."""
    return _sync_context.get(None)


def set_sync_context(ctx: SyncContext) -> contextvars.Token[SyncContext]:
    """Set the sync context for the current task. Returns a token for reset."""
    return _sync_context.set(ctx)


@contextmanager
def sync_context(ctx: SyncContext) -> Iterator[SyncContext]:
    """Bind ``ctx`` for the duration of the block."""
    token = set_sync_context(ctx)
    try:
        yield ctx
    finally:
        _sync_context.reset(token)


# ── structlog processor ─────────────────────────────────────────────────────


def add_sync_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Merge the current SyncContext into a structlog event dict.

    Explicit keyword arguments on the log call win over context values.
    """
    ctx = get_current_sync_context()
    if ctx is not None:
        for key, value in asdict(ctx).items():
            event_dict.setdefault(key, value)
    return event_dict
