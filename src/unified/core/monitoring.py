"""Prometheus metrics for sync cycles and ingestion.

Provides:
- sync_connection_cycles_total: one increment per connection cycle, by outcome
- sync_records_persisted_total / sync_records_rejected_total: ingestion counts
- sync_cycle_duration_seconds: wall time of a connection cycle
- track_cycle(): Context manager timing a cycle and recording its outcome
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

# ── Sync Metrics ─────────────────────────────────────────────────────────────

sync_connection_cycles_total = Counter(
    "sync_connection_cycles_total",
    "Connection fetch-unify-persist cycles",
    ["vertical", "object_type", "provider", "outcome"],
)

sync_records_persisted_total = Counter(
    "sync_records_persisted_total",
    "Unified records written by ingestion",
    ["vertical", "object_type", "provider"],
)

sync_records_rejected_total = Counter(
    "sync_records_rejected_total",
    "Unified records rejected by ingestion",
    ["vertical", "object_type", "provider"],
)

sync_cycle_duration_seconds = Histogram(
    "sync_cycle_duration_seconds",
    "Connection cycle duration in seconds",
    ["vertical", "object_type", "provider"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0),
)


@contextmanager
def track_cycle(vertical: str, object_type: str, provider: str) -> Iterator[dict[str, str]]:
    """Time a connection cycle.

    Yields a mutable dict; set ``outcome`` on it before the block exits.
    Defaults to "failed" when the block raises.
    """
    state = {"outcome": "failed"}
    start = time.monotonic()
    try:
        yield state
    finally:
        sync_cycle_duration_seconds.labels(
            vertical=vertical, object_type=object_type, provider=provider
        ).observe(time.monotonic() - start)
        sync_connection_cycles_total.labels(
            vertical=vertical,
            object_type=object_type,
            provider=provider,
            outcome=state["outcome"],
        ).inc()
