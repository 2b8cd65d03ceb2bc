"""Sync pipeline: provider fetchers, ingestion, orchestration and scheduling."""
