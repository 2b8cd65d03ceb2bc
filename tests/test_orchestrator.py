"""Tests for SyncOrchestrator: connection fan-out, failure isolation, cancellation."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from src.unified.core.errors import (
    ProviderAuthFailure,
    ProviderRateLimited,
    ProviderTransientFailure,
    RegistryLookupFailure,
    StorageUnavailable,
)
from src.unified.crm import objects as crm_objects
from src.unified.crm.mappers import HubSpotContactMapper, ZendeskContactMapper
from src.unified.field_mapping.schemas import AttributeCreate
from src.unified.field_mapping.service import FieldMappingService
from src.unified.models.crm import CrmContactModel
from src.unified.models.eav import ValueModel
from src.unified.sync.fetcher import FetchResult
from src.unified.sync.ingestion import IngestionService
from src.unified.sync.orchestrator import SyncOrchestrator
from src.unified.sync.repository import ConnectionRepository
from src.unified.sync.schemas import CycleOutcome
from src.unified.unification.dispatcher import CoreUnification
from src.unified.unification.lookup import SqlRemoteIdLookup
from src.unified.unification.registry import FetcherRegistry, MapperRegistry


# ── Helpers ────────────────────────────────────────────────────────────────


def _hubspot(remote_id: str, first: str = "Ada") -> dict:
    return {"id": remote_id, "properties": {"firstname": first, "lastname": "Lovelace"}}


def _fetcher(records=None, error=None) -> AsyncMock:
    fetcher = AsyncMock()
    if error is not None:
        fetcher.fetch.side_effect = error
    else:
        fetcher.fetch.return_value = FetchResult(data=records or [])
    return fetcher


def _orchestrator(session_factory, fetchers: dict, mappers=(HubSpotContactMapper,), **kwargs):
    field_mappings = FieldMappingService(session_factory)
    mapper_registry = MapperRegistry()
    dispatcher = CoreUnification(mapper_registry, field_mapping_service=field_mappings)
    lookup = SqlRemoteIdLookup(session_factory, crm_objects.LOOKUP_MODELS)
    for cls in mappers:
        mapper_registry.register_mapper(cls(dispatcher=dispatcher, lookup=lookup))

    fetcher_registry = FetcherRegistry()
    for provider, fetcher in fetchers.items():
        fetcher_registry.register("crm", "contact", provider, fetcher)

    return SyncOrchestrator(
        "crm",
        "contact",
        repository=ConnectionRepository(session_factory),
        fetchers=fetcher_registry,
        dispatcher=dispatcher,
        field_mappings=field_mappings,
        ingestion=IngestionService(session_factory, crm_objects.OBJECT_SPECS),
        **kwargs,
    )


async def _contact_count(session_factory) -> int:
    async for session in session_factory():
        return (await session.execute(select(func.count()).select_from(CrmContactModel))).scalar_one()
    return 0


def _by_provider(report) -> dict:
    return {r.provider: r for r in report.connections}


# ── Happy path ─────────────────────────────────────────────────────────────


class TestRun:
    async def test_fetch_unify_persist(self, session_factory, seed):
        account = await seed([("crm", "hubspot")])
        fetcher = _fetcher([_hubspot("1"), _hubspot("2", "Grace")])
        orchestrator = _orchestrator(session_factory, {"hubspot": fetcher})

        report = await orchestrator.run()

        (result,) = report.connections
        assert result.outcome == CycleOutcome.SUCCEEDED
        assert (result.fetched, result.persisted, result.rejected) == (2, 2, 0)
        assert await _contact_count(session_factory) == 2
        fetcher.fetch.assert_awaited_once_with(account.linked_account_id, [])
        connection = await ConnectionRepository(session_factory).get_connection(
            account.connections["crm.hubspot"]
        )
        assert connection.last_synced_at is not None

    async def test_rejected_records_do_not_fail_cycle(self, session_factory, seed):
        await seed([("crm", "hubspot")])
        fetcher = _fetcher([_hubspot("1"), {"properties": {"firstname": "No id"}}])
        orchestrator = _orchestrator(session_factory, {"hubspot": fetcher})

        report = await orchestrator.run()

        (result,) = report.connections
        assert result.outcome == CycleOutcome.SUCCEEDED
        assert (result.persisted, result.rejected) == (1, 1)

    async def test_custom_fields_requested_and_stored(self, session_factory, seed):
        """Mapped custom field ids narrow the fetch and land as Values."""
        account = await seed([("crm", "hubspot")])
        service = FieldMappingService(session_factory)
        attribute = await service.define_attribute(
            AttributeCreate(
                tenant_id=account.tenant_id,
                linked_account_id=account.linked_account_id,
                object_type="crm.contact",
                slug="favorite_color",
            )
        )
        await service.map_attribute(attribute.id, "hubspot", "properties.favorite_color")
        record = _hubspot("1")
        record["properties"]["favorite_color"] = "teal"
        fetcher = _fetcher([record])
        orchestrator = _orchestrator(session_factory, {"hubspot": fetcher})

        await orchestrator.run()

        fetcher.fetch.assert_awaited_once_with(
            account.linked_account_id, ["properties.favorite_color"]
        )
        async for session in session_factory():
            values = (await session.execute(select(ValueModel))).scalars().all()
            assert [v.data for v in values] == ["teal"]

    async def test_tenant_filter(self, session_factory, seed):
        first = await seed([("crm", "hubspot")])
        await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(session_factory, {"hubspot": _fetcher([_hubspot("1")])})

        report = await orchestrator.run(tenant_id=first.tenant_id)

        assert [r.tenant_id for r in report.connections] == [first.tenant_id]

    async def test_no_fetchers_is_an_empty_run(self, session_factory, seed):
        await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(session_factory, {})

        report = await orchestrator.run()

        assert report.connections == []
        assert report.finished_at is not None


# ── Eligibility ────────────────────────────────────────────────────────────


class TestEligibility:
    @pytest.mark.parametrize("status", ["needs_reauth", "inactive"])
    async def test_non_active_connection_skipped(self, session_factory, seed, status):
        await seed([("crm", "hubspot", status)])
        fetcher = _fetcher([_hubspot("1")])
        orchestrator = _orchestrator(session_factory, {"hubspot": fetcher})

        report = await orchestrator.run()

        assert report.connections[0].outcome == CycleOutcome.SKIPPED
        fetcher.fetch.assert_not_awaited()

    async def test_provider_without_fetcher_not_enumerated(self, session_factory, seed):
        await seed([("crm", "hubspot"), ("crm", "pipedrive")])
        orchestrator = _orchestrator(session_factory, {"hubspot": _fetcher([])})

        report = await orchestrator.run()

        assert [r.provider for r in report.connections] == ["hubspot"]

    async def test_other_vertical_not_enumerated(self, session_factory, seed):
        await seed([("crm", "hubspot"), ("ticketing", "hubspot")])
        orchestrator = _orchestrator(session_factory, {"hubspot": _fetcher([])})

        report = await orchestrator.run()

        assert len(report.connections) == 1


# ── Failure isolation ──────────────────────────────────────────────────────


class TestFailureIsolation:
    async def test_transient_failure_isolated_and_retry_pending(self, session_factory, seed):
        """One provider failing leaves its sibling's results intact."""
        account = await seed([("crm", "hubspot"), ("crm", "zendesk")])
        orchestrator = _orchestrator(
            session_factory,
            {
                "hubspot": _fetcher([_hubspot("1")]),
                "zendesk": _fetcher(error=ProviderTransientFailure("zendesk", "server error (502)", 502)),
            },
            mappers=(HubSpotContactMapper, ZendeskContactMapper),
        )

        report = await orchestrator.run()

        results = _by_provider(report)
        assert results["hubspot"].outcome == CycleOutcome.SUCCEEDED
        assert results["zendesk"].outcome == CycleOutcome.RETRY_PENDING
        assert "502" in results["zendesk"].error
        assert await _contact_count(session_factory) == 1

        repository = ConnectionRepository(session_factory)
        zendesk = await repository.get_connection(account.connections["crm.zendesk"])
        assert zendesk.status == "active"
        assert zendesk.last_synced_at is None

    async def test_rate_limited_is_retry_pending(self, session_factory, seed):
        await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(
            session_factory,
            {"hubspot": _fetcher(error=ProviderRateLimited("hubspot", "rate limited", retry_after=30))},
        )

        report = await orchestrator.run()

        assert report.connections[0].outcome == CycleOutcome.RETRY_PENDING

    async def test_auth_failure_marks_needs_reauth(self, session_factory, seed):
        account = await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(
            session_factory,
            {"hubspot": _fetcher(error=ProviderAuthFailure("hubspot", "credentials rejected", 401))},
        )

        report = await orchestrator.run()

        assert report.connections[0].outcome == CycleOutcome.NEEDS_REAUTH
        connection = await ConnectionRepository(session_factory).get_connection(
            account.connections["crm.hubspot"]
        )
        assert connection.status == "needs_reauth"

        # The next run skips it until it is re-authenticated
        second = await orchestrator.run()
        assert second.connections[0].outcome == CycleOutcome.SKIPPED

    async def test_storage_error_while_flagging_reauth_is_fatal(self, session_factory, seed, monkeypatch):
        """A database error raised while flagging a connection stops the run like any storage outage."""
        await seed([("crm", "hubspot"), ("crm", "zendesk")])
        zendesk = _fetcher([{"id": 7, "first_name": "Grace"}])
        orchestrator = _orchestrator(
            session_factory,
            {
                "hubspot": _fetcher(error=ProviderAuthFailure("hubspot", "credentials rejected", 401)),
                "zendesk": zendesk,
            },
            mappers=(HubSpotContactMapper, ZendeskContactMapper),
            max_concurrency=1,
        )
        monkeypatch.setattr(
            orchestrator._repository,
            "mark_needs_reauth",
            AsyncMock(side_effect=OperationalError("UPDATE connections", {}, Exception("db down"))),
        )

        with pytest.raises(StorageUnavailable):
            await orchestrator.run()

        zendesk.fetch.assert_not_awaited()

    async def test_unexpected_error_is_failed(self, session_factory, seed):
        await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(
            session_factory, {"hubspot": _fetcher(error=RuntimeError("boom"))}
        )

        report = await orchestrator.run()

        assert report.connections[0].outcome == CycleOutcome.FAILED
        assert report.connections[0].error == "boom"

    async def test_fetcher_without_mapper_is_fatal(self, session_factory, seed):
        """A registered fetcher with no matching mapper aborts the run."""
        await seed([("crm", "zendesk")])
        orchestrator = _orchestrator(
            session_factory, {"zendesk": _fetcher([{"id": 1}])}, mappers=()
        )

        with pytest.raises(RegistryLookupFailure):
            await orchestrator.run()


# ── Cancellation ───────────────────────────────────────────────────────────


class TestCancellation:
    async def test_stop_lets_in_flight_finish_and_skips_queued(self, session_factory, seed):
        await seed([("crm", "hubspot"), ("crm", "zendesk")])
        zendesk = _fetcher([{"id": 7, "first_name": "Grace"}])
        orchestrator = None

        async def _fetch_then_stop(linked_account_id, remote_field_ids=None):
            orchestrator.request_stop()
            assert orchestrator.stop_requested
            return FetchResult(data=[_hubspot("1")])

        hubspot = AsyncMock()
        hubspot.fetch.side_effect = _fetch_then_stop
        orchestrator = _orchestrator(
            session_factory,
            {"hubspot": hubspot, "zendesk": zendesk},
            mappers=(HubSpotContactMapper, ZendeskContactMapper),
            max_concurrency=1,
        )

        report = await orchestrator.run()

        assert report.cancelled is True
        assert [r.provider for r in report.connections] == ["hubspot"]
        assert report.connections[0].outcome == CycleOutcome.SUCCEEDED
        zendesk.fetch.assert_not_awaited()
        assert not orchestrator.stop_requested

    async def test_next_run_clears_stop(self, session_factory, seed):
        await seed([("crm", "hubspot")])
        orchestrator = _orchestrator(session_factory, {"hubspot": _fetcher([_hubspot("1")])})
        orchestrator.request_stop()

        report = await orchestrator.run()

        assert report.cancelled is False
        assert report.connections[0].outcome == CycleOutcome.SUCCEEDED

    async def test_overlapping_run_keeps_pending_stop(self, session_factory, seed):
        """A run started while another is stopping does not undo that stop."""
        first = await seed([("crm", "hubspot"), ("crm", "zendesk")])
        other = await seed([("crm", "hubspot")])
        zendesk = _fetcher([{"id": 7, "first_name": "Grace"}])
        orchestrator = None
        stopping = False
        overlapping = []

        async def _fetch(linked_account_id, remote_field_ids=None):
            nonlocal stopping
            if not stopping:
                stopping = True
                orchestrator.request_stop()
                assert orchestrator.stop_requested
                overlapping.append(await orchestrator.run(other.tenant_id))
            return FetchResult(data=[_hubspot(str(linked_account_id))])

        hubspot = AsyncMock()
        hubspot.fetch.side_effect = _fetch
        orchestrator = _orchestrator(
            session_factory,
            {"hubspot": hubspot, "zendesk": zendesk},
            mappers=(HubSpotContactMapper, ZendeskContactMapper),
            max_concurrency=1,
        )

        report = await orchestrator.run(first.tenant_id)

        assert report.cancelled is True
        zendesk.fetch.assert_not_awaited()
        (second,) = overlapping
        assert second.cancelled is False
        assert second.connections[0].outcome == CycleOutcome.SUCCEEDED
        assert not orchestrator.stop_requested


class TestNames:
    def test_job_name_and_object_key(self, session_factory):
        orchestrator = _orchestrator(session_factory, {})

        assert orchestrator.job_name == "sync_crm_contact"
        assert orchestrator.object_key == "crm.contact"
