"""Tests for the HTTP provider fetchers, using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from src.unified.core.errors import (
    ProviderAuthFailure,
    ProviderFetchFailure,
    ProviderRateLimited,
    ProviderTransientFailure,
)
from src.unified.crm.fetchers import (
    HubSpotContactFetcher,
    HubSpotUserFetcher,
    ZendeskSellContactFetcher,
)
from src.unified.sync.fetcher import classify_response
from src.unified.ticketing.fetchers import FrontTicketFetcher


# ── Helpers ────────────────────────────────────────────────────────────────


async def _token(linked_account_id: str, provider: str, vertical: str) -> str | None:
    return "token-abc"


async def _no_token(linked_account_id: str, provider: str, vertical: str) -> str | None:
    return None


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _fetcher(cls, handler, base_url: str = "https://api.example.com", **kwargs):
    return cls(_token, base_url, client=_client(handler), wait_multiplier=0, **kwargs)


# ── Status classification ──────────────────────────────────────────────────


class TestClassifyResponse:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, ProviderAuthFailure),
            (403, ProviderAuthFailure),
            (429, ProviderRateLimited),
            (500, ProviderTransientFailure),
            (503, ProviderTransientFailure),
        ],
    )
    def test_status_maps_to_failure(self, status, expected):
        with pytest.raises(expected):
            classify_response("hubspot", httpx.Response(status))

    def test_other_client_errors_not_retryable(self):
        with pytest.raises(ProviderFetchFailure) as exc_info:
            classify_response("hubspot", httpx.Response(404))

        assert type(exc_info.value) is ProviderFetchFailure
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 404

    def test_retry_after_header_read(self):
        with pytest.raises(ProviderRateLimited) as exc_info:
            classify_response("hubspot", httpx.Response(429, headers={"Retry-After": "12"}))

        assert exc_info.value.retry_after == 12.0

    def test_success_passes(self):
        assert classify_response("hubspot", httpx.Response(200)) is None


# ── HubSpot ────────────────────────────────────────────────────────────────


class TestHubSpotFetchers:
    async def test_pages_until_no_cursor(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "after" not in request.url.params:
                return httpx.Response(
                    200,
                    json={"results": [{"id": "1"}, {"id": "2"}], "paging": {"next": {"after": "2"}}},
                )
            return httpx.Response(200, json={"results": [{"id": "3"}]})

        fetcher = _fetcher(HubSpotContactFetcher, handler, "https://api.hubapi.com")

        result = await fetcher.fetch("la-1", ["properties.favorite_color"])

        assert [r["id"] for r in result.data] == ["1", "2", "3"]
        assert len(seen) == 2
        first = seen[0]
        assert first.url.path == "/crm/v3/objects/contacts"
        assert first.headers["Authorization"] == "Bearer token-abc"
        properties = first.url.params["properties"].split(",")
        assert "firstname" in properties
        assert "favorite_color" in properties
        assert seen[1].url.params["after"] == "2"

    async def test_owners_endpoint(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/crm/v3/owners"
            return httpx.Response(200, json={"results": [{"id": 501}]})

        result = await _fetcher(HubSpotUserFetcher, handler).fetch("la-1")

        assert result.data == [{"id": 501}]

    async def test_missing_token_is_auth_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected without a token")

        fetcher = HubSpotContactFetcher(_no_token, "https://api.hubapi.com", client=_client(handler))

        with pytest.raises(ProviderAuthFailure):
            await fetcher.fetch("la-1")

    async def test_unauthorized_not_retried(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401)

        with pytest.raises(ProviderAuthFailure):
            await _fetcher(HubSpotContactFetcher, handler).fetch("la-1")

        assert calls == 1


# ── Retries ────────────────────────────────────────────────────────────────


class TestRetries:
    async def test_transient_error_retried_then_succeeds(self):
        responses = [httpx.Response(502), httpx.Response(429), httpx.Response(200, json={"results": [{"id": "1"}]})]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        result = await _fetcher(HubSpotContactFetcher, handler, max_attempts=3).fetch("la-1")

        assert result.data == [{"id": "1"}]
        assert responses == []

    async def test_gives_up_after_max_attempts(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        with pytest.raises(ProviderTransientFailure):
            await _fetcher(HubSpotContactFetcher, handler, max_attempts=2).fetch("la-1")

        assert calls == 2

    async def test_short_retry_after_waited_in_place(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0.01"}),
            httpx.Response(200, json={"results": [{"id": "1"}]}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        result = await _fetcher(HubSpotContactFetcher, handler, max_retry_after=1).fetch("la-1")

        assert result.data == [{"id": "1"}]

    async def test_long_retry_after_deferred_to_next_run(self):
        """A Retry-After above the cap fails the fetch instead of sleeping."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(429, headers={"Retry-After": "86400"})

        fetcher = _fetcher(HubSpotContactFetcher, handler, max_attempts=5, max_retry_after=60)

        with pytest.raises(ProviderRateLimited) as exc_info:
            await fetcher.fetch("la-1")

        assert calls == 1
        assert exc_info.value.retry_after == 86400.0

    async def test_network_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderTransientFailure):
            await _fetcher(HubSpotContactFetcher, handler, max_attempts=1).fetch("la-1")


# ── Zendesk Sell and Front ─────────────────────────────────────────────────


class TestOtherProviders:
    async def test_zendesk_unwraps_items_and_follows_next_page(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "1":
                return httpx.Response(
                    200,
                    json={
                        "items": [{"data": {"id": 7}}],
                        "meta": {"links": {"next_page": "https://api.getbase.com/v2/contacts?page=2"}},
                    },
                )
            return httpx.Response(200, json={"items": [{"data": {"id": 8}}], "meta": {"links": {}}})

        fetcher = _fetcher(ZendeskSellContactFetcher, handler, "https://api.getbase.com/v2")

        result = await fetcher.fetch("la-1")

        assert result.data == [{"id": 7}, {"id": 8}]

    async def test_front_follows_absolute_pagination_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/conversations" and "page_token" not in request.url.params:
                return httpx.Response(
                    200,
                    json={
                        "_results": [{"id": "cnv_1"}],
                        "_pagination": {"next": "https://api2.frontapp.com/conversations?page_token=abc"},
                    },
                )
            return httpx.Response(200, json={"_results": [{"id": "cnv_2"}], "_pagination": {"next": None}})

        fetcher = _fetcher(FrontTicketFetcher, handler, "https://api2.frontapp.com")

        result = await fetcher.fetch("la-1")

        assert [r["id"] for r in result.data] == ["cnv_1", "cnv_2"]
