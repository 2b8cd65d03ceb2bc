"""Ticketing provider fetchers: Front conversations and teammates.

Front pages with an absolute ``_pagination.next`` URL.
"""

from __future__ import annotations

from typing import Any

from src.unified.sync.fetcher import HttpProviderFetcher


class _FrontPagedFetcher(HttpProviderFetcher):
    def _next_request(
        self, body: dict[str, Any], path: str, params: dict[str, Any]
    ) -> tuple[str, dict[str, Any]] | None:
        next_url = (body.get("_pagination") or {}).get("next")
        if not next_url:
            return None
        return next_url, {}

    def _records(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        return list(body.get("_results") or [])


class FrontTicketFetcher(_FrontPagedFetcher):
    vertical = "ticketing"
    object_type = "ticket"
    provider = "front"

    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        # Front returns custom_fields on every conversation; nothing to narrow
        return "/conversations", {"limit": self._page_limit}


class FrontUserFetcher(_FrontPagedFetcher):
    vertical = "ticketing"
    object_type = "user"
    provider = "front"

    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        return "/teammates", {}


FETCHERS = [FrontTicketFetcher, FrontUserFetcher]
