"""CRM provider fetchers: HubSpot contacts and owners, Zendesk Sell contacts."""

from __future__ import annotations

from typing import Any

from src.unified.sync.fetcher import HttpProviderFetcher

HUBSPOT_CONTACT_PROPERTIES = [
    "firstname",
    "lastname",
    "email",
    "phone",
    "mobilephone",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "hubspot_owner_id",
]


class _HubSpotPagedFetcher(HttpProviderFetcher):
    """HubSpot v3 cursor paging: ``paging.next.after``."""

    def _next_request(
        self, body: dict[str, Any], path: str, params: dict[str, Any]
    ) -> tuple[str, dict[str, Any]] | None:
        after = ((body.get("paging") or {}).get("next") or {}).get("after")
        if not after:
            return None
        return path, {**params, "after": after}

    def _records(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        return list(body.get("results") or [])


class HubSpotContactFetcher(_HubSpotPagedFetcher):
    vertical = "crm"
    object_type = "contact"
    provider = "hubspot"

    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        properties = list(HUBSPOT_CONTACT_PROPERTIES)
        for field_id in remote_field_ids:
            # Mappings may address the property as "properties.<name>"
            name = field_id.removeprefix("properties.")
            if name not in properties:
                properties.append(name)
        return "/crm/v3/objects/contacts", {
            "limit": self._page_limit,
            "properties": ",".join(properties),
        }


class HubSpotUserFetcher(_HubSpotPagedFetcher):
    """HubSpot owners, synced as CRM users."""

    vertical = "crm"
    object_type = "user"
    provider = "hubspot"

    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        return "/crm/v3/owners", {"limit": self._page_limit}


class ZendeskSellContactFetcher(HttpProviderFetcher):
    """Zendesk Sell contacts; items arrive wrapped as ``{"data": {...}}``."""

    vertical = "crm"
    object_type = "contact"
    provider = "zendesk"

    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        return "/contacts", {"per_page": self._page_limit, "page": 1}

    def _next_request(
        self, body: dict[str, Any], path: str, params: dict[str, Any]
    ) -> tuple[str, dict[str, Any]] | None:
        next_page = ((body.get("meta") or {}).get("links") or {}).get("next_page")
        if not next_page:
            return None
        return next_page, {}

    def _records(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        return [item.get("data", item) for item in body.get("items") or []]


FETCHERS = [HubSpotContactFetcher, HubSpotUserFetcher, ZendeskSellContactFetcher]
