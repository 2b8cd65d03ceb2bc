"""Provider fetch services -- the raw-data side of a sync cycle.

A fetcher returns every raw record of one object type for one linked
account. It fails with a typed ProviderFetchFailure so the orchestrator can
tell a dead credential (skip, mark for re-auth) from a transient problem
(retry on the next scheduled run).

HttpProviderFetcher implements the HTTP plumbing: bearer auth from an
injected token provider, status classification, and tenacity retries for
transient failures and rate limits. Provider subclasses only describe the
request and how to page through the response.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

import httpx
import structlog
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.unified.core.errors import (
    ProviderAuthFailure,
    ProviderFetchFailure,
    ProviderRateLimited,
    ProviderTransientFailure,
)
from src.unified.unification.registry import ServiceKey

logger = structlog.get_logger(__name__)

# (linked_account_id, provider, vertical) -> access token or None
TokenProvider = Callable[[str, str, str], Awaitable[str | None]]


class FetchResult(BaseModel):
    """Raw records returned by one fetch, in provider order."""

    data: list[dict[str, Any]]


class ProviderFetcher(ABC):
    """Fetch contract every (vertical, object type, provider) implements."""

    vertical: ClassVar[str]
    object_type: ClassVar[str]
    provider: ClassVar[str]

    @property
    def key(self) -> ServiceKey:
        return ServiceKey(self.vertical, self.object_type, self.provider)

    @abstractmethod
    async def fetch(
        self, linked_account_id: str, remote_field_ids: list[str] | None = None
    ) -> FetchResult:
        """Fetch raw records, optionally narrowed to the given custom field ids.

        Raises:
            ProviderAuthFailure: Credentials missing or rejected.
            ProviderTransientFailure: Network error or 5xx after retries.
            ProviderRateLimited: Still rate limited after retries.
        """
        ...


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_response(provider: str, response: httpx.Response) -> None:
    """Raise the ProviderFetchFailure matching an unsuccessful response."""
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise ProviderAuthFailure(provider, f"credentials rejected ({status})", status)
    if status == 429:
        raise ProviderRateLimited(
            provider, "rate limited", status, retry_after=_retry_after(response)
        )
    if status >= 500:
        raise ProviderTransientFailure(provider, f"server error ({status})", status)
    raise ProviderFetchFailure(provider, f"unexpected status {status}", status)


def _retry_unless_deferred(max_retry_after: float) -> Callable[[BaseException], bool]:
    """Retry retryable failures, except rate limits asking for a wait over the cap."""

    def _predicate(exc: BaseException) -> bool:
        if not (isinstance(exc, ProviderFetchFailure) and exc.retryable):
            return False
        if isinstance(exc, ProviderRateLimited) and exc.retry_after:
            return exc.retry_after <= max_retry_after
        return True

    return _predicate


class _RateLimitAwareWait:
    """Exponential backoff that never waits less than the provider's Retry-After."""

    def __init__(self, base: Any) -> None:
        self._base = base

    def __call__(self, retry_state: Any) -> float:
        wait = self._base(retry_state)
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            exc = outcome.exception()
            if isinstance(exc, ProviderRateLimited) and exc.retry_after:
                return max(wait, exc.retry_after)
        return wait


class HttpProviderFetcher(ProviderFetcher):
    """ProviderFetcher over httpx.AsyncClient with bearer auth and retries.

    Subclasses implement _first_request() and _next_request(); the base
    class pages until _next_request() returns None.

    Args:
        token_provider: Async callable returning the access token for a linked account.
        base_url: Provider API root.
        client: Optional shared AsyncClient (tests inject one with a MockTransport).
        max_attempts: Attempts per page before a retryable failure propagates.
        timeout: Per-request timeout in seconds.
        page_limit: Page size requested from the provider.
        wait_multiplier: Backoff multiplier in seconds.
        max_retry_after: Longest Retry-After honoured in place; a longer one
            ends the fetch with ProviderRateLimited.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = 3,
        timeout: float = 30.0,
        page_limit: int = 100,
        wait_multiplier: float = 1.0,
        max_retry_after: float = 60.0,
    ) -> None:
        self._token_provider = token_provider
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._max_attempts = max_attempts
        self._timeout = timeout
        self._page_limit = page_limit
        self._wait_multiplier = wait_multiplier
        self._max_retry_after = max_retry_after

    # ── Provider hooks ──────────────────────────────────────────────────────

    @abstractmethod
    def _first_request(self, remote_field_ids: list[str]) -> tuple[str, dict[str, Any]]:
        """Return (path, query params) of the first page."""
        ...

    @abstractmethod
    def _next_request(
        self, body: dict[str, Any], path: str, params: dict[str, Any]
    ) -> tuple[str, dict[str, Any]] | None:
        """Return the next page's (path-or-url, params), or None on the last page."""
        ...

    @abstractmethod
    def _records(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """Extract the raw records from one page body."""
        ...

    # ── Fetch ───────────────────────────────────────────────────────────────

    async def fetch(
        self, linked_account_id: str, remote_field_ids: list[str] | None = None
    ) -> FetchResult:
        token = await self._token_provider(linked_account_id, self.provider, self.vertical)
        if not token:
            raise ProviderAuthFailure(self.provider, "no access token for linked account")

        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        records: list[dict[str, Any]] = []
        request: tuple[str, dict[str, Any]] | None = self._first_request(remote_field_ids or [])

        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            while request is not None:
                path, params = request
                body = await self._get_with_retry(client, path, params, headers)
                records.extend(self._records(body))
                request = self._next_request(body, path, params)
        finally:
            if self._client is None:
                await client.aclose()

        logger.info(
            "fetch.completed",
            provider=self.provider,
            object_type=self.object_type,
            linked_account_id=linked_account_id,
            count=len(records),
        )
        return FetchResult(data=records)

    async def _get_with_retry(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_retry_unless_deferred(self._max_retry_after)),
            stop=stop_after_attempt(self._max_attempts),
            wait=_RateLimitAwareWait(
                wait_exponential(multiplier=self._wait_multiplier, max=60)
            ),
            reraise=True,
        )
        return await retrying(self._get, client, path, params, headers)

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.TransportError as exc:
            logger.warning(
                "fetch.transport_error",
                provider=self.provider,
                url=url,
                error=str(exc),
            )
            raise ProviderTransientFailure(self.provider, f"transport error: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "fetch.http_error",
                provider=self.provider,
                url=url,
                status_code=response.status_code,
            )
        classify_response(self.provider, response)
        return response.json()
