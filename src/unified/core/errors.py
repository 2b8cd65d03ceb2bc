"""Error taxonomy for unification, fetch, and persistence.

Every failure the sync engine raises on purpose derives from UnifiedSyncError
so callers can tell engine failures apart from programming errors:

- RegistryLookupFailure: no mapper/fetcher registered under a key
- CyclicUnification: nested unification exceeded the depth limit
- MissingOriginId: a unified record has no provider-native id
- ProviderFetchFailure: provider fetch failed (Auth / Transient / RateLimited)
- PersistenceConflict: two writers raced on the same (remote_id, connection_id)
- StorageUnavailable: the relational store cannot be reached
"""

from __future__ import annotations


class UnifiedSyncError(Exception):
    """Base class for all sync engine errors."""


class RegistryLookupFailure(UnifiedSyncError, LookupError):
    """Raised when no service is registered under a (vertical, object, provider) key."""

    def __init__(self, vertical: str, object_type: str, provider: str) -> None:
        self.vertical = vertical
        self.object_type = object_type
        self.provider = provider
        super().__init__(
            f"Service not found for given keys: {vertical}, {object_type}, {provider}"
        )


class CyclicUnification(UnifiedSyncError):
    """Raised when nested unification recurses past the configured depth."""

    def __init__(self, depth: int, limit: int, target: str) -> None:
        self.depth = depth
        self.limit = limit
        self.target = target
        super().__init__(
            f"Unification depth {depth} exceeds limit {limit} while unifying {target}"
        )


class MissingOriginId(UnifiedSyncError, ValueError):
    """Raised when a unified record carries an empty or missing remote_id."""

    def __init__(self, object_type: str, index: int | None = None) -> None:
        self.object_type = object_type
        self.index = index
        where = f" at batch index {index}" if index is not None else ""
        super().__init__(f"Origin id missing on {object_type} record{where}")


class ProviderFetchFailure(UnifiedSyncError):
    """Raised when a provider fetch fails. Subclasses define retry eligibility."""

    retryable: bool = False

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class ProviderAuthFailure(ProviderFetchFailure):
    """Credentials rejected or missing. The connection needs re-authentication."""

    retryable = False


class ProviderTransientFailure(ProviderFetchFailure):
    """Network error or provider-side 5xx. Eligible for retry."""

    retryable = True


class ProviderRateLimited(ProviderFetchFailure):
    """Provider returned 429. Eligible for retry after ``retry_after`` seconds."""

    retryable = True

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(provider, message, status_code)
        self.retry_after = retry_after


class PersistenceConflict(UnifiedSyncError):
    """Two writers raced to create the same (remote_id, connection_id) row."""

    def __init__(self, object_type: str, remote_id: str, connection_id: str) -> None:
        self.object_type = object_type
        self.remote_id = remote_id
        self.connection_id = connection_id
        super().__init__(
            f"Concurrent write on {object_type} remote_id={remote_id} connection={connection_id}"
        )


class StorageUnavailable(UnifiedSyncError):
    """The relational store is unreachable. Fatal to the whole sync run."""


__all__ = [
    "UnifiedSyncError",
    "RegistryLookupFailure",
    "CyclicUnification",
    "MissingOriginId",
    "ProviderFetchFailure",
    "ProviderAuthFailure",
    "ProviderTransientFailure",
    "ProviderRateLimited",
    "PersistenceConflict",
    "StorageUnavailable",
]
