"""
Sync error taxonomy.

Only ConfigurationError is fatal to a run. The others are absorbed at
record or batch granularity and counted in the run summary.
"""


class SyncError(Exception):
    """Base class for every error the sync engine produces."""


class ThrottledError(SyncError):
    """Upstream answered 429."""

    def __init__(self, url: str, retry_after: float | None = None):
        self.url = url
        self.retry_after = retry_after
        msg = f"Throttled by upstream: {url}"
        if retry_after is not None:
            msg += f" (retry after {retry_after:.0f}s)"
        super().__init__(msg)


class PartialFetchError(SyncError):
    """A page sequence stopped early on a non-throttle failure."""

    def __init__(self, url: str, collected: int, cause: Exception | None = None):
        self.url = url
        self.collected = collected
        self.cause = cause
        super().__init__(
            f"Pagination stopped at {url} after {collected} items: {cause!r}"
        )


class MissingReferenceError(SyncError):
    """A referenced entity could not be resolved even after fetching it."""

    def __init__(self, entity: str, reference: str, referrer: str | None = None):
        self.entity = entity
        self.reference = reference
        self.referrer = referrer
        msg = f"Unresolved {entity} reference {reference!r}"
        if referrer:
            msg += f" from {referrer}"
        super().__init__(msg)


class BatchWriteError(SyncError):
    """A batch transaction failed and was rolled back."""

    def __init__(self, family: str, batch_keys: list, cause: Exception | None = None):
        self.family = family
        self.batch_keys = list(batch_keys)
        self.cause = cause
        super().__init__(
            f"{family} batch of {len(self.batch_keys)} rolled back: {cause!r}"
        )


class ConfigurationError(SyncError):
    """A required setting is missing or invalid."""

    def __init__(self, setting: str, message: str):
        self.setting = setting
        super().__init__(f"{setting}: {message}")
