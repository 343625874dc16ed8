"""Error taxonomy shared by source clients, jobs and the store."""

from typing import Optional


class CatalogError(Exception):
    """Base class for all charadex errors."""


class SourceError(CatalogError):
    """A source client failed."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source


class SourceHTTPError(SourceError):
    """Non-2xx response from a source API."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        source: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message or f"{source or 'source'} API error: {status_code}", source)
        self.status_code = status_code
        self.retry_after = retry_after


class WorkNotFoundError(SourceError):
    """The lookup returned nothing. Never retried."""


class MalformedResponseError(SourceError):
    """GraphQL errors payload or an unexpected response shape. Never retried."""


class StoreError(CatalogError):
    """Fatal IO on the data directory."""

    def __init__(self, message: str, path: str = ""):
        hint = (
            f" Check that '{path}' exists and is writable by this user"
            " (or set CHARADEX_DATA_DIR to a writable directory)."
            if path else ""
        )
        super().__init__(message + hint)
        self.path = path
