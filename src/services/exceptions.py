# src/services/exceptions.py

"""Exception hierarchy for the hybrid search layer.

Connectivity-class failures (``RemoteUnavailable``, ``RemoteError``) are
recovered inside the orchestrator.  ``CacheError`` means the last
remaining path failed and is surfaced to the caller.
"""


class SearchError(Exception):
    """Base class for every search-layer failure."""


class RemoteUnavailable(SearchError):
    """The search bridge itself cannot be reached.

    Raised for transport errors, timeouts and gateway responses.
    Downgrades the process to offline mode.
    """


class RemoteError(SearchError):
    """The remote service answered but rejected this query.

    Triggers a local fallback for the current query only.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CacheError(SearchError):
    """The local cache store failed to answer."""
