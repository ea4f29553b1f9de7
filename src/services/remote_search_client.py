# src/services/remote_search_client.py

"""Thin client for the remote indexed product search bridge."""

import logging
from dataclasses import dataclass, field
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests import RequestsError

from src.config.settings import Settings
from src.services.exceptions import RemoteError, RemoteUnavailable

logger = logging.getLogger("pharma_search.remote")

# Gateway statuses: the bridge is up but cannot reach the index
_UNAVAILABLE_STATUSES: frozenset[int] = frozenset({502, 503, 504})

# Canonical field name -> name used by the remote index
_REMOTE_FIELD_ALIASES: dict[str, str] = {"id": "_id"}


@dataclass
class SearchOptions:
    """Per-query options sent to the remote index."""

    limit: int = 20
    fields_to_return: list[str] = field(
        default_factory=lambda: list[str]()
    )
    fields_to_highlight: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            msg = f"limit must be an int, got {self.limit!r}"
            raise ValueError(msg)
        if self.limit < 1:
            msg = f"limit must be >= 1, got {self.limit}"
            raise ValueError(msg)

    def to_payload(self, term: str) -> dict[str, Any]:
        """Build the JSON body for a search request."""
        payload: dict[str, Any] = {"q": term, "limit": self.limit}
        if self.fields_to_return:
            payload["attributesToRetrieve"] = [
                _REMOTE_FIELD_ALIASES.get(f, f)
                for f in self.fields_to_return
            ]
        if self.fields_to_highlight:
            payload["attributesToHighlight"] = list(
                self.fields_to_highlight
            )
        return payload


class RemoteSearchClient:
    """Queries the remote product index through the trusted bridge.

    Transport and authentication live here; callers only see
    ``RemoteUnavailable`` (bridge unreachable) or ``RemoteError``
    (query rejected) on failure.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        index_name: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.settings = Settings()
        self.base_url = (
            base_url if base_url is not None
            else self.settings.REMOTE_SEARCH_URL
        ).rstrip("/")
        self.api_key = (
            api_key if api_key is not None
            else self.settings.REMOTE_SEARCH_API_KEY
        )
        self.index_name = index_name or self.settings.REMOTE_SEARCH_INDEX
        self._request_timeout: float = (
            timeout if timeout is not None
            else self.settings.SEARCH_TIMEOUT_MS / 1000
        )
        self.session = curl_requests.Session()

    @property
    def search_url(self) -> str:
        """Full URL of the index search endpoint."""
        return f"{self.base_url}/indexes/{self.index_name}/search"

    def _headers(self) -> dict[str, str]:
        headers = dict(self.settings.DEFAULT_HEADERS)
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def query(
        self,
        term: str,
        options: SearchOptions,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Run a keyword query and return the raw hits.

        An empty *term* is valid and returns up to ``options.limit``
        arbitrary records, which is what the health probe relies on.
        """
        if not self.base_url:
            raise RemoteUnavailable("No remote search bridge configured")

        payload = options.to_payload(term)
        try:
            resp = self.session.post(
                self.search_url,
                headers=self._headers(),
                json=payload,
                timeout=timeout or self._request_timeout,
            )
        except RequestsError as exc:
            logger.warning(
                "Search bridge unreachable at %s: %s",
                self.search_url,
                exc,
            )
            raise RemoteUnavailable(str(exc)) from exc

        status = resp.status_code
        if status in _UNAVAILABLE_STATUSES:
            raise RemoteUnavailable(f"HTTP {status} from search bridge")
        if not 200 <= status < 300:
            raise RemoteError(
                f"HTTP {status}: {self._error_message(resp)}",
                status_code=status,
            )

        try:
            body: Any = resp.json()
        except ValueError as exc:
            raise RemoteError(
                "Malformed JSON from search service", status_code=status,
            ) from exc

        hits = self._extract_hits(body)
        logger.debug(
            "Remote query '%s' returned %d hits", term, len(hits),
        )
        return hits

    @staticmethod
    def _extract_hits(body: Any) -> list[dict[str, Any]]:
        """Pull the hit list out of a list or ``{"hits": [...]}`` body."""
        if isinstance(body, list):
            items: list[Any] = body
        elif isinstance(body, dict) and isinstance(body.get("hits"), list):
            items = body["hits"]
        elif isinstance(body, dict) and (
            "error" in body or "message" in body
        ):
            raise RemoteError(
                str(body.get("error") or body.get("message"))
            )
        else:
            raise RemoteError("Search response carried no hits")
        return [h for h in items if isinstance(h, dict)]

    @staticmethod
    def _error_message(resp: curl_requests.Response) -> str:
        """Best-effort error text from a failed response."""
        try:
            body: Any = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(body, dict):
            return str(
                body.get("message") or body.get("error") or body
            )[:200]
        return str(body)[:200]

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
