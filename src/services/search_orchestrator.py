# src/services/search_orchestrator.py

"""Routes product searches between the remote index and the offline cache."""

import asyncio
import inspect
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.config.settings import SearchConfig, Settings
from src.models.product import EnrichedProduct
from src.models.search_mode import SearchMode
from src.services.exceptions import (
    CacheError,
    RemoteError,
    RemoteUnavailable,
)
from src.services.mode_detector import ModeDetector
from src.services.remote_search_client import (
    RemoteSearchClient,
    SearchOptions,
)
from src.services.result_enricher import enrich

logger = logging.getLogger("pharma_search.orchestrator")

RawRecord = Mapping[str, Any]


class LocalStore(Protocol):
    """Anything that can answer an offline text search.

    ``search_offline`` may be a plain or an ``async`` method.
    """

    def search_offline(self, term: str) -> Any: ...


@dataclass
class SearchResult:
    """Uniform answer handed to every caller of :meth:`search`.

    ``unavailable`` is set only when the last remaining path failed,
    which distinguishes "search unavailable" from a genuine zero-match.
    """

    query: str
    products: list[EnrichedProduct] = field(
        default_factory=lambda: list[EnrichedProduct]()
    )
    mode: SearchMode | None = None
    source: str = "none"  # "remote", "local" or "none"
    fell_back: bool = False
    unavailable: bool = False
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def __iter__(self) -> Iterator[EnrichedProduct]:
        return iter(self.products)

    def __len__(self) -> int:
        return len(self.products)


class SearchOrchestrator:
    """Hybrid search entry point.

    Picks the remote index or the local cache based on the current
    mode, falls back to the cache whenever the remote path yields
    nothing usable, and enriches whatever comes back.

    Concurrent calls are independent: there is no built-in
    cancellation, so a live-typing caller must discard stale answers
    itself (debounce or a request-generation counter).
    """

    def __init__(
        self,
        remote: RemoteSearchClient,
        local_store: LocalStore,
        config: SearchConfig | None = None,
        detector: ModeDetector | None = None,
        cache_remote_results: bool | None = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.remote = remote
        self.local_store = local_store
        self.detector = detector or ModeDetector(
            remote, probe_timeout=self.config.probe_timeout,
        )
        self.cache_remote_results: bool = (
            cache_remote_results if cache_remote_results is not None
            else Settings.CACHE_REMOTE_RESULTS
        )
        self._options = SearchOptions(
            limit=self.config.limit,
            fields_to_return=list(self.config.fields),
            fields_to_highlight=list(self.config.highlight_fields),
        )

    @property
    def mode(self) -> SearchMode | None:
        """Current mode, for display only."""
        return self.detector.mode

    # ── Private helpers ──────────────────────────────────

    async def _query_remote(self, term: str) -> list[RawRecord]:
        """Remote query bounded by the query timeout.

        A timeout counts as the bridge being unavailable.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.remote.query,
                    term,
                    self._options,
                    self.config.timeout,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as exc:
            msg = f"Remote query timed out after {self.config.timeout_ms}ms"
            raise RemoteUnavailable(msg) from exc

    async def _query_local(self, term: str) -> list[RawRecord]:
        """Offline query bounded by the cache timeout."""
        search_offline = self.local_store.search_offline

        async def call_store() -> Any:
            if inspect.iscoroutinefunction(search_offline):
                return await search_offline(term)
            value = await asyncio.to_thread(search_offline, term)
            if inspect.isawaitable(value):
                value = await value
            return value

        try:
            records = await asyncio.wait_for(
                call_store(), timeout=self.config.cache_timeout,
            )
        except asyncio.TimeoutError as exc:
            msg = (
                "Offline cache timed out after "
                f"{self.config.cache_timeout_ms}ms"
            )
            raise CacheError(msg) from exc
        return list(records or [])

    async def _store_remote_hits(
        self, records: Sequence[RawRecord],
    ) -> None:
        """Write remote hits through to the offline cache.

        Best effort: a failure here never changes the search result,
        and a busy store delays it by at most the cache timeout.
        """
        upsert = getattr(self.local_store, "upsert_products", None)
        if not self.cache_remote_results or upsert is None or not records:
            return
        try:
            await asyncio.wait_for(
                asyncio.to_thread(upsert, records),
                timeout=self.config.cache_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Caching %d remote results timed out after %dms",
                len(records),
                self.config.cache_timeout_ms,
            )
        except CacheError as exc:
            logger.warning(
                "Could not cache %d remote results: %s",
                len(records),
                exc,
            )

    async def _search_local(
        self, term: str, result: SearchResult,
    ) -> list[RawRecord]:
        """Run the last-resort offline path, surfacing cache failures."""
        try:
            records = await self._query_local(term)
        except CacheError as exc:
            logger.error(
                "Offline search failed for '%s': %s",
                term,
                exc,
                exc_info=True,
            )
            result.unavailable = True
            result.errors.append(f"Search unavailable: {exc}")
            return []
        result.source = "local"
        return records

    # ── Public entry point ───────────────────────────────

    async def search(self, term: str) -> SearchResult:
        """Search by name or SKU and return enriched products.

        Connectivity problems never raise; they only change which
        path answered (see ``SearchResult.source`` / ``fell_back``).
        """
        result = SearchResult(query=term)
        if not term or not term.strip():
            result.mode = self.detector.mode
            return result

        mode = await self.detector.ensure_mode()
        result.mode = mode

        if mode is SearchMode.OFFLINE:
            logger.info("Offline search for '%s'", term)
            result.products = enrich(
                await self._search_local(term, result)
            )
            return result

        logger.info("Remote search for '%s'", term)
        records: list[RawRecord] = []
        try:
            records = await self._query_remote(term)
        except RemoteUnavailable as exc:
            self.detector.mark_offline(str(exc))
            result.mode = SearchMode.OFFLINE
        except RemoteError as exc:
            logger.warning(
                "Remote search rejected '%s': %s", term, exc,
            )
        else:
            if records:
                result.source = "remote"
                await self._store_remote_hits(records)
            else:
                logger.info(
                    "Remote search for '%s' returned nothing", term,
                )

        if not records:
            logger.info("Falling back to offline search for '%s'", term)
            result.fell_back = True
            records = await self._search_local(term, result)

        result.products = enrich(records)
        return result
