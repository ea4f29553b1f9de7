# src/services/mode_detector.py

"""Connectivity probe that decides between online and offline search."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime

from src.config.settings import Settings
from src.models.search_mode import SearchMode
from src.services.remote_search_client import (
    RemoteSearchClient,
    SearchOptions,
)

logger = logging.getLogger("pharma_search.mode")

_PROBE_OPTIONS = SearchOptions(limit=1)


@dataclass
class ProbeResult:
    """Outcome of a single health probe against the search bridge."""

    mode: SearchMode
    latency_ms: float
    message: str
    probed_at: datetime


class ModeDetector:
    """Owns the process-wide search mode.

    The mode is written in exactly two places: :meth:`probe` and the
    downgrade path :meth:`mark_offline`.  Everyone else reads it through
    :attr:`mode`.  Probes are serialised so concurrent callers never
    race each other into inconsistent flips.
    """

    def __init__(
        self,
        client: RemoteSearchClient,
        probe_timeout: float | None = None,
        reprobe_interval: float | None = None,
    ) -> None:
        self.client = client
        self.probe_timeout: float = (
            probe_timeout if probe_timeout is not None
            else Settings.PROBE_TIMEOUT_MS / 1000
        )
        self.reprobe_interval: float = (
            reprobe_interval if reprobe_interval is not None
            else float(Settings.MODE_REPROBE_INTERVAL)
        )
        self._mode: SearchMode | None = None
        self._last_probe: ProbeResult | None = None
        self._last_probe_monotonic: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def mode(self) -> SearchMode | None:
        """Current mode, or ``None`` before the first probe."""
        return self._mode

    @property
    def last_probe(self) -> ProbeResult | None:
        """Details of the most recent probe, if any."""
        return self._last_probe

    async def probe(self) -> SearchMode:
        """Issue a minimal query and record the resulting mode.

        Never raises for connectivity problems: every failure maps
        to ``offline``.
        """
        async with self._lock:
            return await self._probe_locked()

    async def ensure_mode(self) -> SearchMode:
        """Return the cached mode, probing at most once when unknown.

        With a positive ``reprobe_interval``, an ``offline`` mode is
        re-probed lazily once that many seconds have passed.
        """
        if self._mode is not None and not self._reprobe_due():
            return self._mode
        async with self._lock:
            # Another caller may have probed while we waited
            if self._mode is not None and not self._reprobe_due():
                return self._mode
            return await self._probe_locked()

    def mark_offline(self, reason: str) -> None:
        """Downgrade to offline after the bridge became unreachable."""
        if self._mode is not SearchMode.OFFLINE:
            logger.warning(
                "Search mode downgraded to offline: %s", reason,
            )
        self._mode = SearchMode.OFFLINE
        self._last_probe_monotonic = time.monotonic()

    def _reprobe_due(self) -> bool:
        if self._mode is not SearchMode.OFFLINE:
            return False
        if self.reprobe_interval <= 0:
            return False
        elapsed = time.monotonic() - self._last_probe_monotonic
        return elapsed >= self.reprobe_interval

    async def _probe_locked(self) -> SearchMode:
        start = time.monotonic()
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.query,
                    "",
                    _PROBE_OPTIONS,
                    self.probe_timeout,
                ),
                timeout=self.probe_timeout,
            )
        except Exception as exc:
            # Connectivity loss is expected; record it and go offline
            mode = SearchMode.OFFLINE
            message = (
                "probe timed out"
                if isinstance(exc, asyncio.TimeoutError)
                else str(exc)[:80]
            )
            logger.warning(
                "Search bridge probe failed, using offline mode: %s",
                message,
            )
        else:
            mode = SearchMode.ONLINE
            message = ""

        elapsed_ms = (time.monotonic() - start) * 1000
        self._mode = mode
        self._last_probe_monotonic = time.monotonic()
        self._last_probe = ProbeResult(
            mode=mode,
            latency_ms=elapsed_ms,
            message=message,
            probed_at=datetime.now(),
        )
        logger.info(
            "Search mode probe: %s (%.0fms) %s",
            mode.value,
            elapsed_ms,
            message,
        )
        return mode
