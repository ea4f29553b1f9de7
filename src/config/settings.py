# src/config/settings.py

"""Central configuration for the pharma_search engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, keeping *default* if unset."""
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Central configuration for the pharma_search engine."""

    # --- Remote search bridge ---
    REMOTE_SEARCH_URL: str = os.getenv("REMOTE_SEARCH_URL", "")
    REMOTE_SEARCH_API_KEY: str = os.getenv("REMOTE_SEARCH_API_KEY", "")
    REMOTE_SEARCH_INDEX: str = os.getenv(
        "REMOTE_SEARCH_INDEX", "products"
    )

    # --- Search ---
    SEARCH_LIMIT: int = _env_int("SEARCH_LIMIT", 20)
    SEARCH_TIMEOUT_MS: int = _env_int("SEARCH_TIMEOUT_MS", 5000)
    PROBE_TIMEOUT_MS: int = _env_int("PROBE_TIMEOUT_MS", 2000)
    CACHE_TIMEOUT_MS: int = _env_int("CACHE_TIMEOUT_MS", 5000)
    SEARCH_FIELDS: list[str] = [
        "id",
        "name",
        "sku",
        "category",
        "brand",
        "batches",
        "saleUnits",
        "totalQuantity",
    ]
    HIGHLIGHT_FIELDS: list[str] = ["name", "sku"]

    # --- Mode detection ---
    MODE_REPROBE_INTERVAL: int = _env_int("MODE_REPROBE_INTERVAL", 0)

    # --- Offline cache ---
    CACHE_REMOTE_RESULTS: bool = _env_bool("CACHE_REMOTE_RESULTS", True)

    # --- HTTP ---
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "Content-Type": "application/json",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    CACHE_DB_PATH: Path = Path(
        os.getenv("CACHE_DB_PATH", str(DATA_DIR / "product_cache.db"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"


# Mapping of accepted config keys (camelCase, as stored in JSON config
# files) to SearchConfig attribute names.
_CONFIG_KEYS: dict[str, str] = {
    "limit": "limit",
    "timeoutMs": "timeout_ms",
    "fields": "fields",
    "highlightFields": "highlight_fields",
    "probeTimeoutMs": "probe_timeout_ms",
    "cacheTimeoutMs": "cache_timeout_ms",
}


@dataclass(frozen=True)
class SearchConfig:
    """Static options for one orchestrator instance.

    Invalid values are programmer errors and raise ``ValueError``
    at construction time rather than at query time.
    """

    limit: int = Settings.SEARCH_LIMIT
    timeout_ms: int = Settings.SEARCH_TIMEOUT_MS
    fields: tuple[str, ...] = field(
        default_factory=lambda: tuple(Settings.SEARCH_FIELDS)
    )
    highlight_fields: tuple[str, ...] = field(
        default_factory=lambda: tuple(Settings.HIGHLIGHT_FIELDS)
    )
    probe_timeout_ms: int = Settings.PROBE_TIMEOUT_MS
    cache_timeout_ms: int = Settings.CACHE_TIMEOUT_MS

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored immutably
        for name in ("fields", "highlight_fields"):
            raw: Any = getattr(self, name)
            if not isinstance(raw, (list, tuple)):
                msg = (
                    f"SearchConfig.{name} must be a list of field names, "
                    f"got {raw!r}"
                )
                raise ValueError(msg)
            object.__setattr__(self, name, tuple(raw))

        for name in (
            "limit",
            "timeout_ms",
            "probe_timeout_ms",
            "cache_timeout_ms",
        ):
            value = getattr(self, name)
            if (
                not isinstance(value, int)
                or isinstance(value, bool)
                or value < 1
            ):
                msg = f"SearchConfig.{name} must be a positive int, got {value!r}"
                raise ValueError(msg)

        if not self.fields:
            raise ValueError("SearchConfig.fields must not be empty")
        for name in ("fields", "highlight_fields"):
            values: tuple[Any, ...] = getattr(self, name)
            if not all(isinstance(v, str) and v for v in values):
                msg = f"SearchConfig.{name} must contain non-empty strings"
                raise ValueError(msg)

    @property
    def timeout(self) -> float:
        """Remote query timeout in seconds."""
        return self.timeout_ms / 1000

    @property
    def probe_timeout(self) -> float:
        """Health probe timeout in seconds."""
        return self.probe_timeout_ms / 1000

    @property
    def cache_timeout(self) -> float:
        """Local cache query timeout in seconds."""
        return self.cache_timeout_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchConfig":
        """Build a config from a camelCase mapping (e.g. a JSON file)."""
        unknown = sorted(set(data) - set(_CONFIG_KEYS))
        if unknown:
            msg = f"Unknown search config option(s): {', '.join(unknown)}"
            raise ValueError(msg)
        kwargs = {_CONFIG_KEYS[k]: v for k, v in data.items()}
        return cls(**kwargs)
