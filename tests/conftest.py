# tests/conftest.py

"""Shared pytest fixtures for the search layer tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from src.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path) -> Generator[None, None, None]:
    """Keep every test away from the real cache DB and search bridge."""
    with patch.object(
        Settings, "CACHE_DB_PATH", tmp_path / "product_cache.db"
    ), patch.object(Settings, "REMOTE_SEARCH_URL", ""):
        yield
