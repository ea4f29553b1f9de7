# src/models/search_mode.py

"""Operating mode of the hybrid search layer."""

from enum import Enum


class SearchMode(str, Enum):
    """Where queries are currently routed."""

    ONLINE = "online"    # remote indexed search service
    OFFLINE = "offline"  # local cache store only
