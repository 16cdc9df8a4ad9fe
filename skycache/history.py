"""Bounded most-recent-first history of requested identifiers."""
from __future__ import annotations

from typing import List

from skycache.cache.cache_store import CacheStore
from skycache.keys import RECENT_SEARCHES_KEY, same_identifier
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="history")

DEFAULT_MAX_ENTRIES = 10


class RecentHistory:
    """Persists recent identifiers as a string list; no TTL."""

    def __init__(self, cache: CacheStore, *, max_entries: int = DEFAULT_MAX_ENTRIES,
                 key: str = RECENT_SEARCHES_KEY) -> None:
        self.cache = cache
        self.max_entries = max_entries
        self.key = key

    def entries(self) -> List[str]:
        return self.cache.get_list(self.key)

    def record(self, identifier: str) -> bool:
        """Move `identifier` to the front, dropping case-insensitive duplicates."""
        name = identifier.strip()
        if not name:
            return False
        current = [item for item in self.entries() if not same_identifier(item, name)]
        current.insert(0, name)
        saved = self.cache.put_list(self.key, current, max_items=self.max_entries)
        if not saved:
            logger.warning("Failed to save recent search", extra={"identifier": name})
        return saved

    def clear(self) -> bool:
        return self.cache.remove(self.key)
