"""TTL-aware keyed persistence over a KeyValueStore.

Each logical key K is written as three physical records:

- ``K``            serialized payload
- ``K-timestamp``  write time, epoch milliseconds
- ``K-expiry``     time-to-live, milliseconds

The three writes are not atomic. A reader that finds the payload without both
sub-records treats the entry as expired, so a half-written entry reads as a
cache miss rather than as stale-forever data.

Expected conditions (miss, expiry, undecodable payload, substrate failure)
never raise: reads return None and writes return False, with the cause logged.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence, TypeVar

from skycache.cache.base import KeyValueStore
from skycache.keys import expiry_key, timestamp_key
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/cache_store")

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_LIST_ITEMS = 10


@dataclass(frozen=True)
class CacheEntry:
    """Raw view of a stored entry, for inspection."""
    key: str
    payload: str
    stored_at_ms: int
    ttl_ms: int

    @property
    def expires_at_ms(self) -> int:
        return self.stored_at_ms + self.ttl_ms


def _now_ms() -> int:
    return int(time.time() * 1000)


def _serialize(value: Any) -> str:
    """Strings are stored verbatim, bytes as UTF-8 text, anything else as JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return json.dumps(value)


class CacheStore:
    """Expiring cache over a string key-value substrate."""

    def __init__(self, store: KeyValueStore, *, default_ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self.store = store
        self.default_ttl_seconds = default_ttl_seconds

    def put(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        """Write payload, timestamp and expiry. Returns False if any write failed."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            payload = _serialize(value)
        except (TypeError, ValueError, UnicodeDecodeError) as exc:
            logger.error("Failed to serialize cache payload", extra={"key": key, "error": str(exc)})
            return False

        try:
            self.store.set(key, payload)
            self.store.set(timestamp_key(key), str(_now_ms()))
            self.store.set(expiry_key(key), str(int(ttl * 1000)))
        except Exception as exc:
            logger.error("Failed to write cache entry", extra={"key": key, "error": str(exc)})
            return False
        logger.debug("Cached entry", extra={"key": key, "ttl_seconds": ttl})
        return True

    def get(
        self,
        key: str,
        deserialize: Callable[[str], T] = json.loads,
        *,
        check_expiry: bool = True,
    ) -> Optional[T]:
        """Return the deserialized value, or None on miss, expiry or decode failure."""
        try:
            payload = self.store.get(key)
        except Exception as exc:
            logger.warning("Cache read failed; treating as miss", extra={"key": key, "error": str(exc)})
            return None
        if payload is None:
            logger.debug("Cache miss", extra={"key": key})
            return None
        if check_expiry and self.is_expired(key):
            logger.debug("Cache entry expired", extra={"key": key})
            return None
        try:
            return deserialize(payload)
        except Exception as exc:
            logger.warning("Cached payload could not be decoded; treating as miss",
                           extra={"key": key, "error": str(exc)})
            return None

    def _read_int(self, key: str) -> Optional[int]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    def is_expired(self, key: str) -> bool:
        """True when now > stored_at + ttl, or when either sub-record is missing or unreadable."""
        try:
            stored_at = self._read_int(timestamp_key(key))
            ttl = self._read_int(expiry_key(key))
        except Exception as exc:
            logger.warning("Failed to read cache expiry; treating as expired",
                           extra={"key": key, "error": str(exc)})
            return True
        if stored_at is None or ttl is None:
            return True
        return _now_ms() > stored_at + ttl

    def has_key(self, key: str) -> bool:
        try:
            return self.store.contains(key)
        except Exception as exc:
            logger.warning("Failed to check cache key", extra={"key": key, "error": str(exc)})
            return False

    def is_valid(self, key: str) -> bool:
        """Present and unexpired."""
        return self.has_key(key) and not self.is_expired(key)

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry, or None if the payload or either sub-record is missing."""
        try:
            payload = self.store.get(key)
            stored_at = self._read_int(timestamp_key(key))
            ttl = self._read_int(expiry_key(key))
        except Exception as exc:
            logger.warning("Failed to inspect cache entry", extra={"key": key, "error": str(exc)})
            return None
        if payload is None or stored_at is None or ttl is None:
            return None
        return CacheEntry(key=key, payload=payload, stored_at_ms=stored_at, ttl_ms=ttl)

    def remove(self, key: str) -> bool:
        """Delete all three records. Returns False if any deletion failed."""
        ok = True
        for physical in (key, timestamp_key(key), expiry_key(key)):
            try:
                self.store.delete(physical)
            except Exception as exc:
                logger.error("Failed to remove cache record", extra={"key": physical, "error": str(exc)})
                ok = False
        return ok

    def clear_all(self) -> bool:
        try:
            self.store.clear()
        except Exception as exc:
            logger.error("Failed to clear cache", extra={"error": str(exc)})
            return False
        logger.info("Cleared all cached data")
        return True

    def put_list(self, key: str, items: Iterable[str], max_items: int = DEFAULT_MAX_LIST_ITEMS) -> bool:
        """Store a string sequence truncated to `max_items`. No TTL."""
        truncated = [str(item) for item in items][:max(0, max_items)]
        try:
            self.store.set(key, json.dumps(truncated))
        except Exception as exc:
            logger.error("Failed to write list", extra={"key": key, "error": str(exc)})
            return False
        return True

    def get_list(self, key: str, default: Sequence[str] = ()) -> List[str]:
        """Return the stored string list, or a copy of `default` when absent or unreadable."""
        try:
            raw = self.store.get(key)
        except Exception as exc:
            logger.warning("Failed to read list", extra={"key": key, "error": str(exc)})
            return list(default)
        if raw is None:
            return list(default)
        try:
            items = json.loads(raw)
        except ValueError as exc:
            logger.warning("Stored list is not valid JSON", extra={"key": key, "error": str(exc)})
            return list(default)
        if not isinstance(items, list):
            return list(default)
        return [str(item) for item in items]
