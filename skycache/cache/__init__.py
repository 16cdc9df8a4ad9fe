"""Cache substrates and the TTL-aware CacheStore."""

from .base import KeyValueStore
from .cache_store import CacheEntry, CacheStore
from .factory import build_key_value_store
from .memory import InMemoryKeyValueStore
from .redis import RedisKeyValueStore
from .sqlite import SqliteKeyValueStore

__all__ = [
    "build_key_value_store",
    "CacheEntry",
    "CacheStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "SqliteKeyValueStore",
]
