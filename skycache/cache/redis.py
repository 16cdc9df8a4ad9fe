"""Redis-backed key-value store."""

from typing import Optional

from skycache.cache.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/redis_store")


class RedisKeyValueStore(KeyValueStore):
    """Stores strings under a key prefix on a Redis client. Errors propagate to CacheStore."""

    def __init__(self, client, prefix: str = "skycache:") -> None:
        """Bind to a redis.Redis (or compatible) client."""
        logger.debug("Initializing RedisKeyValueStore", extra={"prefix": prefix})
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value.encode("utf-8"))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def contains(self, key: str) -> bool:
        return bool(self.client.exists(self._key(key)))

    def clear(self) -> None:
        """Delete only keys under the configured prefix."""
        for key in self.client.scan_iter(f"{self.prefix}*"):
            self.client.delete(key)
