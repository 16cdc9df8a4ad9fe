"""Factory for choosing the cache substrate at startup."""

from __future__ import annotations

from skycache import config
from skycache.cache.base import KeyValueStore
from skycache.cache.memory import InMemoryKeyValueStore
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="cache/factory")


DEFAULT_BACKEND_NAME = "sqlite"


def _build_sqlite(settings: config.Settings) -> KeyValueStore:
    from .sqlite import SqliteKeyValueStore

    db_url = settings.cache_database_url
    if not db_url:
        raise ValueError("cache_database_url must be set for the sqlite cache backend")
    return SqliteKeyValueStore.from_url(db_url)


def build_key_value_store(settings: config.Settings | None = None) -> KeyValueStore:
    """Instantiate the configured key-value substrate."""
    settings = settings or config.settings
    backend = (settings.cache_backend or DEFAULT_BACKEND_NAME).lower()

    if backend == "memory":
        logger.info("Using in-memory cache store")
        return InMemoryKeyValueStore()

    if backend == "sqlite":
        return _build_sqlite(settings)

    if backend == "redis":
        import redis

        from .redis import RedisKeyValueStore

        redis_url = settings.cache_redis_url
        if not redis_url:
            raise ValueError("cache_redis_url must be set for the redis cache backend")
        try:
            client = redis.Redis.from_url(redis_url)
            client.ping()
            logger.info("Using Redis cache store", extra={"redis_url": mask_url_secrets(redis_url)})
            return RedisKeyValueStore(client, prefix=settings.cache_redis_prefix)
        except Exception as exc:
            logger.warning("Falling back to SQLite cache store (Redis unavailable)", extra={"error": str(exc)})
            return _build_sqlite(settings)

    raise ValueError(f"Unknown cache backend '{backend}'")
