"""SQLite-backed key-value store (the default local persistent substrate).

Entries live in a single two-column table. Any SQLAlchemy URL whose dialect
understands `INSERT ... ON CONFLICT` works; SQLite is the intended target.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from skycache.cache.base import KeyValueStore
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="cache/sqlite_store")


class SqliteKeyValueStore(KeyValueStore):
    """Persist cache records in a local database table."""

    DEFAULT_TABLE = "kv_entries"

    def __init__(self, engine: Engine, *, table: str = DEFAULT_TABLE) -> None:
        """Bind to an engine and create the backing table if needed."""
        if not table.isidentifier():
            raise ValueError(f"Invalid table name '{table}'")
        self.engine = engine
        self.table = table
        self._ensure_table()

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "SqliteKeyValueStore":
        """Create an engine from a URL and build the store."""
        logger.info("Opening SQLite cache store", extra={"db_url": mask_url_secrets(database_url)})
        engine = create_engine(database_url, future=True)
        return cls(engine, **kwargs)

    def _ensure_table(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"CREATE TABLE IF NOT EXISTS {self.table} ("
                    "key TEXT PRIMARY KEY, "
                    "value TEXT NOT NULL)"
                )
            )

    def get(self, key: str) -> Optional[str]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT value FROM {self.table} WHERE key = :key"),
                {"key": key},
            ).first()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"INSERT INTO {self.table} (key, value) VALUES (:key, :value) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
                ),
                {"key": key, "value": value},
            )

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(f"DELETE FROM {self.table} WHERE key = :key"), {"key": key})

    def contains(self, key: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT 1 FROM {self.table} WHERE key = :key"),
                {"key": key},
            ).first()
        return row is not None

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(f"DELETE FROM {self.table}"))
