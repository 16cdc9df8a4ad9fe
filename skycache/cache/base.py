"""Protocol for the key-value substrates underneath CacheStore."""

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """String-to-string persistence. Implementations may raise on I/O failure."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove `key` without raising if it is absent."""

    def contains(self, key: str) -> bool:
        """Return True if `key` is present."""

    def clear(self) -> None:
        """Remove every key owned by this store."""
