"""Cache key layout for resource kinds."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

RECENT_SEARCHES_KEY = "RECENT_SEARCHES"
TIMESTAMP_SUFFIX = "-timestamp"
EXPIRY_SUFFIX = "-expiry"


class ResourceKind(str, Enum):
    """Remote resources that get the two-tier cache treatment."""
    CURRENT_WEATHER = "current_weather"
    FORECAST = "forecast"


# kind -> (singleton key, per-identifier prefix)
_KEY_LAYOUT = {
    ResourceKind.CURRENT_WEATHER: ("CACHED_CURRENT_WEATHER", "WEATHER_"),
    ResourceKind.FORECAST: ("CACHED_FORECAST", "FORECAST_"),
}


def normalize_identifier(identifier: str) -> str:
    """Lower-case and trim an identifier such as a city name."""
    return identifier.strip().lower()


def same_identifier(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive, whitespace-insensitive identifier comparison."""
    if a is None or b is None:
        return False
    return normalize_identifier(a) == normalize_identifier(b)


@dataclass(frozen=True)
class CacheKey:
    """A logical cache key; its string form is the physical payload key."""
    kind: ResourceKind
    identifier: Optional[str] = None  # None for the singleton "last-used" slot

    @classmethod
    def singleton(cls, kind: ResourceKind) -> "CacheKey":
        return cls(kind)

    @classmethod
    def for_identifier(cls, kind: ResourceKind, identifier: str) -> "CacheKey":
        return cls(kind, normalize_identifier(identifier))

    @property
    def is_singleton(self) -> bool:
        return self.identifier is None

    def __str__(self) -> str:
        singleton_key, prefix = _KEY_LAYOUT[self.kind]
        if self.identifier is None:
            return singleton_key
        return f"{prefix}{self.identifier}"


def timestamp_key(key: str) -> str:
    return f"{key}{TIMESTAMP_SUFFIX}"


def expiry_key(key: str) -> str:
    return f"{key}{EXPIRY_SUFFIX}"
