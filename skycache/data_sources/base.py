"""Interfaces and per-resource metadata for remote data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from skycache.keys import ResourceKind
from skycache.result import Result


def _weather_city(payload: Mapping[str, Any]) -> Optional[str]:
    return payload.get("name")


def _forecast_city(payload: Mapping[str, Any]) -> Optional[str]:
    city = payload.get("city") or {}
    return city.get("name") if isinstance(city, Mapping) else None


@dataclass(frozen=True)
class ResourceSpec:
    """How one resource kind is fetched and cached."""
    kind: ResourceKind
    endpoint: str
    ttl_seconds: int
    identifier_of: Callable[[Mapping[str, Any]], Optional[str]]


DEFAULT_RESOURCE_SPECS = {
    ResourceKind.CURRENT_WEATHER: ResourceSpec(ResourceKind.CURRENT_WEATHER, "weather", 3600, _weather_city),
    ResourceKind.FORECAST: ResourceSpec(ResourceKind.FORECAST, "forecast", 10800, _forecast_city),
}


class RemoteDataSource(Protocol):
    """Anything that can fetch resources by identifier and air quality by coordinates."""

    def fetch(self, kind: ResourceKind, identifier: str) -> Result:
        """Return the decoded payload for `identifier`."""
        ...

    def fetch_air_quality(self, latitude: float, longitude: float) -> Result:
        """Return the current air-quality payload."""
        ...


@dataclass
class CallableRemoteDataSource(RemoteDataSource):
    """Wrap two callables so tests and alternate backends can be swapped in."""

    resource: Callable[[ResourceKind, str], Result]
    air_quality: Callable[[float, float], Result]

    def fetch(self, kind: ResourceKind, identifier: str) -> Result:
        return self.resource(kind, identifier)

    def fetch_air_quality(self, latitude: float, longitude: float) -> Result:
        return self.air_quality(latitude, longitude)
