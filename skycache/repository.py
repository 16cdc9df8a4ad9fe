"""Resilient repository: decides per request between fresh data, cached data, or a typed error.

Two cache tiers exist per resource kind: a singleton "last-used" slot and a
per-identifier slot. They are written independently and may describe
different identifiers at the same time; lookups never assume they agree.

``fetch(kind, identifier)``
    Offline: per-identifier entry, else a singleton entry whose payload names
    the same identifier, else a NETWORK error.
    Online: fetch remotely; on success write both tiers and record history.
    On SERVER/NETWORK failure fall back to the offline lookup (stale-serving).
    NOT_FOUND and AUTHORIZATION are never masked by cached data.

``request(kind, identifier)``
    Cache-first entry point for explicit user requests. A valid cached value
    is returned immediately and, when connected, a detached background
    refresh is started. Otherwise behaves like ``fetch``.

No public method raises: every unexpected exception becomes a SERVER error.
"""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from skycache import config
from skycache.cache.cache_store import CacheStore
from skycache.cache.factory import build_key_value_store
from skycache.connectivity import ConnectivityProbe, InterfaceConnectivityProbe, StaticConnectivityProbe
from skycache.data_sources.base import DEFAULT_RESOURCE_SPECS, RemoteDataSource, ResourceSpec
from skycache.data_sources.openweather_client import OpenWeatherDataSource
from skycache.errors import ErrorRecord
from skycache.fetch_client import FetchClient
from skycache.history import RecentHistory
from skycache.keys import CacheKey, ResourceKind, same_identifier
from skycache.refresh import BackgroundRefresher
from skycache.result import Result
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="repository")

RefreshListener = Callable[[ResourceKind, str, Any], None]

DEFAULT_IDENTIFIER = "London"


class ResilientRepository:
    """Orchestrates CacheStore, a remote data source and a ConnectivityProbe."""

    def __init__(
        self,
        remote: RemoteDataSource,
        cache: CacheStore,
        probe: ConnectivityProbe,
        *,
        history: Optional[RecentHistory] = None,
        refresher: Optional[BackgroundRefresher] = None,
        specs: Optional[Mapping[ResourceKind, ResourceSpec]] = None,
        default_identifier: str = DEFAULT_IDENTIFIER,
    ) -> None:
        self.remote = remote
        self.cache = cache
        self.probe = probe
        self.history = history or RecentHistory(cache)
        self.refresher = refresher or BackgroundRefresher()
        self.specs = dict(specs or DEFAULT_RESOURCE_SPECS)
        self.default_identifier = default_identifier
        self._displayed: Dict[ResourceKind, Optional[str]] = {}
        self._displayed_lock = threading.RLock()
        self._listeners: List[RefreshListener] = []

    # ------------------------------------------------------------------
    # Displayed-identifier tracking
    # ------------------------------------------------------------------

    def displayed(self, kind: ResourceKind) -> Optional[str]:
        with self._displayed_lock:
            return self._displayed.get(kind)

    def set_displayed(self, kind: ResourceKind, identifier: Optional[str]) -> None:
        """Record which identifier the presentation layer currently shows for `kind`."""
        with self._displayed_lock:
            self._displayed[kind] = identifier

    def add_refresh_listener(self, listener: RefreshListener) -> None:
        """Call `listener(kind, identifier, value)` when a background refresh commits."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    def _identifier_of(self, kind: ResourceKind, value: Any) -> Optional[str]:
        try:
            return self.specs[kind].identifier_of(value)
        except Exception as exc:
            logger.warning("Could not read identifier from cached payload",
                           extra={"kind": kind.value, "error": str(exc)})
            return None

    def _lookup_cached(self, kind: ResourceKind, identifier: str) -> Optional[Any]:
        """Valid per-identifier entry first, then a matching singleton entry."""
        city_key = str(CacheKey.for_identifier(kind, identifier))
        value = self.cache.get(city_key)
        if value is not None:
            logger.info("Found cached %s for %s", kind.value, identifier)
            return value

        last_used = self.cache.get(str(CacheKey.singleton(kind)))
        if last_used is not None and same_identifier(self._identifier_of(kind, last_used), identifier):
            logger.info("Found last-used %s matching %s", kind.value, identifier)
            return last_used
        return None

    def _store(self, kind: ResourceKind, identifier: str, value: Any) -> bool:
        """Write both tiers independently. Failures are logged, never raised."""
        ttl = self.specs[kind].ttl_seconds
        singleton_ok = self.cache.put(str(CacheKey.singleton(kind)), value, ttl)
        city_ok = self.cache.put(str(CacheKey.for_identifier(kind, identifier)), value, ttl)
        if not (singleton_ok and city_ok):
            logger.warning(
                "Failed to cache %s for %s", kind.value, identifier,
                extra={"singleton_written": singleton_ok, "identifier_written": city_ok},
            )
        return singleton_ok and city_ok

    def _serve_cached(self, kind: ResourceKind, identifier: str, value: Any) -> Result:
        self.history.record(identifier)
        self.set_displayed(kind, identifier)
        return Result.success(value)

    def _fail(self, kind: ResourceKind, error: ErrorRecord) -> Result:
        self.set_displayed(kind, None)
        return Result.failure(error)

    def _remote_fetch(self, kind: ResourceKind, identifier: str) -> Result:
        try:
            return self.remote.fetch(kind, identifier)
        except Exception as exc:
            logger.exception("Unexpected error fetching %s", kind.value)
            return Result.failure(ErrorRecord.server(f"Unexpected error occurred: {exc}", cause=exc))

    # ------------------------------------------------------------------
    # Core state machine
    # ------------------------------------------------------------------

    def _offline(self, kind: ResourceKind, identifier: str) -> Result:
        logger.warning("Offline, checking for cached data for %s", identifier)
        cached = self._lookup_cached(kind, identifier)
        if cached is not None:
            return self._serve_cached(kind, identifier, cached)
        return self._fail(
            kind, ErrorRecord.network("No internet connection and no cached data for this city")
        )

    def _online(self, kind: ResourceKind, identifier: str) -> Result:
        result = self._remote_fetch(kind, identifier)
        if result.ok:
            logger.info("Successfully fetched remote %s for %s", kind.value, identifier)
            self._store(kind, identifier, result.value)
            self.history.record(identifier)
            self.set_displayed(kind, identifier)
            return result

        error = result.error
        if error.allows_stale_fallback:
            logger.error("Fetch failed for %s: %s", identifier, error)
            cached = self._lookup_cached(kind, identifier)
            if cached is not None:
                logger.info("Falling back to cached data for %s", identifier)
                return self._serve_cached(kind, identifier, cached)
        else:
            logger.warning("Not falling back to cache for %s: %s", identifier, error)
        return self._fail(kind, error)

    def fetch(self, kind: ResourceKind, identifier: str) -> Result:
        """Fetch `identifier` with offline handling and stale-serving fallback."""
        logger.info("Getting %s for %s", kind.value, identifier)
        try:
            if not self.probe.is_connected():
                return self._offline(kind, identifier)
            return self._online(kind, identifier)
        except Exception as exc:
            logger.exception("Unexpected error getting %s", kind.value)
            return self._fail(kind, ErrorRecord.server(f"Unexpected error occurred: {exc}", cause=exc))

    def request(self, kind: ResourceKind, identifier: str) -> Result:
        """Serve valid cached data immediately (refreshing in background), else fetch."""
        try:
            connected = self.probe.is_connected()
            cached = self._lookup_cached(kind, identifier)
            if cached is not None:
                logger.info("Using cached data for %s", identifier)
                result = self._serve_cached(kind, identifier, cached)
                if connected:
                    self._refresh_in_background(kind, identifier)
                return result
            if not connected:
                return self._fail(
                    kind, ErrorRecord.network("No internet connection and no cached data for this city")
                )
            return self._online(kind, identifier)
        except Exception as exc:
            logger.exception("Unexpected error during %s request", kind.value)
            return self._fail(kind, ErrorRecord.server(f"Unexpected error occurred: {exc}", cause=exc))

    def _refresh_in_background(self, kind: ResourceKind, identifier: str) -> None:
        def still_current() -> bool:
            return same_identifier(self.displayed(kind), identifier)

        def commit(value: Any) -> None:
            # set_displayed blocks until the check, the writes and the listeners finish
            with self._displayed_lock:
                if not still_current():
                    logger.info("Refresh superseded before commit; discarding", extra={"identifier": identifier})
                    return
                self._store(kind, identifier, value)
                for listener in list(self._listeners):
                    try:
                        listener(kind, identifier, value)
                    except Exception:
                        logger.exception("Refresh listener failed")

        self.refresher.submit(
            f"{kind.value}:{identifier}",
            lambda: self._remote_fetch(kind, identifier),
            still_current,
            commit,
        )

    # ------------------------------------------------------------------
    # Convenience entry points
    # ------------------------------------------------------------------

    def get_current_weather(self, city: str) -> Result:
        return self.request(ResourceKind.CURRENT_WEATHER, city)

    def get_forecast(self, city: str) -> Result:
        return self.request(ResourceKind.FORECAST, city)

    def initial_setup(self) -> Result:
        """Last-used weather and forecast if both are cached, else the default city's."""
        try:
            weather = self.cache.get(str(CacheKey.singleton(ResourceKind.CURRENT_WEATHER)))
            forecast = self.cache.get(str(CacheKey.singleton(ResourceKind.FORECAST)))
            if weather is not None and forecast is not None:
                city = self._identifier_of(ResourceKind.CURRENT_WEATHER, weather)
                logger.info("Using cached weather data", extra={"city": city})
                self.set_displayed(ResourceKind.CURRENT_WEATHER, city)
                self.set_displayed(ResourceKind.FORECAST, self._identifier_of(ResourceKind.FORECAST, forecast))
                return Result.success((weather, forecast))

            logger.info("No valid cached data, loading default city (%s)", self.default_identifier)
            weather_result = self.fetch(ResourceKind.CURRENT_WEATHER, self.default_identifier)
            forecast_result = self.fetch(ResourceKind.FORECAST, self.default_identifier)
            if not weather_result.ok:
                return weather_result
            if not forecast_result.ok:
                return forecast_result
            return Result.success((weather_result.value, forecast_result.value))
        except Exception as exc:
            logger.exception("Unexpected error during initial setup")
            return Result.failure(
                ErrorRecord.server(f"Failed to set up initial weather data: {exc}", cause=exc)
            )

    def get_air_quality(self, latitude: float, longitude: float) -> Result:
        """Online-only and uncached."""
        try:
            if not self.probe.is_connected():
                return Result.failure(ErrorRecord.network("No internet connection"))
            return self.remote.fetch_air_quality(latitude, longitude)
        except Exception as exc:
            logger.exception("Unexpected error getting air quality")
            return Result.failure(ErrorRecord.server(f"Unexpected error occurred: {exc}", cause=exc))

    # ------------------------------------------------------------------
    # Cache inspection
    # ------------------------------------------------------------------

    def has_cached(self, kind: ResourceKind, identifier: str) -> bool:
        try:
            return self._lookup_cached(kind, identifier) is not None
        except Exception:
            logger.exception("Error checking for cached data")
            return False

    def has_last_used(self, kind: ResourceKind) -> bool:
        return self.cache.is_valid(str(CacheKey.singleton(kind)))

    def get_cached(self, kind: ResourceKind, identifier: str) -> Result:
        try:
            cached = self._lookup_cached(kind, identifier)
        except Exception as exc:
            logger.exception("Error retrieving cached %s", kind.value)
            return Result.failure(ErrorRecord.cache(f"Failed to retrieve cached data: {exc}", cause=exc))
        if cached is None:
            return Result.failure(ErrorRecord.cache(f"No valid cached {kind.value} data for {identifier}"))
        return Result.success(cached)

    def get_last_used(self, kind: ResourceKind) -> Result:
        try:
            cached = self.cache.get(str(CacheKey.singleton(kind)))
        except Exception as exc:
            logger.exception("Error retrieving last-used %s", kind.value)
            return Result.failure(ErrorRecord.cache(f"Failed to retrieve cached data: {exc}", cause=exc))
        if cached is None:
            return Result.failure(ErrorRecord.cache(f"No valid cached {kind.value} data available"))
        return Result.success(cached)

    def is_connected(self) -> bool:
        try:
            return self.probe.is_connected()
        except Exception:
            logger.exception("Connectivity probe failed")
            return False

    # ------------------------------------------------------------------
    # Recent searches
    # ------------------------------------------------------------------

    def recent_searches(self) -> Result:
        try:
            return Result.success(self.history.entries())
        except Exception as exc:
            logger.exception("Error retrieving recent searches")
            return Result.failure(ErrorRecord.cache(f"Failed to retrieve recent searches: {exc}", cause=exc))

    def save_to_recent_searches(self, identifier: str) -> bool:
        try:
            return self.history.record(identifier)
        except Exception:
            logger.exception("Error saving to recent searches")
            return False

    def clear_recent_searches(self) -> bool:
        try:
            return self.history.clear()
        except Exception:
            logger.exception("Error clearing recent searches")
            return False


def build_repository(settings=None, *, store=None, probe=None, session=None) -> ResilientRepository:
    """Wire a repository from configuration. Every dependency can be overridden."""
    settings = settings or config.settings
    specs = {
        ResourceKind.CURRENT_WEATHER: replace(
            DEFAULT_RESOURCE_SPECS[ResourceKind.CURRENT_WEATHER], ttl_seconds=settings.weather_ttl_seconds
        ),
        ResourceKind.FORECAST: replace(
            DEFAULT_RESOURCE_SPECS[ResourceKind.FORECAST], ttl_seconds=settings.forecast_ttl_seconds
        ),
    }
    cache = CacheStore(store if store is not None else build_key_value_store(settings))
    if probe is None:
        probe = StaticConnectivityProbe(False) if settings.offline_mode else InterfaceConnectivityProbe()
    client = FetchClient.from_settings(settings, session=session)
    return ResilientRepository(
        OpenWeatherDataSource(client, specs),
        cache,
        probe,
        history=RecentHistory(cache, max_entries=settings.max_recent_searches),
        specs=specs,
        default_identifier=settings.default_city,
    )

