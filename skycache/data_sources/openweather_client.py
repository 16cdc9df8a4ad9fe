"""Request builders for the OpenWeatherMap-style REST API."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from skycache.data_sources.base import DEFAULT_RESOURCE_SPECS, RemoteDataSource, ResourceSpec
from skycache.fetch_client import FetchClient, RequestDescriptor, RequestMethod
from skycache.keys import ResourceKind
from skycache.result import Result
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="openweather_client")

AIR_POLLUTION_ENDPOINT = "air_pollution"


def decode_json_object(data: Any) -> dict:
    """Accept only a JSON object; anything else is a malformed response."""
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return dict(data)


class OpenWeatherDataSource(RemoteDataSource):
    """Fetch weather, forecast and air-quality payloads through a FetchClient."""

    def __init__(self, client: FetchClient, specs: Optional[Mapping[ResourceKind, ResourceSpec]] = None) -> None:
        self.client = client
        self.specs = dict(specs or DEFAULT_RESOURCE_SPECS)

    def describe(self, kind: ResourceKind, identifier: str) -> RequestDescriptor:
        """Descriptor for a lookup by city name; a 404 maps to NOT_FOUND for `identifier`."""
        city = identifier.strip()
        return RequestDescriptor(
            endpoint=self.specs[kind].endpoint,
            method=RequestMethod.GET,
            query_parameters={"q": city},
            resource_identifier=city,
        )

    def fetch(self, kind: ResourceKind, identifier: str) -> Result:
        logger.info("Getting %s for %s", kind.value, identifier)
        return self.client.request(self.describe(kind, identifier), decode_json_object)

    def fetch_air_quality(self, latitude: float, longitude: float) -> Result:
        logger.info("Getting air quality", extra={"lat": latitude, "lon": longitude})
        descriptor = RequestDescriptor(
            endpoint=AIR_POLLUTION_ENDPOINT,
            query_parameters={"lat": str(latitude), "lon": str(longitude)},
        )
        return self.client.request(descriptor, decode_json_object)
