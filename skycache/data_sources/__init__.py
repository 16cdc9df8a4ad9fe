"""Remote data sources the repository can fetch through."""

from .base import (
    DEFAULT_RESOURCE_SPECS,
    CallableRemoteDataSource,
    RemoteDataSource,
    ResourceSpec,
)
from .openweather_client import OpenWeatherDataSource, decode_json_object

__all__ = [
    "DEFAULT_RESOURCE_SPECS",
    "CallableRemoteDataSource",
    "OpenWeatherDataSource",
    "RemoteDataSource",
    "ResourceSpec",
    "decode_json_object",
]
