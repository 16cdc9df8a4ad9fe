"""Configuration for the fetch/cache layer, read from SKYCACHE_* environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for skycache."""
    model_config = SettingsConfigDict(env_prefix="SKYCACHE_", extra="ignore")

    base_url: str = "https://api.openweathermap.org/data/2.5"
    api_key: str = ""
    units: str = "metric"  # options: metric, imperial, standard
    request_timeout_seconds: float = 15.0
    max_retries: int = 2

    cache_backend: str = "sqlite"  # options: sqlite, memory, redis
    cache_database_url: str = "sqlite:///./.skycache.db"
    cache_redis_url: str | None = None
    cache_redis_prefix: str = "skycache:"

    weather_ttl_seconds: int = 3600
    forecast_ttl_seconds: int = 10800
    max_recent_searches: int = 10
    default_city: str = "London"
    offline_mode: bool = False

    @field_validator("base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL; join_url adds the separator back."""
        return str(v).rstrip("/")

    @field_validator("max_retries", mode="after")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        """Negative retry counts make no sense; clamp to zero."""
        return max(0, v)


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'api_key'})}")
