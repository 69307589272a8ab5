"""
Shared configuration management for the Geo Gateway.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AddressPolicy(str, Enum):
    """Which syntactically valid addresses may be forwarded to the provider."""

    ALLOW_ALL = "allow_all"
    PUBLIC_ONLY = "public_only"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GEO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000


class GeoServiceConfig(BaseConfig):
    """Geolocation service configuration."""

    service_name: str = "geo"

    # Provider
    ip2locationio_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("IP2LOCATIONIO_KEY", "GEO_API_KEY"),
    )
    provider_url: str = "https://api.ip2location.io/"
    provider_timeout_seconds: Optional[float] = Field(default=10.0, gt=0)

    # Caching
    cache_ttl_seconds: float = Field(default=300, ge=0)
    annotate_cache_hits: bool = False

    # Validation
    address_policy: AddressPolicy = AddressPolicy.ALLOW_ALL


def get_config() -> GeoServiceConfig:
    """Load the geolocation service configuration from the environment."""
    return GeoServiceConfig()
