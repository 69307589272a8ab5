"""
Geolocation gateway service.
"""

from typing import Dict, Optional

from fastapi import Query, Response

from shared.base_service import BaseService
from shared.config import GeoServiceConfig, get_config
from service_geo.app.adapters.geo_provider_client import GeoProviderClient
from service_geo.app.domain.resolver import GeoProvider, GeoResolver, ResolverConfig


def resolver_config_from_settings(settings: GeoServiceConfig) -> ResolverConfig:
    """Build the resolver configuration from loaded settings."""
    return ResolverConfig(
        api_key=settings.ip2locationio_key or None,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        annotate_cache_hits=settings.annotate_cache_hits,
        address_policy=settings.address_policy,
    )


class GeoService(BaseService):
    """Geolocation gateway service implementation."""

    def __init__(
        self,
        settings: Optional[GeoServiceConfig] = None,
        *,
        resolver_config: Optional[ResolverConfig] = None,
        provider: Optional[GeoProvider] = None,
    ):
        settings = settings or get_config()
        super().__init__(settings.service_name, settings)

        self.resolver_config = resolver_config or resolver_config_from_settings(settings)
        self.provider = provider or GeoProviderClient(
            settings.provider_url,
            timeout=settings.provider_timeout_seconds,
        )
        self.resolver = GeoResolver(
            self.resolver_config,
            self.provider,
            metrics=self.metrics,
        )

        if not self.resolver_config.api_key:
            self.logger.warning("IP2LOCATIONIO_KEY is not set; /geo will answer 500")
        self.logger.info(
            "Geo resolver configured",
            cache_ttl_seconds=self.resolver_config.cache_ttl_seconds,
            caching_enabled=self.resolver.cache is not None,
            annotate_cache_hits=self.resolver_config.annotate_cache_hits,
            address_policy=self.resolver_config.address_policy.value,
        )

        self._setup_geo_routes()

    def _setup_geo_routes(self):
        """Set up geolocation routes."""

        @self.app.get("/geo")
        async def geo(ip: Optional[str] = Query(default=None)):
            """Resolve an IP address through the provider."""
            result = await self.resolver.resolve(ip)
            return Response(
                content=result.body,
                media_type="application/json",
                headers={"X-Cache": "HIT" if result.cached else "MISS"},
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "cache": "enabled" if self.resolver.cache is not None else "disabled",
            "provider_key": "configured" if self.resolver_config.api_key else "missing",
        }

    async def _on_shutdown(self) -> None:
        if self.resolver.cache is not None:
            await self.resolver.cache.clear()


def create_app(
    config: Optional[ResolverConfig] = None,
    provider: Optional[GeoProvider] = None,
    settings: Optional[GeoServiceConfig] = None,
):
    """Create FastAPI application."""
    service = GeoService(settings, resolver_config=config, provider=provider)
    return service.app


def main():
    service = GeoService()
    service.run()


if __name__ == "__main__":
    main()
