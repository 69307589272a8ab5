"""
Adapters package for the Geo Service.

Contains the HTTP client wrapper for the geolocation provider. Adapters
translate transport failures into shared errors and never retry.
"""

from .geo_provider_client import DEFAULT_PROVIDER_URL, GeoProviderClient

__all__ = [
    "DEFAULT_PROVIDER_URL",
    "GeoProviderClient",
]
