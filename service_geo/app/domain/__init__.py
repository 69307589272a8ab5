"""
Domain package for the Geo Service.

- validation: address parsing and the public-address policy
- resolver: the per-request lookup state machine
"""

from .resolver import GeoLookupResult, GeoResolver, ResolverConfig, annotate_cached_body
from .validation import AddressPolicy, enforce_address_policy, parse_ip_address

__all__ = [
    "AddressPolicy",
    "GeoLookupResult",
    "GeoResolver",
    "ResolverConfig",
    "annotate_cached_body",
    "enforce_address_policy",
    "parse_ip_address",
]
