"""
Geo service caching package.

Holds the in-process TTL cache for provider responses. Entries live only as
long as the service instance; nothing is persisted.
"""

from .ttl_cache import CacheEntry, TTLCache

__all__ = ["CacheEntry", "TTLCache"]
