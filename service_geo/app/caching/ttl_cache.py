"""
In-process TTL cache for provider responses.
"""

import asyncio
import time
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Callable, Dict, Optional, Union

from shared.logging import get_logger


IPAddress = Union[IPv4Address, IPv6Address]


@dataclass(frozen=True)
class CacheEntry:
    """Provider response body with its absolute expiry time."""

    body: str
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class TTLCache:
    """
    Address-keyed cache with lazy expiry.

    Entries are only checked for staleness when read; a stale entry found by
    ``lookup`` is evicted in the same critical section. There is no capacity
    bound and no background sweeper.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[IPAddress, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self.logger = get_logger("geo.cache")

    def __len__(self) -> int:
        return len(self._entries)

    async def lookup(self, ip: IPAddress) -> Optional[str]:
        """Return the cached body for ``ip`` if present and fresh."""
        async with self._lock:
            entry = self._entries.get(ip)
            if entry is None:
                return None

            if entry.is_fresh(self._clock()):
                return entry.body

            del self._entries[ip]
            self.logger.debug("Evicted stale cache entry", ip=str(ip))
            return None

    async def store(self, ip: IPAddress, body: str, ttl_seconds: float) -> None:
        """Insert or overwrite the entry for ``ip``."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive; skip the store when caching is disabled")

        async with self._lock:
            self._entries[ip] = CacheEntry(body=body, expires_at=self._clock() + ttl_seconds)

    async def clear(self) -> None:
        """Drop every entry."""
        async with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        self.logger.info("Cache cleared", entries=dropped)
