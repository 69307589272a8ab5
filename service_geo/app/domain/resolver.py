"""
Geolocation resolver: validation, cache lookup, provider fetch, write-through.
"""

import json
import time
from dataclasses import dataclass
from typing import Optional, Protocol, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import BadInputError, MisconfiguredError, UpstreamError

from ..caching.ttl_cache import TTLCache
from .validation import AddressPolicy, IPAddress, enforce_address_policy, parse_ip_address

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class GeoProvider(Protocol):
    async def fetch(self, api_key: str, ip: IPAddress) -> str:
        ...


@dataclass(frozen=True)
class ResolverConfig:
    """Resolver settings, fixed for the lifetime of the service."""

    api_key: Optional[str]
    cache_ttl_seconds: float = 0
    annotate_cache_hits: bool = False
    address_policy: AddressPolicy = AddressPolicy.ALLOW_ALL

    @property
    def caching_enabled(self) -> bool:
        return self.cache_ttl_seconds > 0


@dataclass(frozen=True)
class GeoLookupResult:
    """Successful lookup: the body to return and whether it came from cache."""

    body: str
    address: IPAddress
    cached: bool


def annotate_cached_body(body: str) -> str:
    """
    Inject ``"cached": true`` into a JSON object body.

    Bodies that are not JSON objects are returned unchanged.
    """
    try:
        payload = json.loads(body)
    except ValueError:
        return body

    if not isinstance(payload, dict):
        return body

    payload["cached"] = True
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class GeoResolver:
    """Resolves IP addresses through the provider, memoizing successful bodies."""

    def __init__(
        self,
        config: ResolverConfig,
        provider: GeoProvider,
        *,
        cache: Optional[TTLCache] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.provider = provider
        self.metrics = metrics
        self.logger = get_logger("geo.resolver")

        # With caching disabled no cache exists at all.
        self.cache: Optional[TTLCache] = None
        if config.caching_enabled:
            self.cache = cache if cache is not None else TTLCache()

    async def resolve(self, raw_ip: Optional[str]) -> GeoLookupResult:
        """Run one lookup; any failure is raised as a GeoGatewayError."""
        api_key = self.config.api_key
        if not api_key:
            self.logger.error("Provider API key is not configured; rejecting request")
            raise MisconfiguredError("missing IP2LOCATIONIO_KEY")

        try:
            ip = parse_ip_address(raw_ip)
            enforce_address_policy(ip, self.config.address_policy)
        except BadInputError as exc:
            self.logger.info("Rejected lookup request", ip=raw_ip, reason=exc.details.get("reason"))
            raise

        cached_body = await self._cache_lookup(ip)
        if cached_body is not None:
            body = annotate_cached_body(cached_body) if self.config.annotate_cache_hits else cached_body
            return GeoLookupResult(body=body, address=ip, cached=True)

        body = await self._fetch(api_key, ip)

        if self.cache is not None:
            await self._cache_store(ip, body)

        return GeoLookupResult(body=body, address=ip, cached=False)

    async def _cache_lookup(self, ip: IPAddress) -> Optional[str]:
        if self.cache is None:
            return None

        try:
            body = await self.cache.lookup(ip)
        except Exception as exc:
            self.logger.error("Cache lookup error; treating as miss", ip=str(ip), error=str(exc))
            body = None

        if self.metrics:
            self.metrics.record_cache_access(hit=body is not None)
        self.logger.debug("Cache lookup", ip=str(ip), hit=body is not None)
        return body

    async def _cache_store(self, ip: IPAddress, body: str) -> None:
        try:
            await self.cache.store(ip, body, self.config.cache_ttl_seconds)
        except Exception as exc:
            self.logger.error("Cache store error; response not cached", ip=str(ip), error=str(exc))

    async def _fetch(self, api_key: str, ip: IPAddress) -> str:
        start_time = time.time()
        try:
            body = await self.provider.fetch(api_key, ip)
        except UpstreamError as exc:
            self.logger.warning(
                "Provider lookup failed",
                ip=str(ip),
                kind=exc.kind,
                code=exc.code,
                details=exc.details,
            )
            if self.metrics:
                self.metrics.record_upstream_failure(exc.kind)
                self.metrics.observe_histogram(
                    "upstream_request_duration_seconds",
                    time.time() - start_time,
                    outcome="error",
                )
            raise

        if self.metrics:
            self.metrics.observe_histogram(
                "upstream_request_duration_seconds",
                time.time() - start_time,
                outcome="success",
            )
        return body
