"""
Geo Service package.

Resolves an IP address to geolocation data by proxying to ip2location.io,
memoizing provider responses for a configurable TTL.

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.adapters: HTTP client for the geolocation provider.
- app.caching: In-process TTL cache.
- app.domain: Address validation and the lookup resolver.
"""
