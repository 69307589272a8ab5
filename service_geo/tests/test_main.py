"""
Unit tests for the Geo service HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from service_geo.app.main import GeoService, create_app, resolver_config_from_settings
from service_geo.app.domain.resolver import ResolverConfig
from service_geo.app.domain.validation import AddressPolicy
from shared.config import GeoServiceConfig
from shared.errors import UpstreamReadError, UpstreamStatusError, UpstreamUnreachableError


PROVIDER_BODY = '{"ip":"8.8.8.8","country_code":"US","region_name":"California","city_name":"Mountain View"}'


class FakeProvider:
    """Counting provider stub."""

    def __init__(self, body: str = PROVIDER_BODY, error: Exception = None):
        self.body = body
        self.error = error
        self.calls = []

    async def fetch(self, api_key, ip):
        self.calls.append((api_key, str(ip)))
        if self.error is not None:
            raise self.error
        return self.body


def make_client(config: ResolverConfig, provider: FakeProvider) -> TestClient:
    return TestClient(create_app(config=config, provider=provider))


class TestGeoEndpoint:
    """Test cases for GET /geo."""

    @pytest.fixture
    def provider(self):
        """Create provider stub."""
        return FakeProvider()

    @pytest.mark.parametrize("ttl", [0, 60])
    def test_returns_400_on_invalid_ip(self, provider, ttl):
        """Test an unparseable address."""
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=ttl), provider) as client:
            response = client.get("/geo", params={"ip": "not-an-ip"})

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_INPUT"
        assert provider.calls == []

    def test_returns_400_when_ip_missing(self, provider):
        """Test the ip parameter is required."""
        with make_client(ResolverConfig(api_key="testkey"), provider) as client:
            response = client.get("/geo")

        assert response.status_code == 400

    def test_returns_500_when_api_key_missing(self, provider):
        """Test a service started without a provider key."""
        with make_client(ResolverConfig(api_key=None), provider) as client:
            response = client.get("/geo", params={"ip": "1.1.1.1"})

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "MISCONFIGURED"
        assert body["message"] == "missing IP2LOCATIONIO_KEY"
        assert provider.calls == []

    def test_valid_ip_with_cache_disabled_calls_provider_once(self, provider):
        """Test the full provider path with caching off."""
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=0), provider) as client:
            response = client.get("/geo", params={"ip": "1.1.1.1"})

        assert response.status_code not in (400, 500)
        assert response.status_code == 200
        assert provider.calls == [("testkey", "1.1.1.1")]

    def test_success_forwards_body_as_json(self, provider):
        """Test the provider text is returned verbatim with a JSON content type."""
        with make_client(ResolverConfig(api_key="testkey"), provider) as client:
            response = client.get("/geo", params={"ip": "8.8.8.8"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.text == PROVIDER_BODY
        assert response.headers["x-cache"] == "MISS"

    def test_repeated_requests_with_cache_enabled(self, provider):
        """Test back-to-back requests: same status, second served from cache."""
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=60), provider) as client:
            first = client.get("/geo", params={"ip": "8.8.8.8"})
            second = client.get("/geo", params={"ip": "8.8.8.8"})

        assert first.status_code == second.status_code == 200
        assert len(provider.calls) == 1
        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert second.text == first.text

    def test_cached_responses_annotated_when_enabled(self, provider):
        """Test only the cache hit carries the cached marker."""
        config = ResolverConfig(api_key="testkey", cache_ttl_seconds=60, annotate_cache_hits=True)
        with make_client(config, provider) as client:
            first = client.get("/geo", params={"ip": "1.1.1.1"})
            second = client.get("/geo", params={"ip": "1.1.1.1"})

        assert first.status_code == second.status_code == 200
        assert '"cached":true' not in first.text
        assert '"cached":true' in second.text
        assert second.json()["city_name"] == "Mountain View"

    def test_cache_disabled_never_annotates(self, provider):
        """Test annotation mode without a cache."""
        config = ResolverConfig(api_key="testkey", cache_ttl_seconds=0, annotate_cache_hits=True)
        with make_client(config, provider) as client:
            first = client.get("/geo", params={"ip": "1.1.1.1"})
            second = client.get("/geo", params={"ip": "1.1.1.1"})

        assert len(provider.calls) == 2
        assert '"cached":true' not in first.text
        assert '"cached":true' not in second.text

    @pytest.mark.parametrize("error,code", [
        (UpstreamUnreachableError(), "UPSTREAM_UNREACHABLE"),
        (UpstreamStatusError(401), "UPSTREAM_ERROR"),
        (UpstreamReadError(), "UPSTREAM_READ_FAILURE"),
    ])
    def test_upstream_failures_return_502(self, error, code):
        """Test every provider failure collapses to 502."""
        provider = FakeProvider(error=error)
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=60), provider) as client:
            response = client.get("/geo", params={"ip": "8.8.8.8"})

        assert response.status_code == 502
        assert response.json()["code"] == code

    @pytest.mark.parametrize("raw_ip", ["127.0.0.1", "192.168.1.1"])
    def test_public_only_policy_rejects_private_ranges(self, provider, raw_ip):
        """Test loopback and private addresses under the public-only policy."""
        config = ResolverConfig(api_key="testkey", address_policy=AddressPolicy.PUBLIC_ONLY)
        with make_client(config, provider) as client:
            response = client.get("/geo", params={"ip": raw_ip})

        assert response.status_code == 400
        assert provider.calls == []

    def test_request_id_echoed(self, provider):
        """Test correlation id propagation."""
        with make_client(ResolverConfig(api_key="testkey"), provider) as client:
            response = client.get("/geo", params={"ip": "8.8.8.8"}, headers={"X-Request-ID": "req-123"})
            generated = client.get("/geo", params={"ip": "8.8.8.8"})

        assert response.headers["x-request-id"] == "req-123"
        assert generated.headers["x-request-id"]

    def test_zone_id_rejected(self, provider):
        """Test a scoped IPv6 address is not forwarded."""
        with make_client(ResolverConfig(api_key="testkey"), provider) as client:
            response = client.get("/geo", params={"ip": "2001:4860:4860::8888%eth0"})

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "scoped_address"
        assert provider.calls == []


class TestServiceEndpoints:
    """Test cases for health and metrics endpoints."""

    def test_request_validation_error_is_bad_input(self):
        """Test malformed parameters on a typed route map to BAD_INPUT."""
        service = GeoService(
            GeoServiceConfig(),
            resolver_config=ResolverConfig(api_key="testkey"),
            provider=FakeProvider(),
        )

        async def recent_lookups(limit: int):
            return {"limit": limit}

        service.app.add_api_route("/lookups", recent_lookups, methods=["GET"])

        with TestClient(service.app) as client:
            response = client.get("/lookups", params={"limit": "many"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "BAD_INPUT"
        assert body["message"] == "Invalid request"
        assert body["details"]["errors"][0]["loc"] == ["query", "limit"]
        assert set(body) == {"trace_id", "code", "message", "details"}

    def test_health_reports_dependencies(self):
        """Test health output with cache on and key configured."""
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=60), FakeProvider()) as client:
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "geo"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "enabled", "provider_key": "configured"}

    def test_health_reports_missing_key_and_disabled_cache(self):
        """Test health output for a misconfigured service."""
        with make_client(ResolverConfig(api_key=None, cache_ttl_seconds=0), FakeProvider()) as client:
            response = client.get("/health")

        assert response.json()["dependencies"] == {"cache": "disabled", "provider_key": "missing"}

    def test_metrics_endpoint(self):
        """Test Prometheus exposition includes cache counters."""
        with make_client(ResolverConfig(api_key="testkey", cache_ttl_seconds=60), FakeProvider()) as client:
            client.get("/geo", params={"ip": "8.8.8.8"})
            client.get("/geo", params={"ip": "8.8.8.8"})
            response = client.get("/metrics")

        assert response.status_code == 200
        assert 'cache_hits_total{cache_type="geo"} 1.0' in response.text
        assert 'cache_misses_total{cache_type="geo"} 1.0' in response.text

    def test_shutdown_clears_cache(self):
        """Test the cache does not outlive the service."""
        provider = FakeProvider()
        service = GeoService(
            GeoServiceConfig(),
            resolver_config=ResolverConfig(api_key="testkey", cache_ttl_seconds=60),
            provider=provider,
        )

        with TestClient(service.app) as client:
            client.get("/geo", params={"ip": "8.8.8.8"})
            assert len(service.resolver.cache) == 1

        assert len(service.resolver.cache) == 0


class TestSettings:
    """Test cases for environment-driven configuration."""

    def test_settings_from_environment(self, monkeypatch):
        """Test the provider key and cache settings are read from env."""
        monkeypatch.setenv("IP2LOCATIONIO_KEY", "envkey")
        monkeypatch.setenv("GEO_CACHE_TTL_SECONDS", "120")
        monkeypatch.setenv("GEO_ANNOTATE_CACHE_HITS", "true")
        monkeypatch.setenv("GEO_ADDRESS_POLICY", "public_only")

        config = resolver_config_from_settings(GeoServiceConfig(_env_file=None))

        assert config.api_key == "envkey"
        assert config.cache_ttl_seconds == 120
        assert config.annotate_cache_hits is True
        assert config.address_policy is AddressPolicy.PUBLIC_ONLY

    def test_settings_defaults(self, monkeypatch):
        """Test defaults when nothing is configured."""
        monkeypatch.delenv("IP2LOCATIONIO_KEY", raising=False)
        monkeypatch.delenv("GEO_API_KEY", raising=False)
        monkeypatch.delenv("GEO_CACHE_TTL_SECONDS", raising=False)
        monkeypatch.delenv("GEO_ADDRESS_POLICY", raising=False)

        settings = GeoServiceConfig(_env_file=None)
        config = resolver_config_from_settings(settings)

        assert config.api_key is None
        assert config.cache_ttl_seconds == 300
        assert config.address_policy is AddressPolicy.ALLOW_ALL
        assert settings.port == 3000
        assert settings.provider_url == "https://api.ip2location.io/"

    def test_empty_key_treated_as_missing(self, monkeypatch):
        """Test an empty key is a misconfiguration."""
        monkeypatch.setenv("IP2LOCATIONIO_KEY", "")

        config = resolver_config_from_settings(GeoServiceConfig(_env_file=None))

        assert config.api_key is None

    def test_address_policy_parsed_as_enum(self, monkeypatch):
        """Test the policy setting is validated by the settings model."""
        monkeypatch.setenv("GEO_ADDRESS_POLICY", "public_only")

        settings = GeoServiceConfig(_env_file=None)

        assert settings.address_policy is AddressPolicy.PUBLIC_ONLY

    def test_unknown_address_policy_rejected(self, monkeypatch):
        """Test an unknown policy fails at startup."""
        monkeypatch.setenv("GEO_ADDRESS_POLICY", "block_everything")

        with pytest.raises(ValidationError):
            GeoServiceConfig(_env_file=None)
