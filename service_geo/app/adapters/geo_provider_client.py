"""
Geolocation provider client for the Geo service.
"""

from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Union

import httpx

from shared.logging import get_logger
from shared.errors import UpstreamReadError, UpstreamStatusError, UpstreamUnreachableError


DEFAULT_PROVIDER_URL = "https://api.ip2location.io/"


class GeoProviderClient:
    """Client for the ip2location.io lookup endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_PROVIDER_URL,
        *,
        timeout: Optional[float] = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("geo.provider_client")

    async def fetch(self, api_key: str, ip: Union[IPv4Address, IPv6Address]) -> str:
        """
        Look up ``ip`` and return the provider's raw response text.

        Raises UpstreamUnreachableError when the request cannot be sent,
        UpstreamStatusError on a non-2xx answer and UpstreamReadError when the
        body cannot be read to completion. Nothing is retried.
        """
        params = {"key": api_key, "ip": str(ip)}

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            request = client.build_request("GET", self.base_url, params=params)
            try:
                response = await client.send(request, stream=True)
            except httpx.RequestError as exc:
                self.logger.warning(
                    "Provider request failed",
                    ip=str(ip),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise UpstreamUnreachableError(details={"reason": type(exc).__name__})

            try:
                if response.is_error:
                    self.logger.warning(
                        "Provider returned error",
                        ip=str(ip),
                        status_code=response.status_code,
                    )
                    raise UpstreamStatusError(response.status_code)

                try:
                    await response.aread()
                except httpx.HTTPError as exc:
                    self.logger.warning(
                        "Provider read failed",
                        ip=str(ip),
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    raise UpstreamReadError(details={"reason": type(exc).__name__})

                self.logger.debug("Provider lookup succeeded", ip=str(ip), status_code=response.status_code)
                return response.text
            finally:
                await response.aclose()
