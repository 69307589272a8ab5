"""
Address validation for geolocation lookups.
"""

from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Optional, Union

from shared.config import AddressPolicy
from shared.errors import BadInputError


IPAddress = Union[IPv4Address, IPv6Address]


def parse_ip_address(raw: Optional[str]) -> IPAddress:
    """Parse ``raw`` as an IPv4 or IPv6 address or raise BadInputError."""
    if not raw:
        raise BadInputError("invalid ip", details={"reason": "missing"})

    try:
        ip = ip_address(raw)
    except ValueError:
        raise BadInputError("invalid ip", details={"reason": "unparseable"})

    # Zone IDs (fe80::1%eth0) are host-local and not part of the address.
    if getattr(ip, "scope_id", None):
        raise BadInputError("invalid ip", details={"reason": "scoped_address"})

    return ip


def enforce_address_policy(ip: IPAddress, policy: AddressPolicy) -> None:
    """Reject non-global addresses when ``policy`` is PUBLIC_ONLY."""
    if policy is AddressPolicy.ALLOW_ALL:
        return

    # is_global is False for loopback, private, link-local, reserved and
    # unspecified ranges; multicast can still be global, so check it too.
    if not ip.is_global or ip.is_multicast:
        raise BadInputError("ip is not publicly routable", details={"reason": "non_public"})
