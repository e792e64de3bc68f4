"""Private-range classification and address validation."""

from __future__ import annotations

import ipaddress

from .exceptions import InvalidAddress, NotRoutableAddress

_PRIVATE_NETWORKS = (
    ipaddress.IPv4Network("127.0.0.0/8"),
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
)


def is_private(address: str) -> bool:
    """Return True if *address* sits in a loopback or RFC1918 range."""
    try:
        addr = ipaddress.ip_address(address.strip())
    except ValueError:
        return False
    if addr.version != 4:
        return False
    return any(addr in net for net in _PRIVATE_NETWORKS)


def validate(address: str) -> str:
    """
    Return the trimmed literal if it may enter the pipeline.

    Raises InvalidAddress for non-IP strings and NotRoutableAddress for
    private ranges.
    """
    literal = address.strip()
    try:
        ipaddress.ip_address(literal)
    except ValueError:
        raise InvalidAddress(literal) from None
    if is_private(literal):
        raise NotRoutableAddress(literal)
    return literal
