"""IP address utilities for probe targets."""

import ipaddress
import socket
from typing import Tuple

from netdiag.models.errors import ResolutionError


# Ranges treated as "local network": no geolocation is attempted for them.
PRIVATE_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("::1/128"),
]


def is_valid_ipv4(ip: str) -> bool:
    """Validate if string is a valid IPv4 address.

    Args:
        ip: IP address string to validate.

    Returns:
        bool: True if valid IPv4, False otherwise.

    Examples:
        >>> is_valid_ipv4("203.0.113.45")
        True
        >>> is_valid_ipv4("256.0.0.1")
        False
        >>> is_valid_ipv4("::1")
        False
    """
    try:
        addr = ipaddress.ip_address(ip)
        return isinstance(addr, ipaddress.IPv4Address)
    except ValueError:
        return False


def is_valid_ipv6(ip: str) -> bool:
    """Validate if string is a valid IPv6 address.

    Examples:
        >>> is_valid_ipv6("2001:db8::1")
        True
        >>> is_valid_ipv6("192.0.2.1")
        False
    """
    try:
        addr = ipaddress.ip_address(ip)
        return isinstance(addr, ipaddress.IPv6Address)
    except ValueError:
        return False


def is_ip_literal(target: str) -> bool:
    """Check if target is a numeric IPv4 or IPv6 address.

    Args:
        target: Hostname or address string.

    Returns:
        bool: True for IP literals, False for hostnames.
    """
    return is_valid_ipv4(target) or is_valid_ipv6(target)


def is_private_address(ip: str) -> bool:
    """Check if address is private, link-local, or loopback.

    Args:
        ip: IPv4 or IPv6 address string.

    Returns:
        bool: True if the address falls in a local range. Strings that are
            not addresses (e.g. the timeout sentinel) return False.

    Examples:
        >>> is_private_address("192.168.1.1")
        True
        >>> is_private_address("172.32.0.1")
        False
        >>> is_private_address("fd00::1")
        True
    """
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(
        addr.version == network.version and addr in network
        for network in PRIVATE_NETWORKS
    )


def reverse_ip(ip: str) -> str:
    """Convert an IPv4 address to reversed-octet form.

    For example 203.0.113.45 becomes 45.113.0.203.

    Args:
        ip: IPv4 address in dotted-quad format.

    Returns:
        str: Reversed IP address.

    Raises:
        ValueError: If IP is not a valid IPv4 address.

    Examples:
        >>> reverse_ip("203.0.113.45")
        '45.113.0.203'
    """
    if not is_valid_ipv4(ip):
        raise ValueError(f"Invalid IPv4 address: {ip}")

    octets = ip.split(".")
    return ".".join(reversed(octets))


def build_ptr_query(ip: str) -> str:
    """Build the reverse-lookup (PTR) query name for an address.

    Args:
        ip: IPv4 or IPv6 address.

    Returns:
        str: Name under in-addr.arpa or ip6.arpa, without a trailing dot.

    Raises:
        ValueError: If ip is not an IP address.

    Examples:
        >>> build_ptr_query("203.0.113.45")
        '45.113.0.203.in-addr.arpa'
    """
    if is_valid_ipv4(ip):
        return f"{reverse_ip(ip)}.in-addr.arpa"
    if is_valid_ipv6(ip):
        return ipaddress.ip_address(ip).reverse_pointer
    raise ValueError(f"Invalid IP address: {ip}")


def resolve_target(target: str, prefer_ipv4: bool = True) -> Tuple[int, str]:
    """Resolve a hostname or literal to a single address.

    Args:
        target: Hostname, IPv4 literal, or IPv6 literal.
        prefer_ipv4: Pick an IPv4 result when both families are returned.

    Returns:
        Tuple[int, str]: (address family, numeric address).

    Raises:
        ResolutionError: If resolution fails or yields no usable address.
    """
    if not target:
        raise ResolutionError("Empty target")

    try:
        infos = socket.getaddrinfo(target, None, socket.AF_UNSPEC, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"Cannot resolve {target}: {e}") from e

    candidates = [
        (family, sockaddr[0])
        for family, _, _, _, sockaddr in infos
        if family in (socket.AF_INET, socket.AF_INET6)
    ]
    if not candidates:
        raise ResolutionError(f"No address found for {target}")

    if prefer_ipv4:
        for family, address in candidates:
            if family == socket.AF_INET:
                return family, address
    return candidates[0]
