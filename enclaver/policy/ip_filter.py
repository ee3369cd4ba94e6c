"""Matching of IP addresses against CIDR networks."""

from __future__ import annotations

import ipaddress

IpAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _as_address(addr: str | IpAddress) -> IpAddress:
    if isinstance(addr, str):
        return ipaddress.ip_address(addr)
    return addr


class Pattern:
    """A single network; a bare address counts as a full-length prefix."""

    def __init__(self, pattern: str) -> None:
        self.network = ipaddress.ip_network(pattern, strict=False)

    def __repr__(self) -> str:
        return f"Pattern({str(self.network)!r})"

    def matches(self, addr: str | IpAddress) -> bool:
        return _as_address(addr) in self.network


class IpFilter:
    """A set of networks; an address matches if any network contains it."""

    def __init__(self) -> None:
        self._patterns: list[Pattern] = []

    @classmethod
    def allow_all(cls) -> IpFilter:
        ip_filter = cls()
        ip_filter.add("0.0.0.0/0")
        ip_filter.add("::/0")
        return ip_filter

    def add(self, pattern: str) -> None:
        """Add a network; raises ValueError if it does not parse."""
        self._patterns.append(Pattern(pattern))

    def matches(self, addr: str | IpAddress) -> bool:
        address = _as_address(addr)
        return any(pattern.matches(address) for pattern in self._patterns)