"""Egress policy deciding which hosts an enclave may reach."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable

from enclaver.manifest import Egress
from enclaver.policy.domain_filter import DomainFilter
from enclaver.policy.ip_filter import IpFilter

_log = logging.getLogger(__name__)


def load_filters(spec: Iterable[str] | None) -> tuple[DomainFilter, IpFilter]:
    """Split patterns into a domain filter and an IP filter."""
    domains = DomainFilter()
    ips = IpFilter()
    for pattern in spec or ():
        try:
            ips.add(pattern)
        except ValueError:
            domains.add(pattern)
    return domains, ips


class EgressPolicy:
    """Allow and deny lists for domains and IP networks."""

    def __init__(self, spec: Egress) -> None:
        self._domain_allow, self._ip_allow = load_filters(spec.allow)
        self._domain_deny, self._ip_deny = load_filters(spec.deny)

    @classmethod
    def allow_all(cls) -> EgressPolicy:
        policy = cls(Egress())
        policy._domain_allow = DomainFilter.allow_all()
        policy._ip_allow = IpFilter.allow_all()
        return policy

    def is_host_allowed(self, host: str) -> bool:
        _log.debug("is_host_allowed(%s)", host)

        # IPv6 addresses arrive bracketed, e.g. [::1]
        host = host.removeprefix("[").removesuffix("]")

        try:
            addr = ipaddress.ip_address(host)
        except ValueError:
            return self._domain_allow.matches(host) and not self._domain_deny.matches(host)
        return self._ip_allow.matches(addr) and not self._ip_deny.matches(addr)