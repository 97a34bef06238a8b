"""DNS server latency comparison.

Times A lookups against the system resolver and well-known public
resolvers, to help pick the fastest one.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from netdiag.services.dns_resolver import DNSResolver


PUBLIC_DNS_SERVERS: Tuple[Tuple[str, str, Optional[str]], ...] = (
    ("Google", "8.8.8.8", "2001:4860:4860::8888"),
    ("Google secondary", "8.8.4.4", "2001:4860:4860::8844"),
    ("Cloudflare", "1.1.1.1", "2606:4700:4700::1111"),
    ("Cloudflare secondary", "1.0.0.1", "2606:4700:4700::1001"),
    ("Quad9", "9.9.9.9", "2620:fe::fe"),
    ("OpenDNS", "208.67.222.222", "2620:119:35::35"),
    ("AdGuard", "94.140.14.14", "2a10:50c0::ad1:ff"),
    ("FDN", "80.67.169.12", "2001:910:800::12"),
)


@dataclass
class DNSLatencyResult:
    """Mean lookup latency for one DNS server.

    Attributes:
        name: Display name of the server.
        server: Server address, None for the system resolver.
        latency_ms: Mean latency over successful attempts, None if all failed.
    """

    name: str
    server: Optional[str]
    latency_ms: Optional[float]

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "server": self.server,
            "latency_ms": self.latency_ms,
        }


class DNSLatencyChecker:
    """Measures DNS lookup latency per server.

    Example:
        >>> checker = DNSLatencyChecker(DNSResolver())
        >>> for result in checker.rank_servers():
        ...     print(result.name, result.latency_ms)
    """

    def __init__(
        self,
        resolver: DNSResolver,
        domain: str = "google.com",
        attempts: int = 3,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the checker.

        Args:
            resolver: Resolver used for every lookup.
            domain: Name looked up (A record).
            attempts: Lookups per server.
            clock: Clock in seconds.
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.resolver = resolver
        self.domain = domain
        self.attempts = attempts
        self._clock = clock

    def measure(self, server: Optional[str] = None) -> Optional[float]:
        """Mean A-lookup latency for one server.

        Attempts that return no records are not counted.

        Args:
            server: Server address, None for the system resolver.

        Returns:
            Optional[float]: Milliseconds, None if every attempt failed.
        """
        times: List[float] = []
        for _ in range(self.attempts):
            start = self._clock()
            records = self.resolver.query(self.domain, "A", server)
            elapsed = (self._clock() - start) * 1000
            if records:
                times.append(elapsed)

        if not times:
            return None
        return sum(times) / len(times)

    def rank_servers(
        self,
        servers: Optional[List[Tuple[str, str]]] = None,
        include_system: bool = True,
    ) -> List[DNSLatencyResult]:
        """Measure every server and sort fastest first.

        Args:
            servers: (name, address) pairs; defaults to PUBLIC_DNS_SERVERS IPv4.
            include_system: Also measure the system resolver.

        Returns:
            List[DNSLatencyResult]: Sorted by latency; failed servers last.
        """
        if servers is None:
            servers = [(name, ipv4) for name, ipv4, _ in PUBLIC_DNS_SERVERS]

        results: List[DNSLatencyResult] = []
        if include_system:
            results.append(DNSLatencyResult("System resolver", None, self.measure(None)))
        for name, address in servers:
            results.append(DNSLatencyResult(name, address, self.measure(address)))

        results.sort(key=lambda r: (r.latency_ms is None, r.latency_ms or 0.0))
        return results
