"""TTL-incrementing traceroute built on the ICMP echo primitive."""

import logging
import socket
from contextlib import closing
from typing import Callable, List, Optional

from netdiag.models.errors import ProbeTimeoutError, ResolutionError, SocketError
from netdiag.models.hop import TIMEOUT_ADDRESS, Hop
from netdiag.services.dns_resolver import DNSResolver
from netdiag.services.geolocation import GeoLocator
from netdiag.services.icmp_probe import ICMPProbe, same_address
from netdiag.utils.ip_utils import resolve_target


logger = logging.getLogger(__name__)


HopCallback = Callable[[Hop], None]

DEFAULT_MAX_HOPS = 30
DEFAULT_PROBES_PER_HOP = 2
DEFAULT_PROBE_TIMEOUT = 3.0


class TracerouteEngine:
    """Enumerates the path to a target one TTL at a time.

    Hops are processed strictly in order: probes, reverse DNS, delivery to
    the progress callback, then geolocation and delivery to the geo callback,
    before the next TTL starts.

    Example:
        >>> engine = TracerouteEngine()
        >>> hops = engine.run("example.com", progress=lambda hop: print(hop.hop_number))
    """

    def __init__(
        self,
        probe: Optional[ICMPProbe] = None,
        resolver: Optional[DNSResolver] = None,
        geolocator: Optional[GeoLocator] = None,
        reverse_dns: bool = True,
    ):
        """Initialize the engine.

        Args:
            probe: ICMP primitive used to open sockets and exchange packets.
            resolver: Resolver for reverse-DNS lookups.
            geolocator: Geolocation client; None disables geolocation.
            reverse_dns: Whether to look up hostnames for responding hops.
        """
        self.probe = probe or ICMPProbe()
        self.resolver = resolver or DNSResolver()
        self.geolocator = geolocator
        self.reverse_dns = reverse_dns

    @staticmethod
    def _set_ttl(sock: socket.socket, family: int, ttl: int) -> None:
        if family == socket.AF_INET6:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS, ttl)
        else:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, ttl)

    @staticmethod
    def _deliver(callback: Optional[HopCallback], hop: Hop) -> None:
        if callback is None:
            return
        try:
            callback(hop)
        except Exception as e:
            logger.error(f"Hop callback failed for hop {hop.hop_number}: {e}", exc_info=True)

    def _probe_hop(
        self,
        sock: socket.socket,
        family: int,
        destination: str,
        ttl: int,
        probes_per_hop: int,
        probe_timeout: float,
    ) -> Hop:
        latencies: List[float] = []
        responder: Optional[str] = None

        for index in range(probes_per_hop):
            sequence = (ttl * probes_per_hop + index) & 0xFFFF
            try:
                source, elapsed_ms = self.probe.exchange(
                    sock, family, destination, sequence, probe_timeout, hop_reply=True
                )
            except (SocketError, ProbeTimeoutError) as e:
                logger.debug(f"TTL {ttl} probe {index}: {e}")
                continue
            except OSError as e:
                logger.debug(f"TTL {ttl} probe {index} receive error: {e}")
                continue
            responder = source
            latencies.append(elapsed_ms)

        if responder is None:
            return Hop(hop_number=ttl, ip_address=TIMEOUT_ADDRESS)
        return Hop(
            hop_number=ttl,
            ip_address=responder,
            latency_ms=sum(latencies) / len(latencies),
        )

    def _geolocate(self, hop: Hop) -> None:
        location = self.geolocator.lookup(hop.ip_address)
        if location is None:
            hop.mark_geolocation_failed()
        else:
            hop.apply_geolocation(location)

    def run(
        self,
        target: str,
        max_hops: int = DEFAULT_MAX_HOPS,
        probes_per_hop: int = DEFAULT_PROBES_PER_HOP,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        progress: Optional[HopCallback] = None,
        geo: Optional[HopCallback] = None,
    ) -> List[Hop]:
        """Trace the path to target.

        Args:
            target: Hostname, IPv4, or IPv6 literal.
            max_hops: Highest TTL to probe.
            probes_per_hop: Echo Requests sent per TTL.
            probe_timeout: Seconds to wait for each reply.
            progress: Called with each hop as soon as it is measured.
            geo: Called with each public hop after its geolocation lookup.

        Returns:
            List[Hop]: Hops in TTL order, ending at the destination or at
                max_hops. Empty if the target or socket cannot be set up.

        Raises:
            ValueError: If max_hops or probes_per_hop is below 1.
        """
        if max_hops < 1:
            raise ValueError("max_hops must be at least 1")
        if probes_per_hop < 1:
            raise ValueError("probes_per_hop must be at least 1")

        try:
            family, destination = resolve_target(target)
        except ResolutionError as e:
            logger.warning(f"Traceroute resolution failed: {e}")
            return []

        try:
            sock = self.probe.open_socket(family)
        except SocketError as e:
            logger.warning(f"Traceroute socket error for {target}: {e}")
            return []

        hops: List[Hop] = []
        with closing(sock):
            for ttl in range(1, max_hops + 1):
                try:
                    self._set_ttl(sock, family, ttl)
                except OSError as e:
                    logger.warning(f"Cannot set TTL {ttl} for {target}: {e}")
                    break

                hop = self._probe_hop(
                    sock, family, destination, ttl, probes_per_hop, probe_timeout
                )

                if not hop.is_timeout and self.reverse_dns:
                    hop.hostname = self.resolver.reverse_lookup(hop.ip_address)

                hops.append(hop)
                self._deliver(progress, hop)

                if self.geolocator and not hop.is_timeout and not hop.is_private_ip:
                    self._geolocate(hop)
                    self._deliver(geo, hop)

                if not hop.is_timeout and same_address(hop.ip_address, destination):
                    break

        family_name = "IPv6" if family == socket.AF_INET6 else "IPv4"
        logger.info(f"Traceroute to {target} ({destination}): {len(hops)} hops ({family_name})")
        return hops
