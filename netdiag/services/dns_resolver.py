"""DNS resolver: system resolver or a raw UDP query to an explicit server."""

import logging
import random
import socket
from contextlib import closing
from typing import Callable, List, Optional, Union

import dns.exception
import dns.resolver

from netdiag.models.dns_record import DNSRecord, RecordType, parse_record_type
from netdiag.models.errors import DecodeError, ResolutionError
from netdiag.services.dns_wire import (
    HEADER_SIZE,
    decode_response,
    encode_query,
    parse_header,
)
from netdiag.utils.ip_utils import build_ptr_query, is_ip_literal, resolve_target


logger = logging.getLogger(__name__)


DNS_PORT = 53
DEFAULT_TIMEOUT = 3.0
RECV_BUFFER_SIZE = 4096


class DNSResolver:
    """Runs one DNS query per call.

    Without a server the platform resolver configuration is used through
    dnspython; with a server a single UDP datagram is exchanged (no retries,
    no TCP fallback, truncation ignored). Every failure yields an empty list.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        port: int = DNS_PORT,
        socket_factory: Callable[..., socket.socket] = socket.socket,
        system_resolver_factory: Callable[[], dns.resolver.Resolver] = dns.resolver.Resolver,
    ):
        """Initialize the resolver.

        Args:
            timeout: Wait window in seconds for either path.
            port: UDP port of explicit servers.
            socket_factory: Callable with the socket.socket signature.
            system_resolver_factory: Builds a dnspython resolver configured
                from the operating system.
        """
        self.timeout = timeout
        self.port = port
        self._socket_factory = socket_factory
        self._system_resolver_factory = system_resolver_factory

    def query(
        self,
        domain: str,
        record_type: Union[str, int, RecordType],
        server: Optional[str] = None,
    ) -> List[DNSRecord]:
        """Look up records of one type for domain.

        Args:
            domain: Name to query.
            record_type: Type name (A, AAAA, MX, NS, TXT, CNAME, SOA, PTR, ANY),
                number, or RecordType.
            server: Explicit server address; None uses the system resolver.

        Returns:
            List[DNSRecord]: Decoded answer records, empty on any failure.
        """
        rr_type = parse_record_type(record_type)
        if rr_type is None:
            logger.warning(f"Unsupported record type: {record_type}")
            return []

        domain = domain.strip()
        if not domain:
            return []

        if server:
            return self._query_server(domain, rr_type, server)
        return self._query_system(domain, rr_type)

    def _query_system(self, domain: str, rr_type: RecordType) -> List[DNSRecord]:
        resolver = self._system_resolver_factory()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout

        try:
            answer = resolver.resolve(domain, rr_type.name, raise_on_no_answer=False)
        except dns.resolver.NXDOMAIN:
            logger.debug(f"NXDOMAIN for {domain} {rr_type.name}")
            return []
        except (
            dns.resolver.NoNameservers,
            dns.exception.Timeout,
            dns.exception.DNSException,
        ) as e:
            logger.warning(
                f"System resolver failed for {domain} {rr_type.name}: {type(e).__name__}"
            )
            return []

        # Re-decode the full reply so both paths format records identically
        # and CNAME intermediates are kept.
        return decode_response(answer.response.to_wire(), domain)

    def _query_server(
        self, domain: str, rr_type: RecordType, server: str
    ) -> List[DNSRecord]:
        transaction_id = random.randint(1, 0xFFFF)
        try:
            packet = encode_query(domain, rr_type, transaction_id)
        except ValueError as e:
            logger.warning(f"Cannot encode query for {domain}: {e}")
            return []

        try:
            family, address = resolve_target(server)
        except ResolutionError as e:
            logger.warning(f"DNS server resolution failed: {e}")
            return []

        try:
            sock = self._socket_factory(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as e:
            logger.warning(f"Cannot open UDP socket: {e}")
            return []

        with closing(sock):
            try:
                sock.settimeout(self.timeout)
                sock.sendto(packet, (address, self.port))
                data = sock.recv(RECV_BUFFER_SIZE)
            except socket.timeout:
                logger.info(f"DNS query to {server} timed out after {self.timeout}s")
                return []
            except OSError as e:
                logger.warning(f"DNS query to {server} failed: {e}")
                return []

        if len(data) <= HEADER_SIZE:
            logger.debug(f"Short DNS reply from {server}: {len(data)} bytes")
            return []

        try:
            header = parse_header(data)
        except DecodeError as e:
            logger.debug(f"Malformed DNS reply from {server}: {e}")
            return []
        if header.transaction_id != transaction_id:
            logger.warning(
                f"Discarding DNS reply from {server} with transaction ID "
                f"0x{header.transaction_id:04x} (expected 0x{transaction_id:04x})"
            )
            return []

        return decode_response(data, domain)

    def reverse_lookup(self, ip: str, server: Optional[str] = None) -> Optional[str]:
        """Resolve an address to a hostname via PTR.

        Args:
            ip: IPv4 or IPv6 address.
            server: Explicit server; None uses the system resolver.

        Returns:
            Optional[str]: Hostname without trailing dot, None when the lookup
                fails or only echoes the address back.
        """
        if not is_ip_literal(ip):
            return None

        if server:
            records = self.query(build_ptr_query(ip), RecordType.PTR, server)
            names = [r.value for r in records if r.type == RecordType.PTR.name]
            hostname = names[0] if names else None
        else:
            resolver = self._system_resolver_factory()
            resolver.timeout = self.timeout
            resolver.lifetime = self.timeout
            try:
                answer = resolver.resolve_address(ip)
            except dns.exception.DNSException as e:
                logger.debug(f"Reverse lookup failed for {ip}: {type(e).__name__}")
                return None
            hostname = str(answer[0]).rstrip(".") if len(answer) else None

        if not hostname or hostname == ip:
            return None
        return hostname
