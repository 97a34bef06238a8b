"""ICMP echo probe over non-privileged datagram sockets."""

import ipaddress
import logging
import os
import random
import socket
import struct
import time
from contextlib import closing
from typing import Callable, List, Optional, Tuple

from netdiag.models.echo_result import EchoResult
from netdiag.models.errors import ProbeTimeoutError, ResolutionError, SocketError
from netdiag.utils.checksum import internet_checksum
from netdiag.utils.ip_utils import resolve_target


logger = logging.getLogger(__name__)


ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129
ICMP_TIME_EXCEEDED = 11
ICMPV6_TIME_EXCEEDED = 3

IPV6_HEADER_SIZE = 40

PACKET_SIZE = 64
RECV_BUFFER_SIZE = 1024
DEFAULT_TIMEOUT = 1.0


def process_identifier() -> int:
    """Low 16 bits of the process id, used as the ICMP identifier."""
    return os.getpid() & 0xFFFF


def build_echo_request(
    family: int, identifier: int, sequence: int, size: int = PACKET_SIZE
) -> bytes:
    """Build an ICMP or ICMPv6 Echo Request padded to a fixed size.

    The checksum is filled in for IPv4 only. For ICMPv6 the kernel computes
    it over the pseudo-header, so the field is left zero.

    Args:
        family: socket.AF_INET or socket.AF_INET6.
        identifier: 16-bit ICMP identifier.
        sequence: 16-bit sequence number.
        size: Total packet size in bytes (header included, minimum 8).

    Returns:
        bytes: Packet ready to send.
    """
    if size < 8:
        raise ValueError("ICMP packet size must be at least 8 bytes")

    icmp_type = ICMPV6_ECHO_REQUEST if family == socket.AF_INET6 else ICMP_ECHO_REQUEST
    padding = bytes(size - 8)
    header = struct.pack("!BBHHH", icmp_type, 0, 0, identifier & 0xFFFF, sequence & 0xFFFF)
    if family == socket.AF_INET6:
        return header + padding

    checksum = internet_checksum(header + padding)
    header = struct.pack(
        "!BBHHH", icmp_type, 0, checksum, identifier & 0xFFFF, sequence & 0xFFFF
    )
    return header + padding


def _ipv4_header_length(data: bytes) -> int:
    if len(data) >= 20 and data[0] >> 4 == 4:
        return (data[0] & 0x0F) * 4
    return 0


def parse_icmp_header(data: bytes) -> Optional[Tuple[int, int, int]]:
    """Extract (type, identifier, sequence) from a received datagram.

    Some platforms deliver the IPv4 header in front of the ICMP message on
    datagram sockets; it is skipped when present.

    Args:
        data: Raw bytes returned by recvfrom.

    Returns:
        Optional[Tuple[int, int, int]]: Parsed fields, None if too short.
    """
    offset = _ipv4_header_length(data)
    if len(data) < offset + 8:
        return None
    icmp_type, _, _, identifier, sequence = struct.unpack(
        "!BBHHH", data[offset : offset + 8]
    )
    return icmp_type, identifier, sequence


def parse_quoted_sequence(data: bytes, family: int) -> Optional[int]:
    """Extract the sequence of the Echo Request quoted in a Time Exceeded.

    The error message carries the original IP header followed by the first
    8 bytes of the original ICMP message.

    Args:
        data: Raw bytes returned by recvfrom.
        family: Address family of the socket that received data.

    Returns:
        Optional[int]: Quoted sequence, None if data is not a Time Exceeded
            quoting an Echo Request.
    """
    offset = _ipv4_header_length(data)
    if len(data) < offset + 8:
        return None

    if family == socket.AF_INET6:
        expected_type, request_type = ICMPV6_TIME_EXCEEDED, ICMPV6_ECHO_REQUEST
        inner = offset + 8 + IPV6_HEADER_SIZE
    else:
        expected_type, request_type = ICMP_TIME_EXCEEDED, ICMP_ECHO_REQUEST
        inner = offset + 8
        if len(data) <= inner or data[inner] >> 4 != 4:
            return None
        inner += (data[inner] & 0x0F) * 4

    if data[offset] != expected_type or len(data) < inner + 8:
        return None
    quoted_type, _, _, _, sequence = struct.unpack("!BBHHH", data[inner : inner + 8])
    if quoted_type != request_type:
        return None
    return sequence


def same_address(left: str, right: str) -> bool:
    """Compare two numeric addresses, ignoring IPv6 zone suffixes."""
    try:
        return ipaddress.ip_address(left.split("%")[0]) == ipaddress.ip_address(
            right.split("%")[0]
        )
    except ValueError:
        return left == right


class ICMPProbe:
    """Sends one ICMP Echo Request and waits for the reply.

    Each call owns its socket: it is created, used, and closed within the
    call. No retries are made; callers retry by probing again.

    Attributes:
        validate_reply: When True, only an Echo Reply from the target carrying
            the request's sequence number counts as a reply.
    """

    def __init__(
        self,
        socket_factory: Callable[..., socket.socket] = socket.socket,
        validate_reply: bool = True,
        clock: Callable[[], float] = time.monotonic,
        identifier: Optional[int] = None,
    ):
        """Initialize the probe.

        Args:
            socket_factory: Callable with the socket.socket signature.
            validate_reply: Reject datagrams that do not answer this request.
            clock: Monotonic clock in seconds.
            identifier: ICMP identifier, defaults to the low 16 bits of the pid.
        """
        self._socket_factory = socket_factory
        self.validate_reply = validate_reply
        self._clock = clock
        self.identifier = process_identifier() if identifier is None else identifier

    def open_socket(self, family: int) -> socket.socket:
        """Open a non-privileged ICMP or ICMPv6 datagram socket.

        Raises:
            SocketError: If the platform refuses the socket.
        """
        proto = socket.IPPROTO_ICMPV6 if family == socket.AF_INET6 else socket.IPPROTO_ICMP
        try:
            return self._socket_factory(family, socket.SOCK_DGRAM, proto)
        except OSError as e:
            raise SocketError(f"Cannot open ICMP datagram socket: {e}") from e

    def exchange(
        self,
        sock: socket.socket,
        family: int,
        address: str,
        sequence: int,
        timeout: float,
        hop_reply: bool = False,
    ) -> Tuple[str, float]:
        """Send one Echo Request on sock and wait for a reply.

        Args:
            sock: Open ICMP datagram socket.
            family: Address family of sock.
            address: Destination address.
            sequence: Sequence number to send.
            timeout: Seconds to wait for a reply.
            hop_reply: Traceroute mode. Accept an Echo Reply from any
                responder, or a Time Exceeded quoting this request, as long
                as the sequence matches.

        Returns:
            Tuple[str, float]: (responder address, elapsed milliseconds).

        Raises:
            SocketError: If sending fails.
            ProbeTimeoutError: If no acceptable reply arrives in time.
            OSError: On receive errors other than a timeout.
        """
        packet = build_echo_request(family, self.identifier, sequence)
        start = self._clock()
        try:
            sock.sendto(packet, (address, 0))
        except OSError as e:
            raise SocketError(f"sendto {address} failed: {e}") from e

        deadline = start + timeout
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ProbeTimeoutError(f"No reply from {address} within {timeout}s")
            sock.settimeout(remaining)
            try:
                data, source = sock.recvfrom(RECV_BUFFER_SIZE)
            except socket.timeout as e:
                raise ProbeTimeoutError(
                    f"No reply from {address} within {timeout}s"
                ) from e

            elapsed_ms = (self._clock() - start) * 1000
            if not data:
                continue
            responder = source[0]
            if not self.validate_reply:
                return responder, elapsed_ms
            if hop_reply:
                matched = self._is_hop_reply(data, family, sequence)
            else:
                matched = self._is_reply_to(data, family, responder, address, sequence)
            if matched:
                return responder, elapsed_ms
            logger.debug(
                "Ignoring unrelated ICMP datagram",
                extra={"source": responder, "expected": address, "sequence": sequence},
            )

    @staticmethod
    def _is_reply_to(
        data: bytes, family: int, responder: str, address: str, sequence: int
    ) -> bool:
        # The identifier is not compared: Linux ping sockets replace it with
        # the socket's local port.
        if not same_address(responder, address):
            return False
        fields = parse_icmp_header(data)
        if fields is None:
            return False
        icmp_type, _, reply_sequence = fields
        expected_type = ICMPV6_ECHO_REPLY if family == socket.AF_INET6 else ICMP_ECHO_REPLY
        return icmp_type == expected_type and reply_sequence == sequence

    @staticmethod
    def _is_hop_reply(data: bytes, family: int, sequence: int) -> bool:
        fields = parse_icmp_header(data)
        if fields is None:
            return False
        icmp_type, _, reply_sequence = fields
        expected_type = ICMPV6_ECHO_REPLY if family == socket.AF_INET6 else ICMP_ECHO_REPLY
        if icmp_type == expected_type:
            return reply_sequence == sequence
        return parse_quoted_sequence(data, family) == sequence

    def probe(self, target: str, timeout: float = DEFAULT_TIMEOUT) -> EchoResult:
        """Measure the round-trip time to target with one Echo Request.

        Args:
            target: Hostname, IPv4, or IPv6 literal.
            timeout: Seconds to wait for the reply.

        Returns:
            EchoResult: rtt_ms set on reply; rtt_ms None with a failure tag
                on resolution, socket, send, timeout, or receive failure.
        """
        try:
            family, address = resolve_target(target)
        except ResolutionError as e:
            logger.warning(f"Ping resolution failed: {e}")
            return EchoResult(target=target, failure="resolution")

        sequence = random.randint(0, 0xFFFF)

        try:
            sock = self.open_socket(family)
        except SocketError as e:
            logger.warning(f"Ping socket error for {target}: {e}")
            return EchoResult(target=target, address=address, sequence=sequence, failure="socket")

        with closing(sock):
            try:
                _, rtt_ms = self.exchange(sock, family, address, sequence, timeout)
            except SocketError as e:
                logger.warning(f"Ping send failed for {target}: {e}")
                return EchoResult(target=target, address=address, sequence=sequence, failure="send")
            except ProbeTimeoutError:
                logger.debug(f"Ping timeout for {target} ({address})")
                return EchoResult(target=target, address=address, sequence=sequence, failure="timeout")
            except OSError as e:
                logger.warning(f"Ping receive failed for {target}: {e}")
                return EchoResult(target=target, address=address, sequence=sequence, failure="receive")

        return EchoResult(target=target, address=address, rtt_ms=rtt_ms, sequence=sequence)

    def probe_many(
        self,
        target: str,
        count: int = 4,
        interval: float = 1.0,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[EchoResult]:
        """Run count sequential probes against target.

        Args:
            target: Hostname or IP literal.
            count: Number of probes.
            interval: Pause between probes in seconds.
            timeout: Per-probe timeout in seconds.
            sleep: Sleep function (injected by tests).

        Returns:
            List[EchoResult]: One result per probe, in order.
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        results: List[EchoResult] = []
        for i in range(count):
            if i and interval > 0:
                sleep(interval)
            results.append(self.probe(target, timeout))
        return results
