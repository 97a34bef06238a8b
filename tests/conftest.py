"""pytest fixtures for testing."""

import socket
import struct

import pytest


class FakeSocket:
    """Scripted stand-in for socket.socket.

    recvfrom/recv return queued items in order; an exception instance in the
    queue is raised instead, and an exhausted queue raises socket.timeout.
    """

    def __init__(self, responses=None, recv_chunks=None):
        self.responses = list(responses or [])
        self.recv_chunks = list(recv_chunks or [])
        self.sent = []
        self.sent_all = []
        self.options = []
        self.timeouts = []
        self.closed = False

    def sendto(self, data, address):
        self.sent.append((bytes(data), address))
        return len(data)

    def sendall(self, data):
        self.sent_all.append(bytes(data))

    def setsockopt(self, level, option, value):
        self.options.append((level, option, value))

    def settimeout(self, value):
        self.timeouts.append(value)

    def _next(self, queue):
        if not queue:
            raise socket.timeout("timed out")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def recvfrom(self, bufsize):
        return self._next(self.responses)

    def recv(self, bufsize):
        if not self.recv_chunks:
            return b""
        return self._next(self.recv_chunks)

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock advancing by a fixed step per call."""

    def __init__(self, start=100.0, step=0.01):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current


def icmp_reply(icmp_type=0, identifier=0x1234, sequence=1, payload=b"\x00" * 56):
    """Build an ICMP message as returned by a datagram socket."""
    return struct.pack("!BBHHH", icmp_type, 0, 0, identifier, sequence) + payload


def time_exceeded_reply(sequence, identifier=0x1234, ipv6=False):
    """Build a Time Exceeded quoting the Echo Request that expired."""
    if ipv6:
        quoted_header = bytes([0x60]) + bytes(39)
        request = struct.pack("!BBHHH", 128, 0, 0, identifier, sequence)
        return struct.pack("!BBHI", 3, 0, 0, 0) + quoted_header + request
    quoted_header = bytes([0x45]) + bytes(19)
    request = struct.pack("!BBHHH", 8, 0, 0, identifier, sequence)
    return struct.pack("!BBHI", 11, 0, 0, 0) + quoted_header + request


@pytest.fixture
def fake_socket():
    """Unscripted fake socket; tests fill in responses."""
    return FakeSocket()


@pytest.fixture
def fake_clock():
    """Clock advancing 10 ms per reading."""
    return FakeClock()


@pytest.fixture
def socket_factory():
    """Factory returning queued FakeSocket instances and recording calls."""

    class Factory:
        def __init__(self):
            self.sockets = []
            self.calls = []

        def add(self, sock):
            self.sockets.append(sock)
            return sock

        def __call__(self, *args, **kwargs):
            self.calls.append(args)
            if not self.sockets:
                raise OSError("no socket available")
            return self.sockets.pop(0)

    return Factory()


@pytest.fixture
def no_network(monkeypatch):
    """Resolve every target to itself without touching the network."""

    def fake_getaddrinfo(host, port, family=0, type=0, *args, **kwargs):
        if ":" in host:
            return [(socket.AF_INET6, type, 0, "", (host, 0, 0, 0))]
        if host.replace(".", "").isdigit():
            return [(socket.AF_INET, type, 0, "", (host, 0))]
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr("netdiag.utils.ip_utils.socket.getaddrinfo", fake_getaddrinfo)


@pytest.fixture
def make_socket():
    """FakeSocket class, for tests that script several sockets."""
    return FakeSocket


@pytest.fixture
def make_clock():
    """FakeClock class."""
    return FakeClock


@pytest.fixture
def build_icmp_reply():
    """ICMP message builder."""
    return icmp_reply


@pytest.fixture
def build_time_exceeded():
    """Time Exceeded builder."""
    return time_exceeded_reply
