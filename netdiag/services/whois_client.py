"""WHOIS client (RFC 3912) with referral following."""

import logging
import socket
import time
from contextlib import closing
from types import MappingProxyType
from typing import Callable, List, Optional

from netdiag.models.errors import ProbeTimeoutError
from netdiag.models.whois_result import WhoisResult, WhoisSession
from netdiag.utils.ip_utils import is_ip_literal


logger = logging.getLogger(__name__)


WHOIS_PORT = 43
DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_REFERRALS = 5
RECV_CHUNK_SIZE = 65536

IP_WHOIS_SERVER = "whois.arin.net"
ROOT_WHOIS_SERVER = "whois.iana.org"

TLD_SERVERS = MappingProxyType(
    {
        "com": "whois.verisign-grs.com",
        "net": "whois.verisign-grs.com",
        "org": "whois.pir.org",
        "info": "whois.afilias.net",
        "io": "whois.nic.io",
        "dev": "whois.nic.google",
        "app": "whois.nic.google",
        "fr": "whois.nic.fr",
        "de": "whois.denic.de",
        "uk": "whois.nic.uk",
        "eu": "whois.eu",
        "co": "whois.nic.co",
        "me": "whois.nic.me",
        "tv": "whois.nic.tv",
        "cc": "ccwhois.verisign-grs.com",
        "be": "whois.dns.be",
        "nl": "whois.domain-registry.nl",
        "ch": "whois.nic.ch",
        "it": "whois.nic.it",
        "es": "whois.nic.es",
        "us": "whois.nic.us",
        "ca": "whois.cira.ca",
        "au": "whois.auda.org.au",
        "jp": "whois.jprs.jp",
        "cn": "whois.cnnic.cn",
        "ru": "whois.tcinet.ru",
        "br": "whois.registro.br",
    }
)

REFERRAL_MARKERS = (
    "ReferralServer: whois://",
    "ReferralServer:  whois://",
    "refer:",
    "Registrar WHOIS Server:",
)

URL_SCHEMES = ("whois://", "rwhois://", "https://", "http://")


def whois_server_for(target: str) -> str:
    """Pick the initial WHOIS server for target.

    Examples:
        >>> whois_server_for("example.com")
        'whois.verisign-grs.com'
        >>> whois_server_for("192.0.2.1")
        'whois.arin.net'
        >>> whois_server_for("example.unknowntld")
        'whois.iana.org'
    """
    if is_ip_literal(target) or ":" in target:
        return IP_WHOIS_SERVER

    labels = [label for label in target.lower().rstrip(".").split(".") if label]
    if not labels:
        return ROOT_WHOIS_SERVER
    return TLD_SERVERS.get(labels[-1], ROOT_WHOIS_SERVER)


def build_whois_query(target: str, server: str) -> str:
    """Build the CRLF-terminated query line expected by server.

    Examples:
        >>> build_whois_query("example.com", "whois.verisign-grs.com")
        '=example.com\\r\\n'
        >>> build_whois_query("example.de", "whois.denic.de")
        '-T dn,ace example.de\\r\\n'
    """
    server = server.lower()
    if server == "whois.verisign-grs.com":
        return f"={target}\r\n"
    if server == "whois.denic.de":
        return f"-T dn,ace {target}\r\n"
    if server == "whois.jprs.jp":
        return f"{target}/e\r\n"
    return f"{target}\r\n"


def decode_whois_bytes(data: bytes) -> str:
    """Decode a WHOIS response as UTF-8, then Latin-1, then ASCII."""
    for encoding in ("utf-8", "latin-1"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("ascii", errors="ignore")


def extract_referral_server(text: str) -> Optional[str]:
    """Find a referral hostname in a WHOIS response.

    Args:
        text: Decoded response.

    Returns:
        Optional[str]: Bare hostname (port suffix removed), None if absent.

    Examples:
        >>> extract_referral_server("ReferralServer: whois://whois.ripe.net:43\\n")
        'whois.ripe.net'
    """
    for line in text.split("\n"):
        stripped = line.strip()
        for marker in REFERRAL_MARKERS:
            if not stripped.startswith(marker):
                continue
            server = stripped[len(marker) :].strip()
            for scheme in URL_SCHEMES:
                if server.lower().startswith(scheme):
                    server = server[len(scheme) :]
            server = server.split("/", 1)[0].split(":", 1)[0].strip()
            if server:
                return server
    return None


class WhoisClient:
    """Queries WHOIS servers over TCP port 43 and follows referrals.

    Each server gets its own session; the response of the last server in the
    chain is returned. The chain is capped at max_referrals follow-ups.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_referrals: int = DEFAULT_MAX_REFERRALS,
        port: int = WHOIS_PORT,
        connection_factory: Callable[..., socket.socket] = socket.create_connection,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            timeout: Wall-clock deadline per session covering connect, send,
                and reading until EOF.
            max_referrals: Maximum number of referrals followed.
            port: WHOIS TCP port.
            connection_factory: Callable with the socket.create_connection
                signature (address, timeout).
            clock: Monotonic clock in seconds.
        """
        if max_referrals < 0:
            raise ValueError("max_referrals cannot be negative")
        self.timeout = timeout
        self.max_referrals = max_referrals
        self.port = port
        self._connect = connection_factory
        self._clock = clock

    def _run_session(self, session: WhoisSession) -> None:
        """Connect, send the query, and read until EOF or the deadline.

        Raises:
            ProbeTimeoutError: If the deadline passes before EOF.
            OSError: On connection, send, or receive failure.
        """
        deadline = self._clock() + self.timeout
        sock = self._connect((session.server, self.port), timeout=self.timeout)
        with closing(sock):
            sock.sendall(session.query.encode("utf-8"))
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise ProbeTimeoutError(
                        f"{session.server} did not finish within {self.timeout}s"
                    )
                sock.settimeout(remaining)
                try:
                    chunk = sock.recv(RECV_CHUNK_SIZE)
                except socket.timeout as e:
                    raise ProbeTimeoutError(
                        f"{session.server} did not finish within {self.timeout}s"
                    ) from e
                if not chunk:
                    break
                session.response.extend(chunk)

    def query(self, target: str, server: Optional[str] = None) -> WhoisResult:
        """Look up target, following referrals to more specific servers.

        Args:
            target: Domain name or IP address.
            server: Initial server; chosen from the target when None.

        Returns:
            WhoisResult: Text of the last server that answered. Empty text
                when the first session fails.
        """
        target = target.strip()
        current = server or whois_server_for(target)
        servers_queried: List[str] = []
        result = WhoisResult(target=target, server=current, text="")

        referrals = 0
        while True:
            session = WhoisSession(server=current, query=build_whois_query(target, current))
            servers_queried.append(current)
            logger.info(f"WHOIS query for {target} to {current}")

            try:
                self._run_session(session)
            except (ProbeTimeoutError, OSError) as e:
                logger.warning(f"WHOIS session with {current} failed: {e}")
                break

            text = decode_whois_bytes(bytes(session.response))
            result = WhoisResult(target=target, server=current, text=text)

            referral = extract_referral_server(text)
            if not referral or referral.lower() == current.lower():
                break

            if referrals >= self.max_referrals:
                logger.warning(
                    f"Referral limit ({self.max_referrals}) reached at {current} -> {referral}"
                )
                break

            logger.info(f"WHOIS referral from {current} to {referral}")
            referrals += 1
            current = referral

        result.servers_queried = servers_queried
        return result
