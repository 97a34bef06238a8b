"""WHOIS session and result models."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class WhoisSession:
    """One TCP exchange with a WHOIS server.

    A referral creates a new session; sessions are never reused.

    Attributes:
        server: WHOIS server hostname.
        query: Query line sent to the server (CRLF terminated).
        response: Bytes accumulated until EOF.
    """

    server: str
    query: str
    response: bytearray = field(default_factory=bytearray)


@dataclass
class WhoisResult:
    """Final WHOIS response for a target.

    Attributes:
        target: Domain or IP that was queried.
        server: Server whose response is returned.
        text: Decoded response text (empty when every session failed).
        servers_queried: Servers contacted, in order.
    """

    target: str
    server: str
    text: str
    servers_queried: List[str] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        if not self.text:
            return 0
        return len(self.text.split("\n"))

    @property
    def is_empty(self) -> bool:
        return not self.text

    def to_json(self) -> dict:
        return {
            "target": self.target,
            "server": self.server,
            "line_count": self.line_count,
            "servers_queried": list(self.servers_queried),
            "text": self.text,
        }
