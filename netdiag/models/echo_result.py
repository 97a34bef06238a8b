"""ICMP echo result models."""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class EchoResult:
    """Outcome of a single ICMP Echo Request/Reply cycle.

    Attributes:
        target: Target string supplied by the caller.
        address: Resolved address the request was sent to (None if unresolved).
        rtt_ms: Round-trip time in milliseconds, None on timeout or error.
        sequence: ICMP sequence number used for the request.
        failure: Short failure tag when rtt_ms is None (resolution, socket,
            send, timeout, receive).
    """

    target: str
    address: Optional[str] = None
    rtt_ms: Optional[float] = None
    sequence: Optional[int] = None
    failure: Optional[str] = None

    @property
    def is_reply(self) -> bool:
        """Check if a reply was received.

        Returns:
            bool: True if rtt_ms is set, False otherwise.
        """
        return self.rtt_ms is not None

    def to_json(self) -> dict:
        """Serialize to JSON-compatible dict.

        Returns:
            dict: JSON-serializable representation.
        """
        return {
            "target": self.target,
            "address": self.address,
            "rtt_ms": self.rtt_ms,
            "sequence": self.sequence,
            "failure": self.failure,
        }


@dataclass
class PingStatistics:
    """Aggregate statistics over a series of echo results.

    Attributes:
        sent: Number of probes sent.
        received: Number of probes that got a reply.
        min_ms: Lowest RTT (None if no replies).
        avg_ms: Mean RTT (None if no replies).
        max_ms: Highest RTT (None if no replies).
        jitter_ms: Mean absolute difference between consecutive RTTs.

    Computed Properties:
        loss_percent: Percentage of probes without a reply.
        quality: excellent, good, fair, poor, or unknown.
    """

    sent: int
    received: int
    min_ms: Optional[float] = None
    avg_ms: Optional[float] = None
    max_ms: Optional[float] = None
    jitter_ms: float = 0.0

    @classmethod
    def from_results(cls, results: List[EchoResult]) -> "PingStatistics":
        """Build statistics from a list of echo results.

        Args:
            results: Echo results in the order they were collected.

        Returns:
            PingStatistics: Aggregated statistics.
        """
        valid = [r.rtt_ms for r in results if r.rtt_ms is not None]
        if not valid:
            return cls(sent=len(results), received=0)

        jitter = 0.0
        if len(valid) > 1:
            diffs = [abs(valid[i] - valid[i - 1]) for i in range(1, len(valid))]
            jitter = sum(diffs) / len(diffs)

        return cls(
            sent=len(results),
            received=len(valid),
            min_ms=min(valid),
            avg_ms=sum(valid) / len(valid),
            max_ms=max(valid),
            jitter_ms=jitter,
        )

    @property
    def loss_percent(self) -> float:
        if self.sent == 0:
            return 0.0
        return (self.sent - self.received) / self.sent * 100

    @property
    def quality(self) -> str:
        """Classify link quality from loss, average latency, and jitter.

        Returns:
            str: "poor", "fair", "good", "excellent", or "unknown" without replies.
        """
        if self.avg_ms is None:
            return "unknown"
        loss = self.loss_percent
        if loss > 10 or self.avg_ms > 200:
            return "poor"
        if loss > 2 or self.avg_ms > 80 or self.jitter_ms > 30:
            return "fair"
        if self.avg_ms > 30 or self.jitter_ms > 10:
            return "good"
        return "excellent"

    def to_json(self) -> dict:
        return {
            "sent": self.sent,
            "received": self.received,
            "loss_percent": self.loss_percent,
            "min_ms": self.min_ms,
            "avg_ms": self.avg_ms,
            "max_ms": self.max_ms,
            "jitter_ms": self.jitter_ms,
            "quality": self.quality,
        }
