"""Result reporting service for text, JSON, and YAML outputs.

Converts probe results into formatted reports for terminals and for
consumption by other tools.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

import yaml

from netdiag.models.dns_record import DNSRecord
from netdiag.models.echo_result import EchoResult, PingStatistics
from netdiag.models.hop import Hop
from netdiag.models.whois_result import WhoisResult
from netdiag.utils.network_check import DNSLatencyResult


RULE = "=" * 67


def _pad(text: str, width: int) -> str:
    """Pad or cut text to exactly width characters."""
    return text[:width].ljust(width)


def _ms(value) -> str:
    if value is None:
        return "-"
    return f"{value:.1f} ms"


class ResultReporter:
    """Generates formatted reports from probe results.

    Provides static methods producing a document (a JSON-compatible dict) per
    operation, plus text rendering and JSON/YAML serialization of documents.
    """

    # Documents

    @staticmethod
    def ping_document(
        target: str, results: List[EchoResult], statistics: PingStatistics
    ) -> Dict[str, Any]:
        return {
            "operation": "ping",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "target": target,
            "results": [r.to_json() for r in results],
            "statistics": statistics.to_json(),
        }

    @staticmethod
    def traceroute_document(target: str, hops: List[Hop]) -> Dict[str, Any]:
        """Build the traceroute report document.

        Args:
            target: Traced hostname or address.
            hops: Hops in TTL order.

        Returns:
            dict: Document with target, reached flag, and hop list.
        """
        reached = bool(hops) and not hops[-1].is_timeout
        return {
            "operation": "traceroute",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "target": target,
            "hop_count": len(hops),
            "reached": reached,
            "hops": [hop.to_json() for hop in hops],
        }

    @staticmethod
    def dns_document(
        domain: str,
        records_by_type: Dict[str, List[DNSRecord]],
        server: str | None = None,
    ) -> Dict[str, Any]:
        """Build the DNS lookup report document.

        Args:
            domain: Queried name.
            records_by_type: Records per queried type, in query order.
            server: Explicit server, None for the system resolver.

        Returns:
            dict: Document with one answers entry per queried type.
        """
        return {
            "operation": "dns",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "domain": domain,
            "server": server,
            "answers": {
                rr_type: [record.to_json() for record in records]
                for rr_type, records in records_by_type.items()
            },
        }

    @staticmethod
    def whois_document(result: WhoisResult) -> Dict[str, Any]:
        document = result.to_json()
        document["operation"] = "whois"
        document["generated_at"] = datetime.now(timezone.utc).isoformat()
        return document

    @staticmethod
    def latency_document(results: List[DNSLatencyResult]) -> Dict[str, Any]:
        return {
            "operation": "dns-latency",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "servers": [r.to_json() for r in results],
        }

    # Serialization

    @staticmethod
    def generate_json_report(document: Dict[str, Any]) -> str:
        """Generate JSON-formatted report.

        Args:
            document: Report document from one of the *_document methods.

        Returns:
            str: Pretty-printed JSON string with sorted keys for determinism.
        """
        return json.dumps(document, indent=2, sort_keys=True)

    @staticmethod
    def generate_yaml_report(document: Dict[str, Any]) -> str:
        """Generate YAML-formatted report.

        Args:
            document: Report document from one of the *_document methods.

        Returns:
            str: YAML string, keys in insertion order.
        """
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)

    # Text rendering

    @staticmethod
    def format_ping(
        target: str, results: List[EchoResult], statistics: PingStatistics
    ) -> str:
        lines = [f"PING {target}"]
        for index, result in enumerate(results, start=1):
            if result.is_reply:
                lines.append(
                    f"  #{index}  reply from {result.address}  time={result.rtt_ms:.1f} ms"
                )
            else:
                lines.append(f"  #{index}  {result.failure or 'no reply'}")
        lines.append("")
        lines.append(
            f"  {statistics.sent} sent, {statistics.received} received, "
            f"{statistics.loss_percent:.0f}% loss"
        )
        if statistics.received:
            lines.append(
                f"  min/avg/max = {statistics.min_ms:.1f}/{statistics.avg_ms:.1f}/"
                f"{statistics.max_ms:.1f} ms, jitter {statistics.jitter_ms:.1f} ms"
            )
        lines.append(f"  quality: {statistics.quality}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_hop(hop: Hop) -> str:
        """Render one traceroute hop as a table row."""
        if hop.is_timeout:
            return f"{hop.hop_number:>2}  {_pad('*', 40)} -"
        label = hop.ip_address
        if hop.hostname:
            label = f"{hop.hostname} ({hop.ip_address})"
        row = f"{hop.hop_number:>2}  {_pad(label, 40)} {_ms(hop.latency_ms):>10}  {hop.location_string}"
        if hop.asn_string:
            row += f"  {hop.asn_string}"
        return row

    @staticmethod
    def format_traceroute(target: str, hops: List[Hop]) -> str:
        """Render a traceroute as a text table.

        Args:
            target: Traced hostname or address.
            hops: Hops in TTL order.

        Returns:
            str: Header plus one row per hop.
        """
        lines = [RULE, f"Traceroute to {target}", RULE]
        if not hops:
            lines.append("  No hops (target unresolvable or socket unavailable)")
        lines.extend(ResultReporter.format_hop(hop) for hop in hops)
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_record(record: DNSRecord) -> str:
        """Render one record as type, owner name, TTL, and value columns."""
        return (
            f"  {_pad(record.type, 6)}"
            f"{_pad(record.name, 30)}"
            f"TTL: {_pad(str(record.ttl), 8)}"
            f"{record.value}"
        )

    @staticmethod
    def format_dns(
        domain: str,
        records_by_type: Dict[str, List[DNSRecord]],
        server: str | None = None,
    ) -> str:
        """Render DNS results, with a section header per type for ALL lookups.

        Args:
            domain: Queried name.
            records_by_type: Records per queried type, in query order.
            server: Explicit server, None for the system resolver.

        Returns:
            str: Banner followed by record lines.
        """
        lines = [
            RULE,
            f"DNS lookup: {domain}",
            f"Server: {server or 'system'}",
            RULE,
        ]
        sectioned = len(records_by_type) > 1
        for rr_type, records in records_by_type.items():
            if sectioned:
                lines.append("")
                lines.append(f"--- {rr_type} ---")
            if not records:
                lines.append(f"  No {rr_type} records")
                continue
            lines.extend(ResultReporter.format_record(r) for r in records)
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_whois(result: WhoisResult) -> str:
        lines = [
            RULE,
            f"WHOIS: {result.target}",
            f"Server: {result.server}",
        ]
        if len(result.servers_queried) > 1:
            lines.append(f"Referrals: {' -> '.join(result.servers_queried)}")
        lines.append(f"Lines: {result.line_count}")
        lines.append(RULE)
        if result.is_empty:
            lines.append("  No response")
        else:
            lines.append(result.text.rstrip("\n"))
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_latency(results: List[DNSLatencyResult]) -> str:
        lines = [
            RULE,
            "DNS server latency",
            RULE,
            f"  {_pad('Server', 22)}{_pad('IP', 16)}Latency",
        ]
        for result in results:
            lines.append(
                f"  {_pad(result.name, 22)}{_pad(result.server or '-', 16)}"
                f"{_ms(result.latency_ms) if result.latency_ms is not None else 'failed'}"
            )
        return "\n".join(lines) + "\n"
