"""Main entry point for netdiag."""

import argparse
import logging
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from netdiag.config import OUTPUT_FORMATS, Config
from netdiag.models.echo_result import PingStatistics
from netdiag.models.hop import Hop
from netdiag.services.dns_lookup import ALL_RECORD_TYPES, query_all_types
from netdiag.services.dns_resolver import DNSResolver
from netdiag.services.geolocation import GeoLocator
from netdiag.services.icmp_probe import ICMPProbe
from netdiag.services.logger import (
    log_dns_lookup,
    log_probe_result,
    log_traceroute_summary,
    log_whois_query,
    setup_logging,
)
from netdiag.services.result_reporter import ResultReporter
from netdiag.services.traceroute import TracerouteEngine
from netdiag.services.whois_client import WhoisClient
from netdiag.utils.network_check import DNSLatencyChecker


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NO_DATA = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="netdiag",
        description="Network diagnostics: ping, traceroute, DNS lookups, and WHOIS.",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="Output format (overrides NETDIAG_OUTPUT_FORMAT)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at DEBUG level"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ping = subparsers.add_parser("ping", help="Send ICMP echo requests")
    ping.add_argument("target")
    ping.add_argument("-c", "--count", type=int, help="Number of probes")
    ping.add_argument("-t", "--timeout", type=float, help="Seconds per probe")
    ping.add_argument(
        "-i", "--interval", type=float, default=1.0, help="Seconds between probes"
    )

    trace = subparsers.add_parser("traceroute", help="Trace the path to a host")
    trace.add_argument("target")
    trace.add_argument("-m", "--max-hops", type=int, help="Highest TTL probed")
    trace.add_argument("-q", "--probes", type=int, help="Probes per hop")
    trace.add_argument("-w", "--wait", type=float, help="Seconds per probe")
    trace.add_argument(
        "--no-geo", action="store_true", help="Skip geolocation of public hops"
    )

    dns = subparsers.add_parser("dns", help="Look up DNS records")
    dns.add_argument("domain")
    dns.add_argument(
        "-t",
        "--type",
        default="A",
        help=f"Record type, or ALL for {' '.join(ALL_RECORD_TYPES)}",
    )
    dns.add_argument("-s", "--server", help="DNS server address (default: system)")

    whois = subparsers.add_parser("whois", help="Query WHOIS with referrals")
    whois.add_argument("target")
    whois.add_argument("-s", "--server", help="Initial WHOIS server")

    latency = subparsers.add_parser(
        "dns-latency", help="Rank public DNS servers by lookup latency"
    )
    latency.add_argument("--domain", default="google.com")
    latency.add_argument("--attempts", type=int, default=3)

    return parser


def emit(
    output_format: str,
    document: Dict[str, Any],
    render_text: Callable[[], str],
) -> None:
    """Write one report to stdout in the requested format."""
    if output_format == "json":
        sys.stdout.write(ResultReporter.generate_json_report(document) + "\n")
    elif output_format == "yaml":
        sys.stdout.write(ResultReporter.generate_yaml_report(document))
    else:
        sys.stdout.write(render_text())


def run_ping(args: argparse.Namespace, config: Config, output_format: str) -> int:
    count = args.count if args.count is not None else config.ping_count
    timeout = args.timeout if args.timeout is not None else config.ping_timeout

    probe = ICMPProbe(validate_reply=config.validate_icmp_replies)
    results = probe.probe_many(args.target, count=count, interval=args.interval, timeout=timeout)
    for result in results:
        log_probe_result(result.target, result.address, result.rtt_ms, result.failure)

    statistics = PingStatistics.from_results(results)
    emit(
        output_format,
        ResultReporter.ping_document(args.target, results, statistics),
        lambda: ResultReporter.format_ping(args.target, results, statistics),
    )
    return EXIT_OK if statistics.received else EXIT_NO_DATA


def run_traceroute(args: argparse.Namespace, config: Config, output_format: str) -> int:
    start = time.time()
    geolocator: Optional[GeoLocator] = None
    if config.trace_geolocation and not args.no_geo:
        geolocator = GeoLocator(config.geolocation_url)

    engine = TracerouteEngine(
        probe=ICMPProbe(validate_reply=config.validate_icmp_replies),
        resolver=DNSResolver(timeout=config.dns_timeout),
        geolocator=geolocator,
    )

    def on_hop(hop: Hop) -> None:
        logger.debug(
            "Hop measured",
            extra={"hop": hop.hop_number, "ip_address": hop.ip_address, "latency_ms": hop.latency_ms},
        )

    def on_geo(hop: Hop) -> None:
        logger.debug(
            "Hop geolocated",
            extra={"hop": hop.hop_number, "location": hop.location_string},
        )

    hops = engine.run(
        args.target,
        max_hops=args.max_hops or config.trace_max_hops,
        probes_per_hop=args.probes or config.trace_probes_per_hop,
        probe_timeout=args.wait or config.trace_probe_timeout,
        progress=on_hop,
        geo=on_geo,
    )

    document = ResultReporter.traceroute_document(args.target, hops)
    log_traceroute_summary(
        target=args.target,
        hop_count=len(hops),
        timeouts=sum(1 for hop in hops if hop.is_timeout),
        reached=document["reached"],
        duration_sec=time.time() - start,
    )
    emit(output_format, document, lambda: ResultReporter.format_traceroute(args.target, hops))
    return EXIT_OK if hops else EXIT_NO_DATA


def run_dns(args: argparse.Namespace, config: Config, output_format: str) -> int:
    start = time.time()
    server = args.server or config.dns_server
    resolver = DNSResolver(timeout=config.dns_timeout)
    record_type = args.type.strip().upper()

    if record_type == "ALL":
        records_by_type = query_all_types(resolver, args.domain, server)
    else:
        records_by_type = {record_type: resolver.query(args.domain, record_type, server)}

    record_count = sum(len(records) for records in records_by_type.values())
    log_dns_lookup(
        domain=args.domain,
        record_types=list(records_by_type),
        server=server,
        record_count=record_count,
        duration_ms=int((time.time() - start) * 1000),
    )
    emit(
        output_format,
        ResultReporter.dns_document(args.domain, records_by_type, server),
        lambda: ResultReporter.format_dns(args.domain, records_by_type, server),
    )
    return EXIT_OK if record_count else EXIT_NO_DATA


def run_whois(args: argparse.Namespace, config: Config, output_format: str) -> int:
    client = WhoisClient(
        timeout=config.whois_timeout, max_referrals=config.whois_max_referrals
    )
    result = client.query(args.target, server=args.server)
    log_whois_query(result.target, result.server, result.servers_queried, result.line_count)
    emit(
        output_format,
        ResultReporter.whois_document(result),
        lambda: ResultReporter.format_whois(result),
    )
    return EXIT_NO_DATA if result.is_empty else EXIT_OK


def run_dns_latency(args: argparse.Namespace, config: Config, output_format: str) -> int:
    checker = DNSLatencyChecker(
        DNSResolver(timeout=config.dns_timeout),
        domain=args.domain,
        attempts=args.attempts,
    )
    results = checker.rank_servers()
    emit(
        output_format,
        ResultReporter.latency_document(results),
        lambda: ResultReporter.format_latency(results),
    )
    if any(result.latency_ms is not None for result in results):
        return EXIT_OK
    return EXIT_NO_DATA


COMMANDS = {
    "ping": run_ping,
    "traceroute": run_traceroute,
    "dns": run_dns,
    "whois": run_whois,
    "dns-latency": run_dns_latency,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function.

    Args:
        argv: Command line arguments, sys.argv[1:] when None.

    Returns:
        int: Exit code (0 for success, 1 for fatal error, 2 when the
            operation produced no data).
    """
    args = build_parser().parse_args(argv)

    try:
        config = Config.from_env()
    except ValueError as e:
        setup_logging(verbose=args.verbose)
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    setup_logging(verbose=args.verbose or config.verbose)
    output_format = args.format or config.output_format
    logger.debug(f"Running {args.command} with {output_format} output")

    try:
        return COMMANDS[args.command](args, config, output_format)
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
