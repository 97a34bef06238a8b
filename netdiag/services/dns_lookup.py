"""Multi-type DNS lookups built on DNSResolver."""

import logging
from typing import Dict, List, Optional

from netdiag.models.dns_record import DNSRecord
from netdiag.services.dns_resolver import DNSResolver


logger = logging.getLogger(__name__)


ALL_RECORD_TYPES = ["A", "AAAA", "MX", "NS", "TXT", "CNAME", "SOA"]


def query_all_types(
    resolver: DNSResolver, domain: str, server: Optional[str] = None
) -> Dict[str, List[DNSRecord]]:
    """Query every common record type for domain, one resolver call per type.

    A failing type is logged and reported as empty; the remaining types are
    still queried.

    Args:
        resolver: Resolver used for each query.
        domain: Name to query.
        server: Explicit server address, None for the system resolver.

    Returns:
        Dict[str, List[DNSRecord]]: Records per type, in ALL_RECORD_TYPES order.
    """
    results: Dict[str, List[DNSRecord]] = {}

    for record_type in ALL_RECORD_TYPES:
        try:
            results[record_type] = resolver.query(domain, record_type, server)
        except Exception as e:
            # Unexpected error - record the type as empty and keep going
            logger.error(f"Unexpected error querying {record_type} for {domain}: {e}")
            results[record_type] = []

    return results
