"""Structured JSON logging."""

import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from pythonjsonlogger import jsonlogger


# Run ID for correlation across log entries of one invocation
RUN_ID = str(uuid.uuid4())


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter that adds run_id and standardized fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record.

        Args:
            log_record: The log record to modify.
            record: The original logging.LogRecord.
            message_dict: Additional fields from the logging call.
        """
        super().add_fields(log_record, record, message_dict)

        # Add timestamp in ISO 8601 format
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        # Add run ID for correlation
        log_record["run_id"] = RUN_ID

        # Add log level
        log_record["level"] = record.levelname

        # Add logger name
        log_record["logger"] = record.name


def setup_logging(verbose: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    """Configure structured JSON logging for the application.

    Args:
        verbose: Log at DEBUG instead of INFO.
        stream: Destination stream; stderr by default so that results
            printed on stdout stay machine-readable.

    Returns:
        logging.Logger: Configured root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    json_handler = logging.StreamHandler(stream or sys.stderr)
    formatter = CustomJsonFormatter(
        "%(message)s",  # Message field
        timestamp=True,
    )
    json_handler.setFormatter(formatter)
    logger.addHandler(json_handler)

    return logger


def log_probe_result(
    target: str,
    address: Optional[str],
    rtt_ms: Optional[float],
    failure: Optional[str],
) -> None:
    """Log structured result of one ICMP echo probe.

    Args:
        target: Target string supplied by the caller.
        address: Resolved address.
        rtt_ms: Round-trip time, None on failure.
        failure: Failure tag when rtt_ms is None.
    """
    logger = logging.getLogger(__name__)
    logger.info(
        "Ping completed",
        extra={
            "target": target,
            "address": address,
            "rtt_ms": rtt_ms,
            "failure": failure,
        },
    )


def log_traceroute_summary(
    target: str,
    hop_count: int,
    timeouts: int,
    reached: bool,
    duration_sec: float,
) -> None:
    """Log traceroute completion summary.

    Args:
        target: Traced hostname or address.
        hop_count: Number of hops returned.
        timeouts: Hops without any reply.
        reached: Whether the destination answered.
        duration_sec: Total run time in seconds.
    """
    logger = logging.getLogger(__name__)
    logger.info(
        "Traceroute completed",
        extra={
            "target": target,
            "hop_count": hop_count,
            "timeouts": timeouts,
            "reached": reached,
            "duration_sec": duration_sec,
        },
    )


def log_dns_lookup(
    domain: str,
    record_types: list[str],
    server: Optional[str],
    record_count: int,
    duration_ms: int,
) -> None:
    """Log structured DNS lookup result.

    Args:
        domain: Queried name.
        record_types: Types queried.
        server: Explicit server, None for the system resolver.
        record_count: Total records returned.
        duration_ms: Lookup time in milliseconds.
    """
    logger = logging.getLogger(__name__)
    logger.info(
        "DNS lookup completed",
        extra={
            "domain": domain,
            "record_types": record_types,
            "server": server or "system",
            "record_count": record_count,
            "duration_ms": duration_ms,
        },
    )


def log_whois_query(
    target: str,
    server: str,
    servers_queried: list[str],
    line_count: int,
) -> None:
    """Log WHOIS query outcome.

    Args:
        target: Queried domain or address.
        server: Server whose response was kept.
        servers_queried: Referral chain in order.
        line_count: Lines in the kept response.
    """
    logger = logging.getLogger(__name__)
    level = logging.INFO if line_count else logging.WARNING
    logger.log(
        level,
        "WHOIS query completed",
        extra={
            "target": target,
            "server": server,
            "servers_queried": servers_queried,
            "line_count": line_count,
        },
    )
