"""Configuration module for netdiag.

Loads and validates NETDIAG_* environment variables.
"""

import os
from dataclasses import dataclass
from typing import Optional


OUTPUT_FORMATS = ("text", "json", "yaml")


@dataclass
class Config:
    """Probe configuration loaded from environment variables."""

    # Ping Configuration
    ping_timeout: float
    ping_count: int

    # Traceroute Configuration
    trace_max_hops: int
    trace_probes_per_hop: int
    trace_probe_timeout: float
    trace_geolocation: bool
    geolocation_url: str

    # DNS Configuration
    dns_timeout: float
    dns_server: Optional[str]

    # WHOIS Configuration
    whois_timeout: float
    whois_max_referrals: int

    # Operational Configuration
    validate_icmp_replies: bool
    output_format: str
    verbose: bool

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Every variable is optional; defaults match the probe defaults.

        Raises:
            ValueError: If a variable is malformed or out of range.

        Returns:
            Config: Validated configuration instance.
        """
        # Ping Configuration
        ping_timeout = cls._get_float("NETDIAG_PING_TIMEOUT", "1.0")
        if not 0.1 <= ping_timeout <= 30:
            raise ValueError("NETDIAG_PING_TIMEOUT must be between 0.1 and 30 seconds")

        ping_count = cls._get_int("NETDIAG_PING_COUNT", "4")
        if not 1 <= ping_count <= 1000:
            raise ValueError("NETDIAG_PING_COUNT must be between 1 and 1000")

        # Traceroute Configuration
        trace_max_hops = cls._get_int("NETDIAG_TRACE_MAX_HOPS", "30")
        if not 1 <= trace_max_hops <= 64:
            raise ValueError("NETDIAG_TRACE_MAX_HOPS must be between 1 and 64")

        trace_probes_per_hop = cls._get_int("NETDIAG_TRACE_PROBES_PER_HOP", "2")
        if not 1 <= trace_probes_per_hop <= 10:
            raise ValueError("NETDIAG_TRACE_PROBES_PER_HOP must be between 1 and 10")

        trace_probe_timeout = cls._get_float("NETDIAG_TRACE_PROBE_TIMEOUT", "3.0")
        if not 0.1 <= trace_probe_timeout <= 30:
            raise ValueError(
                "NETDIAG_TRACE_PROBE_TIMEOUT must be between 0.1 and 30 seconds"
            )

        trace_geolocation = cls._get_bool("NETDIAG_TRACE_GEOLOCATION", "true")

        geolocation_url = os.getenv("NETDIAG_GEOLOCATION_URL", "https://ipwho.is/")
        if not geolocation_url.startswith("https://"):
            raise ValueError("NETDIAG_GEOLOCATION_URL must be an HTTPS URL")

        # DNS Configuration
        dns_timeout = cls._get_float("NETDIAG_DNS_TIMEOUT", "3.0")
        if not 0.1 <= dns_timeout <= 30:
            raise ValueError("NETDIAG_DNS_TIMEOUT must be between 0.1 and 30 seconds")

        dns_server = os.getenv("NETDIAG_DNS_SERVER", "").strip() or None

        # WHOIS Configuration
        whois_timeout = cls._get_float("NETDIAG_WHOIS_TIMEOUT", "15.0")
        if not 1 <= whois_timeout <= 120:
            raise ValueError("NETDIAG_WHOIS_TIMEOUT must be between 1 and 120 seconds")

        whois_max_referrals = cls._get_int("NETDIAG_WHOIS_MAX_REFERRALS", "5")
        if not 0 <= whois_max_referrals <= 20:
            raise ValueError("NETDIAG_WHOIS_MAX_REFERRALS must be between 0 and 20")

        # Operational Configuration
        validate_icmp_replies = cls._get_bool("NETDIAG_VALIDATE_ICMP_REPLIES", "true")

        output_format = os.getenv("NETDIAG_OUTPUT_FORMAT", "text").strip().lower()
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"NETDIAG_OUTPUT_FORMAT must be one of: {', '.join(OUTPUT_FORMATS)}"
            )

        verbose = cls._get_bool("NETDIAG_VERBOSE", "false")

        return cls(
            ping_timeout=ping_timeout,
            ping_count=ping_count,
            trace_max_hops=trace_max_hops,
            trace_probes_per_hop=trace_probes_per_hop,
            trace_probe_timeout=trace_probe_timeout,
            trace_geolocation=trace_geolocation,
            geolocation_url=geolocation_url,
            dns_timeout=dns_timeout,
            dns_server=dns_server,
            whois_timeout=whois_timeout,
            whois_max_referrals=whois_max_referrals,
            validate_icmp_replies=validate_icmp_replies,
            output_format=output_format,
            verbose=verbose,
        )

    @staticmethod
    def _get_bool(key: str, default: str) -> bool:
        """Parse a boolean environment variable (true, 1, yes)."""
        return os.getenv(key, default).strip().lower() in ("true", "1", "yes")

    @staticmethod
    def _get_int(key: str, default: str) -> int:
        """Get integer environment variable or raise ValueError.

        Args:
            key: Environment variable name.
            default: Value used when the variable is unset.

        Returns:
            int: Parsed value.

        Raises:
            ValueError: If the value is not an integer.
        """
        value = os.getenv(key, default)
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{key} must be an integer, got {value!r}") from None

    @staticmethod
    def _get_float(key: str, default: str) -> float:
        """Get numeric environment variable or raise ValueError."""
        value = os.getenv(key, default)
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"{key} must be a number, got {value!r}") from None
