"""Contract tests for JSON report output.

Validates that reporter output conforms to the schemas under contracts/.
"""

import json
from pathlib import Path

import pytest
from jsonschema import ValidationError, validate

from netdiag.models.dns_record import DNSRecord
from netdiag.models.echo_result import EchoResult, PingStatistics
from netdiag.models.hop import TIMEOUT_ADDRESS, GeoLocation, Hop
from netdiag.models.whois_result import WhoisResult
from netdiag.services.result_reporter import ResultReporter


def load_schema(name):
    """Load a JSON schema from the contracts directory."""
    schema_path = Path(__file__).parent.parent.parent / "contracts" / name
    with open(schema_path) as f:
        return json.load(f)


def render(document):
    """Serialize through the JSON reporter and parse back."""
    return json.loads(ResultReporter.generate_json_report(document))


class TestTracerouteContract:
    """Test traceroute JSON conforms to traceroute-report-schema.json."""

    def test_mixed_hops(self):
        """Test private, timeout, and geolocated hops validate."""
        schema = load_schema("traceroute-report-schema.json")
        public = Hop(hop_number=3, ip_address="8.8.8.8", latency_ms=14.0, hostname="dns.google")
        public.apply_geolocation(
            GeoLocation(latitude=37.4, longitude=-122.1, city="Mountain View", country="United States", asn=15169, isp="Google LLC")
        )
        hops = [
            Hop(hop_number=1, ip_address="192.168.1.1", latency_ms=0.9),
            Hop(hop_number=2, ip_address=TIMEOUT_ADDRESS),
            public,
        ]

        validate(instance=render(ResultReporter.traceroute_document("8.8.8.8", hops)), schema=schema)

    def test_empty_trace(self):
        """Test a trace without hops validates."""
        schema = load_schema("traceroute-report-schema.json")

        validate(instance=render(ResultReporter.traceroute_document("host", [])), schema=schema)

    def test_hop_number_zero_rejected(self):
        """Test the schema rejects invalid hop numbers."""
        schema = load_schema("traceroute-report-schema.json")
        document = render(
            ResultReporter.traceroute_document("host", [Hop(hop_number=1, ip_address=TIMEOUT_ADDRESS)])
        )
        document["hops"][0]["hop"] = 0

        with pytest.raises(ValidationError):
            validate(instance=document, schema=schema)


class TestDnsContract:
    """Test DNS JSON conforms to dns-report-schema.json."""

    def test_all_types(self):
        """Test a multi-type document with known and unknown types."""
        schema = load_schema("dns-report-schema.json")
        answers = {
            "A": [DNSRecord("example.com", "A", 300, "93.184.216.34")],
            "MX": [DNSRecord("example.com", "MX", 3600, "10 mail.example.com")],
            "TXT": [],
            "SOA": [DNSRecord("example.com", "TYPE65", 60, "(12 bytes)")],
        }

        validate(instance=render(ResultReporter.dns_document("example.com", answers, "1.1.1.1")), schema=schema)

    def test_system_resolver(self):
        """Test a null server validates."""
        schema = load_schema("dns-report-schema.json")

        validate(instance=render(ResultReporter.dns_document("example.com", {"A": []})), schema=schema)

    def test_lowercase_type_rejected(self):
        """Test record types must be mnemonics."""
        schema = load_schema("dns-report-schema.json")
        document = render(
            ResultReporter.dns_document("example.com", {"A": [DNSRecord("example.com", "a", 1, "x")]})
        )

        with pytest.raises(ValidationError):
            validate(instance=document, schema=schema)


class TestWhoisContract:
    """Test WHOIS JSON conforms to whois-report-schema.json."""

    def test_referral_chain(self):
        """Test a followed referral validates."""
        schema = load_schema("whois-report-schema.json")
        result = WhoisResult(
            target="example.com",
            server="whois.markmonitor.com",
            text="Domain Name: example.com\n",
            servers_queried=["whois.verisign-grs.com", "whois.markmonitor.com"],
        )

        validate(instance=render(ResultReporter.whois_document(result)), schema=schema)

    def test_empty_response(self):
        """Test an empty response validates with zero lines."""
        schema = load_schema("whois-report-schema.json")
        document = render(
            ResultReporter.whois_document(WhoisResult(target="example.com", server="whois.verisign-grs.com", text=""))
        )

        validate(instance=document, schema=schema)
        assert document["line_count"] == 0


class TestPingContract:
    """Test ping JSON conforms to ping-report-schema.json."""

    def test_partial_loss(self):
        """Test replies and failures validate together."""
        schema = load_schema("ping-report-schema.json")
        results = [
            EchoResult(target="h", address="192.0.2.1", rtt_ms=11.0, sequence=1),
            EchoResult(target="h", address="192.0.2.1", sequence=2, failure="timeout"),
            EchoResult(target="h", failure="resolution"),
        ]

        document = ResultReporter.ping_document("h", results, PingStatistics.from_results(results))

        validate(instance=render(document), schema=schema)

    def test_unknown_failure_tag_rejected(self):
        """Test failure tags are restricted."""
        schema = load_schema("ping-report-schema.json")
        results = [EchoResult(target="h", failure="exploded")]
        document = ResultReporter.ping_document("h", results, PingStatistics.from_results(results))

        with pytest.raises(ValidationError):
            validate(instance=render(document), schema=schema)
