"""Traceroute hop model."""

from dataclasses import dataclass
from typing import Optional, Tuple

from netdiag.utils.ip_utils import is_private_address


TIMEOUT_ADDRESS = "*"
LOCATION_PENDING = "..."
LOCATION_UNKNOWN = "unknown"


@dataclass
class GeoLocation:
    """Geolocation details for a public address.

    Attributes:
        latitude: Decimal latitude.
        longitude: Decimal longitude.
        city: City name (may be empty).
        country: Country name (may be empty).
        region: Region or state name.
        country_code: ISO country code.
        asn: Autonomous system number.
        isp: Internet service provider name.
        org: Organization name.
    """

    latitude: float
    longitude: float
    city: str = ""
    country: str = ""
    region: Optional[str] = None
    country_code: Optional[str] = None
    asn: Optional[int] = None
    isp: Optional[str] = None
    org: Optional[str] = None


@dataclass
class Hop:
    """One traceroute TTL step.

    The hop number is assigned at creation; hostname and geolocation fields
    are filled in afterwards as lookups complete.

    Attributes:
        hop_number: TTL value that produced this hop (1..N).
        ip_address: Responder address, or "*" when no probe got a reply.
        latency_ms: Average RTT over the probes that got a reply.
        hostname: Reverse-DNS name, if any.
        coordinate: (latitude, longitude) once geolocated.
        geolocation_failed: Set when the lookup finished without a result.
    """

    hop_number: int
    ip_address: str
    latency_ms: Optional[float] = None
    hostname: Optional[str] = None
    coordinate: Optional[Tuple[float, float]] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    asn: Optional[int] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    geolocation_failed: bool = False

    def __setattr__(self, name, value):
        if name == "hop_number" and "hop_number" in self.__dict__:
            raise AttributeError("hop_number cannot be reassigned")
        super().__setattr__(name, value)

    @property
    def is_timeout(self) -> bool:
        return self.ip_address == TIMEOUT_ADDRESS

    @property
    def is_private_ip(self) -> bool:
        return is_private_address(self.ip_address)

    @property
    def location_string(self) -> str:
        """Human-readable location.

        Returns:
            str: "-" for timeouts, "local network" for private addresses,
                "city, country" once geolocated, "unknown" when the lookup
                failed or returned no place names, "..." while pending.
        """
        if self.is_timeout:
            return "-"
        if self.is_private_ip:
            return "local network"
        if self.city is not None and self.country is not None:
            return ", ".join(part for part in (self.city, self.country) if part) or LOCATION_UNKNOWN
        if self.geolocation_failed:
            return LOCATION_UNKNOWN
        return LOCATION_PENDING

    @property
    def asn_string(self) -> str:
        if self.asn is not None:
            return f"AS{self.asn}"
        return ""

    def apply_geolocation(self, geo: GeoLocation) -> None:
        """Copy geolocation details onto this hop.

        Args:
            geo: Lookup result for this hop's address.
        """
        self.coordinate = (geo.latitude, geo.longitude)
        self.city = geo.city
        self.region = geo.region
        self.country = geo.country
        self.country_code = geo.country_code
        self.asn = geo.asn
        self.isp = geo.isp
        self.org = geo.org
        self.geolocation_failed = False

    def mark_geolocation_failed(self) -> None:
        """Record that the lookup finished without a location."""
        self.geolocation_failed = True

    def to_json(self) -> dict:
        """Serialize to JSON-compatible dict.

        Returns:
            dict: JSON-serializable representation.
        """
        return {
            "hop": self.hop_number,
            "ip_address": None if self.is_timeout else self.ip_address,
            "timeout": self.is_timeout,
            "latency_ms": self.latency_ms,
            "hostname": self.hostname,
            "location": self.location_string,
            "coordinate": list(self.coordinate) if self.coordinate else None,
            "asn": self.asn,
            "isp": self.isp,
            "org": self.org,
        }
