"""IP geolocation lookups for traceroute hops."""

import logging
from typing import Optional

import requests

from netdiag.models.hop import GeoLocation
from netdiag.utils.retry import exponential_backoff_retry


logger = logging.getLogger(__name__)

DEFAULT_GEOLOCATION_URL = "https://ipwho.is/"


def parse_geolocation(payload: dict) -> Optional[GeoLocation]:
    """Convert a geolocation JSON document into a GeoLocation.

    Args:
        payload: Decoded JSON with latitude, longitude, city, country and an
            optional connection object (asn, isp, org).

    Returns:
        Optional[GeoLocation]: None if the service reported failure or the
            coordinates are missing.
    """
    if not isinstance(payload, dict) or payload.get("success") is not True:
        return None

    latitude = payload.get("latitude")
    longitude = payload.get("longitude")
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return None

    connection = payload.get("connection")
    if not isinstance(connection, dict):
        connection = {}
    asn = connection.get("asn")

    return GeoLocation(
        latitude=float(latitude),
        longitude=float(longitude),
        city=payload.get("city") or "",
        country=payload.get("country") or "",
        region=payload.get("region"),
        country_code=payload.get("country_code"),
        asn=asn if isinstance(asn, int) else None,
        isp=connection.get("isp"),
        org=connection.get("org"),
    )


class GeoLocator:
    """Best-effort HTTPS geolocation client."""

    def __init__(
        self,
        base_url: str = DEFAULT_GEOLOCATION_URL,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Service URL; the IP address is appended to it.
            timeout: HTTP timeout in seconds.
            session: Optional requests session (injected by tests).
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    @exponential_backoff_retry()
    def _fetch(self, ip: str) -> dict:
        response = self.session.get(f"{self.base_url}{ip}", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        """Geolocate an address.

        Args:
            ip: Public IPv4 or IPv6 address.

        Returns:
            Optional[GeoLocation]: Location, or None on any failure.
        """
        try:
            payload = self._fetch(ip)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Geolocation lookup failed for {ip}: {e}")
            return None
        return parse_geolocation(payload)
