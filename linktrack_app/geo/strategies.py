"""
Geo lookup strategies using Strategy Pattern.

lookup() never raises: private and loopback addresses short-circuit to the
fixed unknown location, and any external failure degrades to the same value.
batch_lookup() reports per-IP success or failure instead.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import requests

from linktrack_app.exceptions import GeoLookupError
from linktrack_app.schemas.enrichment import UNKNOWN, Coordinates, GeoBatchResult, GeoLocation

logger = logging.getLogger(__name__)

PRIVATE_IP_PATTERNS = [
    re.compile(r'^127\.'),  # Loopback
    re.compile(r'^10\.'),  # Class A private
    re.compile(r'^172\.(1[6-9]|2[0-9]|3[0-1])\.'),  # Class B private
    re.compile(r'^192\.168\.'),  # Class C private
    re.compile(r'^169\.254\.'),  # Link-local
    re.compile(r'^0\.0\.0\.0$'),
    re.compile(r'^::1$'),  # IPv6 loopback
    re.compile(r'^::ffff:(127|10|192\.168)\.', re.IGNORECASE),  # IPv4-mapped
    re.compile(r'^f[cd][0-9a-f]{2}:', re.IGNORECASE),  # IPv6 unique local
    re.compile(r'^fe80:', re.IGNORECASE),  # IPv6 link-local
]


def is_private_ip(ip: Optional[str]) -> bool:
    """Check if IP address is private/local (or missing)."""
    if not ip:
        return True
    for pattern in PRIVATE_IP_PATTERNS:
        if pattern.match(ip):
            return True
    return False


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class GeoStrategy(ABC):
    """Abstract base class for IP geolocation backends."""

    @abstractmethod
    async def resolve(self, ip: str) -> GeoLocation:
        """
        Resolve a public IP address.

        Raises:
            GeoLookupError: the backend could not produce a location
        """
        pass

    async def lookup(self, ip: Optional[str]) -> GeoLocation:
        """Resolve an IP, degrading to the unknown location on any failure."""
        if is_private_ip(ip):
            return GeoLocation.unknown()
        try:
            return await self.resolve(ip)
        except Exception as e:
            logger.warning("Geo lookup failed for %s: %s", ip, e)
            return GeoLocation.unknown()

    async def batch_lookup(self, ips: Iterable[str]) -> List[GeoBatchResult]:
        """
        Resolve many IPs concurrently.

        Each entry carries either a location or an error message; one failed
        lookup never aborts the rest.
        """
        async def _one(ip: str) -> GeoBatchResult:
            if is_private_ip(ip):
                return GeoBatchResult(ip=ip, location=GeoLocation.unknown())
            try:
                location = await self.resolve(ip)
            except Exception as e:
                return GeoBatchResult(ip=ip, error=str(e) or e.__class__.__name__)
            return GeoBatchResult(ip=ip, location=location)

        return list(await asyncio.gather(*(_one(ip) for ip in ips)))


class IpApiGeoResolver(GeoStrategy):
    """
    ipapi.co lookup over HTTP (free tier: 1000 requests/day).

    The blocking requests call runs in a worker thread with a bounded timeout.
    """

    def __init__(
        self,
        base_url: str = "https://ipapi.co",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    async def resolve(self, ip: str) -> GeoLocation:
        return await asyncio.to_thread(self._fetch, ip)

    def _fetch(self, ip: str) -> GeoLocation:
        try:
            response = self.session.get(
                f"{self.base_url}/{ip}/json/",
                timeout=self.timeout,
                headers={"User-Agent": "LinkTrack/1.0"},
            )
        except requests.RequestException as e:
            raise GeoLookupError(f"request failed: {e}") from e

        if not response.ok:
            raise GeoLookupError(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise GeoLookupError("malformed response") from e

        if not isinstance(data, dict):
            raise GeoLookupError("malformed response")
        if data.get("error"):
            raise GeoLookupError(data.get("reason") or "lookup rejected")

        return GeoLocation(
            country=data.get("country_name") or UNKNOWN,
            country_code=data.get("country_code") or "XX",
            region=data.get("region") or UNKNOWN,
            city=data.get("city") or UNKNOWN,
            timezone=data.get("timezone") or UNKNOWN,
            coordinates=Coordinates(
                lat=_to_float(data.get("latitude")),
                lon=_to_float(data.get("longitude")),
            ),
        )


class NullGeoResolver(GeoStrategy):
    """Null Object Pattern - every address resolves to the unknown location."""

    async def resolve(self, ip: str) -> GeoLocation:
        return GeoLocation.unknown()
