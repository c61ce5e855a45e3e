"""IP geolocation with provider fallback.

Lookups go to an ordered list of public providers; the first one that
returns a usable answer wins. Addresses that are not publicly routable
(loopback, private ranges, empty) are swapped for the deployment's own
egress IP before the lookup. Every failure collapses to ``UNKNOWN_LOCATION``;
nothing in this module raises to its caller.
"""

import asyncio
from abc import ABC, abstractmethod
import ipaddress
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.config import Settings
from app.services.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationData:
    """Coarse location for an IP. Any field may be None when the provider omits it."""
    country: str | None = None
    city: str | None = None
    region: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def is_unknown(self) -> bool:
        return self == UNKNOWN_LOCATION


UNKNOWN = "Unknown"
UNKNOWN_LOCATION = LocationData(country=UNKNOWN, city=UNKNOWN, region=UNKNOWN)


def is_public_ip(ip: str | None) -> bool:
    """True if ``ip`` parses and is routable on the public internet."""
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped:
        addr = addr.ipv4_mapped
    return not (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_unspecified
        or addr.is_reserved
        or addr.is_multicast
    )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class GeoProvider(ABC):
    """A single HTTP geolocation provider.

    Subclasses implement ``parse`` to turn the provider's JSON payload into a
    ``LocationData``, raising ``UpstreamUnavailableError`` for payloads that
    report an error.
    """

    name = "provider"

    def __init__(self, client: httpx.AsyncClient, url_template: str, timeout: float = 5.0):
        self.client = client
        self.url_template = url_template
        self.timeout = timeout

    async def lookup(self, ip: str) -> LocationData:
        url = self.url_template.format(ip=ip)
        try:
            response = await asyncio.wait_for(self.client.get(url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError(f"{self.name}: timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"{self.name}: {e.__class__.__name__}: {e}") from e

        if response.status_code == 429:
            raise UpstreamUnavailableError(f"{self.name}: rate limited")
        if response.status_code >= 400:
            raise UpstreamUnavailableError(f"{self.name}: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(f"{self.name}: invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"{self.name}: unexpected payload")

        return self.parse(data)

    @abstractmethod
    def parse(self, data: dict) -> LocationData:
        """Map the provider payload to a LocationData."""
        pass


class IpApiCoProvider(GeoProvider):
    """ipapi.co: ``{"country_name", "city", "region", "latitude", "longitude"}``.

    Errors (including rate limiting) come back as ``{"error": true, "reason": ...}``.
    """

    name = "ipapi.co"

    def parse(self, data: dict) -> LocationData:
        if data.get("error"):
            raise UpstreamUnavailableError(f"{self.name}: {data.get('reason') or 'error'}")
        return LocationData(
            country=_text(data.get("country_name")),
            city=_text(data.get("city")),
            region=_text(data.get("region")),
            latitude=_number(data.get("latitude")),
            longitude=_number(data.get("longitude")),
        )


class IpApiComProvider(GeoProvider):
    """ip-api.com: ``{"status", "country", "city", "regionName", "lat", "lon"}``."""

    name = "ip-api.com"

    def parse(self, data: dict) -> LocationData:
        if data.get("status") != "success":
            raise UpstreamUnavailableError(f"{self.name}: {data.get('message') or 'fail'}")
        return LocationData(
            country=_text(data.get("country")),
            city=_text(data.get("city")),
            region=_text(data.get("regionName")),
            latitude=_number(data.get("lat")),
            longitude=_number(data.get("lon")),
        )


class PublicIPDiscovery:
    """Finds this deployment's public egress IP via "what is my IP" services."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        services: list[str],
        attempt_timeout: float = 2.0,
        budget: float = 5.0,
    ):
        self.client = client
        self.services = list(services)
        self.attempt_timeout = attempt_timeout
        self.budget = budget

    async def discover(self) -> str | None:
        """Return the first valid IP any service reports, or None."""
        try:
            return await asyncio.wait_for(self._try_services(), timeout=self.budget)
        except asyncio.TimeoutError:
            logger.warning("Public IP discovery exceeded its %.1fs budget", self.budget)
            return None

    async def _try_services(self) -> str | None:
        for url in self.services:
            try:
                response = await asyncio.wait_for(self.client.get(url), timeout=self.attempt_timeout)
                response.raise_for_status()
                candidate = response.text.strip()
                ipaddress.ip_address(candidate)
                return candidate
            except (asyncio.TimeoutError, httpx.HTTPError, ValueError) as e:
                logger.warning("Public IP service %s failed: %s", url, e)
        return None


class GeolocationResolver:
    def __init__(self, providers: list[GeoProvider], ip_discovery: PublicIPDiscovery | None = None):
        self.providers = list(providers)
        self.ip_discovery = ip_discovery

    async def resolve(self, ip: str | None) -> LocationData:
        """Resolve ``ip`` to a location. Returns ``UNKNOWN_LOCATION`` on any failure."""
        try:
            return await self._resolve(ip)
        except Exception:
            logger.exception("Unexpected error resolving location for %r", ip)
            return UNKNOWN_LOCATION

    async def _resolve(self, ip: str | None) -> LocationData:
        target = ip.strip() if ip else ""
        if not is_public_ip(target):
            logger.debug("IP %r is not publicly routable, using egress IP", ip)
            target = await self.ip_discovery.discover() if self.ip_discovery else None
            if not target:
                return UNKNOWN_LOCATION

        for provider in self.providers:
            try:
                return await provider.lookup(target)
            except UpstreamUnavailableError as e:
                logger.warning("Geolocation lookup failed, trying next provider: %s", e)

        logger.warning("All geolocation providers failed for %s", target)
        return UNKNOWN_LOCATION


def build_geolocation_resolver(settings: Settings, client: httpx.AsyncClient) -> GeolocationResolver | None:
    """Build the resolver from settings. Returns None when geolocation is disabled."""
    if not settings.geolocation_enabled:
        return None

    providers: list[GeoProvider] = [
        IpApiCoProvider(client, settings.geo_primary_url, settings.geo_timeout_seconds),
        IpApiComProvider(client, settings.geo_secondary_url, settings.geo_timeout_seconds),
    ]
    ip_discovery = None
    if settings.public_ip_services:
        ip_discovery = PublicIPDiscovery(
            client,
            settings.public_ip_services,
            attempt_timeout=settings.public_ip_timeout_seconds,
            budget=settings.public_ip_budget_seconds,
        )
    return GeolocationResolver(providers, ip_discovery)
