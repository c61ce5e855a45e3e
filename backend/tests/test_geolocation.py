import asyncio

import httpx
import pytest

from app.services.geolocation import (
    GeolocationResolver,
    GeoProvider,
    IpApiCoProvider,
    IpApiComProvider,
    PublicIPDiscovery,
    LocationData,
    UNKNOWN_LOCATION,
    is_public_ip,
    build_geolocation_resolver,
)
from app.config import Settings

PRIMARY = "https://primary.test/{ip}/json/"
SECONDARY = "https://secondary.test/json/{ip}"
IP_SERVICES = ["https://myip-a.test", "https://myip-b.test"]

IPAPI_CO_OK = {
    "country_name": "Germany",
    "city": "Berlin",
    "region": "Land Berlin",
    "latitude": 52.52,
    "longitude": 13.405,
}
IP_API_COM_OK = {
    "status": "success",
    "country": "France",
    "city": "Paris",
    "regionName": "Ile-de-France",
    "lat": 48.85,
    "lon": 2.35,
}


def make_resolver(handler, timeout=1.0, discovery=True, budget=2.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    providers = [
        IpApiCoProvider(client, PRIMARY, timeout),
        IpApiComProvider(client, SECONDARY, timeout),
    ]
    ip_discovery = PublicIPDiscovery(client, IP_SERVICES, attempt_timeout=0.5, budget=budget) if discovery else None
    return GeolocationResolver(providers, ip_discovery), client


@pytest.mark.parametrize("ip,expected", [
    ("8.8.8.8", True),
    ("2001:4860:4860::8888", True),
    ("127.0.0.1", False),
    ("::1", False),
    ("10.1.2.3", False),
    ("192.168.0.10", False),
    ("172.16.5.4", False),
    ("::ffff:127.0.0.1", False),
    ("", False),
    (None, False),
    ("not-an-ip", False),
])
def test_is_public_ip(ip, expected):
    assert is_public_ip(ip) is expected


async def test_primary_provider_answer_is_used():
    def handler(request: httpx.Request):
        assert request.url.host == "primary.test"
        assert request.url.path == "/8.8.8.8/json/"
        return httpx.Response(200, json=IPAPI_CO_OK)

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location == LocationData(
        country="Germany", city="Berlin", region="Land Berlin", latitude=52.52, longitude=13.405
    )


async def test_rate_limited_primary_falls_back_to_secondary():
    def handler(request: httpx.Request):
        if request.url.host == "primary.test":
            return httpx.Response(429, json={"error": True, "reason": "RateLimited"})
        return httpx.Response(200, json=IP_API_COM_OK)

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location.country == "France"
    assert location.region == "Ile-de-France"
    assert location.latitude == 48.85


async def test_error_payload_from_primary_falls_back():
    def handler(request: httpx.Request):
        if request.url.host == "primary.test":
            return httpx.Response(200, json={"error": True, "reason": "Reserved IP Address"})
        return httpx.Response(200, json=IP_API_COM_OK)

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location.city == "Paris"


async def test_primary_timeout_falls_back():
    async def handler(request: httpx.Request):
        if request.url.host == "primary.test":
            await asyncio.sleep(5)
        return httpx.Response(200, json=IP_API_COM_OK)

    resolver, client = make_resolver(handler, timeout=0.1)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location.country == "France"


async def test_missing_fields_are_none_not_defaulted():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"country_name": "Japan", "city": "", "latitude": None})

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location == LocationData(country="Japan")
    assert not location.is_unknown


async def test_all_providers_failing_returns_unknown():
    def handler(request: httpx.Request):
        if request.url.host == "primary.test":
            raise httpx.ConnectError("connection refused")
        return httpx.Response(200, json={"status": "fail", "message": "quota"})

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("8.8.8.8")

    assert location == UNKNOWN_LOCATION
    assert location.is_unknown


async def test_private_ip_is_replaced_with_public_egress_ip():
    looked_up = []

    def handler(request: httpx.Request):
        if request.url.host == "myip-a.test":
            return httpx.Response(503)
        if request.url.host == "myip-b.test":
            return httpx.Response(200, text="203.0.113.7\n")
        looked_up.append(request.url.path)
        return httpx.Response(200, json=IPAPI_CO_OK)

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("192.168.1.20")

    assert location != UNKNOWN_LOCATION
    assert location.country == "Germany"
    assert looked_up == ["/203.0.113.7/json/"]


async def test_loopback_without_any_discovery_answer_is_unknown():
    def handler(request: httpx.Request):
        if request.url.host.startswith("myip"):
            return httpx.Response(200, text="garbage")
        return httpx.Response(200, json=IPAPI_CO_OK)

    resolver, client = make_resolver(handler)
    async with client:
        location = await resolver.resolve("127.0.0.1")

    assert location == UNKNOWN_LOCATION


async def test_discovery_budget_bounds_total_time():
    async def handler(request: httpx.Request):
        await asyncio.sleep(5)
        return httpx.Response(200, text="203.0.113.7")

    resolver, client = make_resolver(handler, budget=0.2)
    loop = asyncio.get_running_loop()
    started = loop.time()
    async with client:
        location = await resolver.resolve("")
    elapsed = loop.time() - started

    assert location == UNKNOWN_LOCATION
    assert elapsed < 2


async def test_unexpected_provider_fault_is_absorbed():
    class Broken(IpApiCoProvider):
        def parse(self, data):
            raise RuntimeError("boom")

    def handler(request: httpx.Request):
        return httpx.Response(200, json=IPAPI_CO_OK)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        resolver = GeolocationResolver([Broken(client, PRIMARY)])
        assert await resolver.resolve("8.8.8.8") == UNKNOWN_LOCATION


async def test_resolver_is_absent_when_disabled():
    async with httpx.AsyncClient() as client:
        assert build_geolocation_resolver(Settings(geolocation_enabled=False), client) is None
        resolver = build_geolocation_resolver(Settings(geolocation_enabled=True), client)
        assert isinstance(resolver, GeolocationResolver)
        assert [p.name for p in resolver.providers] == ["ipapi.co", "ip-api.com"]


async def test_provider_base_requires_parse():
    async with httpx.AsyncClient() as client:
        with pytest.raises(TypeError):
            GeoProvider(client, PRIMARY)
