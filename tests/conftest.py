"""Shared fixtures: a controllable clock and a fake catalog/economy upstream."""

import dataclasses
import re

import httpx
import pytest

from catalog_proxy.catalog_client import CatalogClient
from catalog_proxy.catalog_service import CatalogService
from catalog_proxy.config import Settings
from catalog_proxy.memory_cache import MemoryCache
from catalog_proxy.rate_governor import RateGovernor

SEARCH_PATH = "/v1/search/items/details"
_ASSET_RE = re.compile(r"^/v2/assets/(\d+)/details$")
_CATALOG_ITEM_RE = re.compile(r"^/v1/catalog/items/(\d+)/details$")


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_record(asset_id, price=10, asset_type_id=8, name=None):
    return {
        "id": asset_id,
        "itemType": "Asset",
        "assetTypeId": asset_type_id,
        "name": name or f"Item {asset_id}",
        "description": f"Description of {asset_id}",
        "productId": asset_id * 10,
        "creatorName": "Roblox",
        "price": price,
        "isForSale": True,
    }


def make_asset_details(asset_id, price):
    return {
        "AssetId": asset_id,
        "ProductId": asset_id * 10,
        "Name": f"Item {asset_id}",
        "Description": f"Description of {asset_id}",
        "AssetTypeId": 8,
        "Creator": {"Id": 1, "Name": "Roblox"},
        "PriceInRobux": price,
        "IsForSale": True,
    }


class FakeUpstream:
    """
    Routes requests the way the real catalog and economy APIs lay them out.

    search_response, asset_details and catalog_items hold the bodies to
    serve; failures maps a path to a status code or an exception to raise.
    """

    def __init__(self):
        self.requests = []
        self.search_response = {
            "data": [make_record(i, price=i) for i in range(1, 6)],
            "nextPageCursor": "cursor-2",
        }
        self.asset_details = {i: make_asset_details(i, price=100 + i) for i in range(1, 6)}
        self.catalog_items = {}
        self.failures = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        failure = self.failures.get(path)
        if isinstance(failure, Exception):
            raise failure
        if isinstance(failure, int):
            return httpx.Response(
                failure,
                json={"errors": [{"code": 0, "message": f"upstream said {failure}"}]},
            )

        if path == SEARCH_PATH:
            return httpx.Response(200, json=self.search_response)

        match = _ASSET_RE.match(path)
        if match and int(match.group(1)) in self.asset_details:
            return httpx.Response(200, json=self.asset_details[int(match.group(1))])

        match = _CATALOG_ITEM_RE.match(path)
        if match and int(match.group(1)) in self.catalog_items:
            return httpx.Response(200, json=self.catalog_items[int(match.group(1))])

        return httpx.Response(404, json={"errors": [{"code": 0, "message": "NotFound"}]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, prefix: str = "") -> list:
        return [r for r in self.requests if r.url.path.startswith(prefix)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    return Settings(
        catalog_api_base="https://catalog.test",
        economy_api_base="https://economy.test",
    )


@pytest.fixture
def make_service(upstream, clock, settings):
    """Factory for a CatalogService wired to the fake upstream and clock."""
    def _make(**overrides):
        effective = dataclasses.replace(settings, **overrides)
        client = CatalogClient(
            catalog_base=effective.catalog_api_base,
            economy_base=effective.economy_api_base,
            timeout=effective.upstream_timeout_seconds,
            request_delay_ms=effective.upstream_delay_ms,
            transport=upstream.transport,
        )
        return CatalogService(
            client=client,
            cache=MemoryCache(effective.cache_ttl_seconds, effective.cache_max_entries, clock=clock),
            governor=RateGovernor(
                effective.rate_limit_max_requests,
                effective.rate_limit_window_seconds,
                clock=clock,
            ),
            settings=effective,
        )
    return _make
