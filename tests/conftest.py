"""Shared fixtures for shopcache tests."""

import json
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from shopcache.catalog import CacheAside, Catalog
from shopcache.config import Settings
from shopcache.file_cache import FileCache
from shopcache.http_client import NotFoundError

WEEK = 60 * 60 * 24 * 7


class FakeStorefront:
    """In-memory backend that counts fetches."""

    name = "fake"

    def __init__(self, products: Optional[List[Dict[str, Any]]] = None, product_kind: str = "products"):
        self.product_kind = product_kind
        self.shop = {"id": 1, "name": "Knit Shop"}
        self.products = {str(p["id"]): p for p in products or []}
        self.calls: Counter = Counter()
        self.error: Optional[Exception] = None
        self.closed = False

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def fetch_shop(self):
        self.calls["shop"] += 1
        self._maybe_fail()
        return self.shop

    async def fetch_product_list(self):
        self.calls["products"] += 1
        self._maybe_fail()
        return {"results": list(self.products.values())}

    async def fetch_product(self, product_id):
        self.calls["product"] += 1
        self._maybe_fail()
        try:
            return self.products[str(product_id)]
        except KeyError:
            raise NotFoundError(f"Not found: {product_id}", 404)

    async def close(self):
        self.closed = True


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def json_body(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content.decode())


@pytest.fixture
def products() -> List[Dict[str, Any]]:
    return [
        {"id": 123, "title": "Blue Hat", "handle": "blue-hat", "tags": ["hat", "wool"]},
        {"id": 456, "title": "baby cardigan", "handle": "baby-cardigan", "tags": ["baby", "wool"]},
        {"id": 789, "title": "Aran Scarf", "handle": "aran-scarf", "tags": []},
    ]


@pytest.fixture
def storefront(products) -> FakeStorefront:
    return FakeStorefront(products)


@pytest.fixture
def file_cache(tmp_path) -> FileCache:
    return FileCache(tmp_path / "data", ttl=WEEK)


@pytest.fixture
def catalog(storefront, file_cache) -> Catalog:
    return Catalog(storefront, CacheAside(file_cache, stale_if_error=True))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATA_DIR=tmp_path / "data",
        ETSY_API_KEY="test-key",
        ETSY_ACCESS_TOKEN="test-token",
        ETSY_SHOP_ID="42",
        REVIEWS_BATCH_DELAY_SECONDS=0,
    )
