"""Tests for the legacy Ravelry client."""

import base64

import httpx
import pytest

from shopcache.config import ConfigurationError
from shopcache.ravelry_client import RavelryClient

from conftest import RecordingTransport

PATTERN = {
    "pattern": {
        "id": 42,
        "name": "Aran Scarf",
        "permalink": "aran-scarf",
        "price": 5.5,
        "currency": "GBP",
        "free": False,
        "downloadable": True,
        "notes": "A cabled scarf knitting pattern.",
        "craft": {"name": "Knitting"},
        "pattern_attributes": [{"permalink": "cables"}, {"permalink": "adult"}],
        "pattern_author": {"name": "Jo Designer"},
        "photos": [{"id": 1, "medium_url": "https://images/medium.jpg", "square_url": "https://images/sq.jpg"}],
    }
}

DESIGNER = {
    "pattern_author": {
        "id": 7,
        "name": "Jo Designer",
        "permalink": "jo-designer",
        "notes_html": "<p>Hello</p>",
        "patterns_count": 12,
        "users": [{"photo_url": "https://images/jo.jpg", "user_sites": [{"url": "https://jo.example"}]}],
    },
    "featured_bundles": [{"id": 3, "name": "Winter", "url": "https://bundles/3", "small_image_url": "https://b.jpg"}],
}


def _client(handler, **kwargs):
    options = {"username": "read-key", "password": "secret", "store_id": "11", "designer_id": "7"}
    options.update(kwargs)
    transport = RecordingTransport(handler)
    return RavelryClient(transport=transport, **options), transport


@pytest.mark.asyncio
async def test_pattern_uses_basic_auth_and_normalizes():
    client, transport = _client(lambda request: httpx.Response(200, json=PATTERN))

    product = await client.fetch_product(42)

    request = transport.requests[0]
    assert str(request.url) == "https://api.ravelry.com/patterns/42.json"
    expected = base64.b64encode(b"read-key:secret").decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    assert client.product_kind == "patterns"
    assert product.title == "Aran Scarf"
    assert product.handle == "aran-scarf"
    assert product.tags == ["cables", "adult"]
    assert product.pretty_price == "GBP 5.50"
    assert product.thumbnail_url == "https://images/sq.jpg"
    assert product.vendor == "Jo Designer"
    await client.close()


@pytest.mark.asyncio
async def test_designer_profile_as_shop():
    client, transport = _client(lambda request: httpx.Response(200, json=DESIGNER), designer_name="Jo's Patterns")

    shop = await client.fetch_shop()

    assert transport.requests[0].url.params["include"] == "featured_bundles"
    assert shop.title == "Jo's Patterns"
    assert shop.icon_url == "https://images/jo.jpg"
    assert shop.sites == ["https://jo.example"]
    assert shop.featured[0]["name"] == "Winter"
    await client.close()


@pytest.mark.asyncio
async def test_store_products():
    payload = {"products": [{"id": 5, "title": "Aran Scarf", "price": "5.50", "currency": "GBP"}]}
    client, transport = _client(lambda request: httpx.Response(200, json=payload))

    product_list = await client.fetch_product_list()

    assert transport.requests[0].url.path == "/stores/11/products.json"
    assert product_list.results[0].pretty_price == "GBP 5.50"
    await client.close()


@pytest.mark.asyncio
async def test_missing_store_id():
    client, transport = _client(lambda request: httpx.Response(200, json={}), store_id=None)

    with pytest.raises(ConfigurationError, match="STORE_ID"):
        await client.fetch_product_list()

    assert transport.requests == []
    await client.close()
