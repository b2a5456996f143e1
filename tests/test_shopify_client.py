"""Tests for the Shopify GraphQL client."""

import httpx
import pytest

from shopcache.config import ConfigurationError
from shopcache.http_client import NotFoundError, RemoteAPIError
from shopcache.shopify_client import ShopifyClient

from conftest import RecordingTransport, json_body

STOREFRONT_NODE = {
    "id": "gid://shopify/Product/123",
    "title": "Blue Hat",
    "handle": "blue-hat",
    "description": "A hat",
    "productType": "Pattern",
    "tags": ["hat", "wool"],
    "vendor": "Knit Shop",
    "availableForSale": True,
    "priceRange": {
        "minVariantPrice": {"amount": "5.0", "currencyCode": "EUR"},
        "maxVariantPrice": {"amount": "7.0", "currencyCode": "EUR"},
    },
    "images": {"edges": [{"node": {"id": "gid://shopify/ProductImage/9", "url": "https://cdn/hat.jpg",
                                   "altText": "Blue hat", "width": 10, "height": 20}}]},
    "variants": {"edges": [{"node": {
        "id": "gid://shopify/ProductVariant/1", "title": "Adult", "sku": "HAT-A",
        "availableForSale": True, "quantityAvailable": 3,
        "price": {"amount": "7.0", "currencyCode": "EUR"}, "compareAtPrice": None,
    }}]},
}

ADMIN_NODE = {
    "id": "gid://shopify/Product/123",
    "title": "Blue Hat",
    "handle": "blue-hat",
    "status": "ACTIVE",
    "totalInventory": 12,
    "priceRangeV2": {
        "minVariantPrice": {"amount": "5.0", "currencyCode": "EUR"},
        "maxVariantPrice": {"amount": "5.0", "currencyCode": "EUR"},
    },
    "images": {"edges": []},
    "variants": {"edges": [{"node": {
        "id": "gid://shopify/ProductVariant/1", "title": "Default Title", "sku": "",
        "availableForSale": True, "inventoryQuantity": 12, "price": "5.00", "compareAtPrice": "6.00",
    }}]},
}


def _client(handler, **kwargs):
    options = {"domain": "knit.myshopify.com", "storefront_token": "sf-token"}
    options.update(kwargs)
    transport = RecordingTransport(handler)
    return ShopifyClient(transport=transport, **options), transport


@pytest.mark.asyncio
async def test_requires_a_token_before_network():
    client, transport = _client(lambda request: httpx.Response(200, json={}), storefront_token=None)

    with pytest.raises(ConfigurationError):
        await client.fetch_shop()

    assert transport.requests == []
    await client.close()


@pytest.mark.asyncio
async def test_storefront_endpoint_and_header():
    client, transport = _client(lambda request: httpx.Response(
        200, json={"data": {"shop": {"id": "gid://shopify/Shop/1", "name": "Knit Shop",
                                     "primaryDomain": {"url": "https://knit.example"}}}}))

    shop = await client.fetch_shop()

    request = transport.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://knit.myshopify.com/api/2024-10/graphql.json"
    assert request.headers["X-Shopify-Storefront-Access-Token"] == "sf-token"
    assert shop.id == "1"
    assert shop.url == "https://knit.example"
    await client.close()


@pytest.mark.asyncio
async def test_admin_api_used_without_storefront_token():
    client, transport = _client(
        lambda request: httpx.Response(200, json={"data": {"product": ADMIN_NODE}}),
        storefront_token=None,
        admin_token="admin-token",
    )

    product = await client.fetch_product("123")

    request = transport.requests[0]
    assert request.url.path == "/admin/api/2024-10/graphql.json"
    assert request.headers["X-Shopify-Access-Token"] == "admin-token"
    assert json_body(request)["variables"] == {"id": "gid://shopify/Product/123"}
    assert product.id == "123"
    assert product.total_inventory == 12
    assert product.available_for_sale is True
    assert product.variants[0].price.amount == "5.00"
    assert product.variants[0].price.currency_code == "EUR"
    assert product.variants[0].compare_at_price.amount == "6.00"
    await client.close()


@pytest.mark.asyncio
async def test_product_by_handle():
    client, transport = _client(lambda request: httpx.Response(200, json={"data": {"product": STOREFRONT_NODE}}))

    product = await client.fetch_product("blue-hat")

    body = json_body(transport.requests[0])
    assert body["variables"] == {"handle": "blue-hat"}
    assert "product(handle: $handle)" in body["query"]
    assert product.id == "123"
    assert product.images[0].id == "9"
    assert product.variants[0].quantity_available == 3
    assert product.total_inventory == 3
    assert product.price_range.max_variant_price.amount == "7.0"
    await client.close()


@pytest.mark.asyncio
async def test_product_list_paginates():
    pages = [
        {"data": {"products": {"edges": [{"node": STOREFRONT_NODE}],
                               "pageInfo": {"hasNextPage": True, "endCursor": "c1"}}}},
        {"data": {"products": {"edges": [{"node": dict(STOREFRONT_NODE, id="gid://shopify/Product/456")}],
                               "pageInfo": {"hasNextPage": False, "endCursor": None}}}},
    ]
    client, transport = _client(lambda request: httpx.Response(200, json=pages[len(transport.requests) - 1]))

    product_list = await client.fetch_product_list()

    assert [p.id for p in product_list.results] == ["123", "456"]
    assert json_body(transport.requests[1])["variables"]["after"] == "c1"
    await client.close()


@pytest.mark.asyncio
async def test_graphql_errors_raise():
    client, _ = _client(lambda request: httpx.Response(200, json={"errors": [{"message": "Access denied"}]}))

    with pytest.raises(RemoteAPIError, match="Access denied"):
        await client.fetch_shop()
    await client.close()


@pytest.mark.asyncio
async def test_missing_product_is_not_found():
    client, _ = _client(lambda request: httpx.Response(200, json={"data": {"product": None}}))

    with pytest.raises(NotFoundError):
        await client.fetch_product("999")
    await client.close()
