"""HTTP route tests running the app against an in-memory backend."""

import os
import time
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from shopcache.config import ConfigurationError, Settings
from shopcache.etsy_client import EtsyClient
from shopcache.http_client import NetworkError, RemoteAPIError

from conftest import FakeStorefront, RecordingTransport, WEEK

REVIEWS = {"count": 1, "results": [{
    "shop_review_id": 5, "rating": 4, "review": "Lovely pattern", "create_timestamp": 1700000000,
}]}


@pytest.fixture
def review_transport():
    return RecordingTransport(lambda request: httpx.Response(200, json=REVIEWS))


@pytest.fixture
def client(settings, storefront, file_cache, review_transport):
    review_client = EtsyClient(api_key="key", access_token="tok", shop_id="42", transport=review_transport)
    app = create_app(settings, storefront=storefront, cache=file_cache, review_client=review_client)
    with TestClient(app) as test_client:
        yield test_client


def test_root_serves_shop_and_endpoints(client, storefront):
    first = client.get("/")
    second = client.get("/")

    assert first.status_code == 200
    assert first.json()["shop"] == {"id": 1, "name": "Knit Shop"}
    assert "products" in first.json()["endpoints"]
    assert first.headers["X-Cache"] == "remote"
    assert second.headers["X-Cache"] == "cache"
    assert storefront.calls["shop"] == 1


def test_products_sorted_by_title(client):
    response = client.get("/products")

    assert [p["id"] for p in response.json()["results"]] == [789, 456, 123]


def test_product_is_cached_on_disk(client, storefront, settings):
    first = client.get("/product/123")
    second = client.get("/product/123")

    assert first.json()["title"] == "Blue Hat"
    assert second.headers["X-Cache"] == "cache"
    assert storefront.calls["product"] == 1
    assert (settings.data_dir / "products" / "123.json").is_file()


def test_product_by_handle_and_pattern_alias(client):
    assert client.get("/product/blue-hat").json()["id"] == 123
    assert client.get("/pattern/456").json()["title"] == "baby cardigan"


@pytest.mark.parametrize("path", ["/product/999", "/product/no-such-hat"])
def test_unknown_product_is_404(client, path):
    response = client.get(path)

    assert response.status_code == 404
    assert "detail" in response.json()


def test_tags(client):
    assert client.get("/tags").json() == {"tags": {"wool": 2, "baby": 1, "hat": 1}}

    by_tag = client.get("/tags/hat").json()
    assert by_tag["tag"] == "hat"
    assert [p["id"] for p in by_tag["results"]] == [123]


def test_refresh_endpoints(client, storefront):
    client.get("/products")

    products = client.get("/api/refresh-products")
    shop = client.get("/api/refresh-shop")

    assert products.status_code == 200
    assert products.text == "ok"
    assert shop.text == "ok"
    assert storefront.calls["products"] == 2
    assert storefront.calls["shop"] == 1


@pytest.mark.parametrize("error, status", [
    (RemoteAPIError("500: upstream", 500), 502),
    (NetworkError("timeout"), 504),
    (ConfigurationError("ETSY_API_KEY environment variable is required"), 503),
])
def test_backend_errors_map_to_status(client, storefront, error, status):
    storefront.error = error

    response = client.get("/products")

    assert response.status_code == status
    assert response.json()["detail"] == str(error)


def test_stale_entry_served_when_backend_fails(client, storefront, file_cache):
    client.get("/product/123")
    old = time.time() - WEEK - 60
    os.utime(file_cache.path_for("products/123"), (old, old))
    storefront.error = NetworkError("timeout")

    response = client.get("/product/123")

    assert response.status_code == 200
    assert response.headers["X-Cache"] == "stale"
    assert response.json()["id"] == 123


def test_invalid_listing_id_is_400(client):
    assert client.get("/api/reviews/bad id").status_code == 400


def test_listing_reviews(client, review_transport):
    response = client.get("/api/reviews/123")

    body = response.json()
    assert body["listingId"] == "123"
    assert body["totalReviews"] == 1
    assert body["summary"]["4"] == 1
    assert review_transport.requests[0].url.path == "/v3/application/listings/123/reviews"


def test_all_reviews_and_summary(client):
    all_reviews = client.get("/api/reviews").json()
    summary = client.get("/api/reviews/summary").json()

    assert sorted(all_reviews) == ["123", "456", "789"]
    assert summary["totalProducts"] == 3
    assert summary["totalReviews"] == 3
    assert summary["overallAverageRating"] == pytest.approx(4.0)
    assert summary["reviewsPercentage"] == pytest.approx(100.0)


def test_seo_report(client):
    report = client.get("/api/seo/123").json()

    assert report["product_id"] == 123
    assert report["title"] == "Blue Hat"
    assert 0 <= report["score"] <= 100


def test_listing_id_with_trailing_newline_is_400(client, review_transport):
    assert client.get("/api/reviews/123%0A").status_code == 400
    assert review_transport.requests == []


@pytest.mark.parametrize("path", ["/api/reviews", "/api/reviews/summary", "/api/reviews/123"])
def test_reviews_unavailable_for_non_etsy_catalog(tmp_path, storefront, file_cache, review_transport, path):
    settings = Settings(STOREFRONT_BACKEND="shopify", DATA_DIR=tmp_path / "data")
    review_client = EtsyClient(api_key="key", access_token="tok", shop_id="42", transport=review_transport)
    app = create_app(settings, storefront=storefront, cache=file_cache, review_client=review_client)

    with TestClient(app) as test_client:
        response = test_client.get(path)

    assert response.status_code == 503
    assert "STOREFRONT_BACKEND" in response.json()["detail"]
    assert storefront.calls["products"] == 0
    assert review_transport.requests == []


def test_owned_storefront_closed_when_startup_fails(tmp_path, products):
    storefront = FakeStorefront(products)
    settings = Settings(CACHE_BACKEND="redis", DATA_DIR=tmp_path / "data")

    with patch("app.create_storefront", return_value=storefront):
        with pytest.raises(ConfigurationError):
            with TestClient(create_app(settings)):
                pass

    assert storefront.closed
