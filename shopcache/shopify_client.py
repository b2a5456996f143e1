"""
Shopify GraphQL client (Storefront API, Admin API as fallback).
"""

from typing import Optional, Dict, Any, List, Union

import httpx

from shopcache.config import Settings, ConfigurationError, require
from shopcache.http_client import ApiClient, RemoteAPIError, NotFoundError
from shopcache.models import Product, ProductList, Shop
from shopcache.parsers import parse_shopify_product, parse_shopify_shop

_PAGE_SIZE = 100

_STOREFRONT_PRODUCT_FIELDS = """
    id title handle description productType tags vendor createdAt updatedAt
    availableForSale onlineStoreUrl
    priceRange {
      minVariantPrice { amount currencyCode }
      maxVariantPrice { amount currencyCode }
    }
    images(first: 20) { edges { node { id url altText width height } } }
    variants(first: 100) {
      edges {
        node {
          id title sku availableForSale quantityAvailable
          price { amount currencyCode }
          compareAtPrice { amount currencyCode }
        }
      }
    }
"""

_ADMIN_PRODUCT_FIELDS = """
    id title handle description productType tags vendor createdAt updatedAt
    status totalInventory onlineStoreUrl
    priceRangeV2 {
      minVariantPrice { amount currencyCode }
      maxVariantPrice { amount currencyCode }
    }
    images(first: 20) { edges { node { id url altText width height } } }
    variants(first: 100) {
      edges {
        node { id title sku availableForSale inventoryQuantity price compareAtPrice }
      }
    }
"""

_QUERIES = {
    "storefront": {
        "shop": "query { shop { id name description primaryDomain { url } paymentSettings { currencyCode } } }",
        "products": """
            query getProducts($first: Int!, $after: String) {
              products(first: $first, after: $after) {
                edges { node { %s } }
                pageInfo { hasNextPage endCursor }
              }
            }
        """ % _STOREFRONT_PRODUCT_FIELDS,
        "product_by_id": "query getProduct($id: ID!) { product(id: $id) { %s } }" % _STOREFRONT_PRODUCT_FIELDS,
        "product_by_handle": (
            "query getProduct($handle: String!) { product: product(handle: $handle) { %s } }"
            % _STOREFRONT_PRODUCT_FIELDS
        ),
    },
    "admin": {
        "shop": "query { shop { id name description url currencyCode } }",
        "products": """
            query getProducts($first: Int!, $after: String) {
              products(first: $first, after: $after) {
                edges { node { %s } }
                pageInfo { hasNextPage endCursor }
              }
            }
        """ % _ADMIN_PRODUCT_FIELDS,
        "product_by_id": "query getProduct($id: ID!) { product(id: $id) { %s } }" % _ADMIN_PRODUCT_FIELDS,
        "product_by_handle": (
            "query getProduct($handle: String!) { product: productByHandle(handle: $handle) { %s } }"
            % _ADMIN_PRODUCT_FIELDS
        ),
    },
}


class ShopifyClient(ApiClient):
    """
    Shopify GraphQL client.

    Uses the Storefront API when a storefront token is configured, otherwise
    the Admin API with the admin token.
    """

    name = "shopify"
    product_kind = "products"

    def __init__(
        self,
        domain: Optional[str],
        storefront_token: Optional[str] = None,
        admin_token: Optional[str] = None,
        api_version: str = "2024-10",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Shopify client.

        Args:
            domain: Shop domain, e.g. ``example.myshopify.com``
            storefront_token: Storefront API access token
            admin_token: Admin API access token
            api_version: Shopify API version
            timeout: Request timeout in seconds
            transport: Optional httpx transport
        """
        self.domain = domain
        self.storefront_token = storefront_token
        self.admin_token = admin_token
        self.api_version = api_version
        super().__init__(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ShopifyClient":
        return cls(
            domain=settings.shopify_domain,
            storefront_token=settings.shopify_storefront_access_token,
            admin_token=settings.shopify_admin_access_token,
            api_version=settings.shopify_api_version,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    @property
    def api(self) -> str:
        return "storefront" if self.storefront_token else "admin"

    @property
    def endpoint(self) -> str:
        if self.api == "storefront":
            return f"https://{self.domain}/api/{self.api_version}/graphql.json"
        return f"https://{self.domain}/admin/api/{self.api_version}/graphql.json"

    def _check_credentials(self):
        require(self.domain, "SHOPIFY_DOMAIN")
        if not (self.storefront_token or self.admin_token):
            raise ConfigurationError(
                "SHOPIFY_STOREFRONT_ACCESS_TOKEN or SHOPIFY_ADMIN_ACCESS_TOKEN environment variable is required"
            )

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        if self.api == "storefront":
            headers["X-Shopify-Storefront-Access-Token"] = self.storefront_token
        else:
            headers["X-Shopify-Access-Token"] = self.admin_token or ""
        return headers

    async def _graphql(self, query_name: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a named query against the active API.

        Returns:
            The ``data`` object of the response

        Raises:
            RemoteAPIError: When the response carries GraphQL errors
        """
        body = {"query": _QUERIES[self.api][query_name], "variables": variables or {}}
        response = await self._post_json(self.endpoint, body)

        if response.get("errors"):
            error_msg = ", ".join([e.get("message", str(e)) for e in response["errors"]])
            raise RemoteAPIError(f"Shopify GraphQL error: {error_msg}", None, response["errors"])

        return response.get("data") or {}

    async def fetch_shop(self) -> Shop:
        data = await self._graphql("shop")
        return parse_shopify_shop(data.get("shop") or {})

    async def fetch_product_list(self) -> ProductList:
        """
        Get all products, following cursor pagination.

        Returns:
            ProductList
        """
        nodes: List[Dict[str, Any]] = []
        cursor = None

        while True:
            data = await self._graphql("products", {"first": _PAGE_SIZE, "after": cursor})
            products = data.get("products") or {}
            nodes.extend(edge["node"] for edge in products.get("edges", []))

            page_info = products.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

        return ProductList(results=[parse_shopify_product(node) for node in nodes])

    async def fetch_product(self, product_id: Union[int, str]) -> Product:
        """
        Get one product by numeric id, GID or handle.

        Raises:
            NotFoundError: If Shopify returns no product
        """
        identifier = str(product_id)
        if identifier.isdigit():
            data = await self._graphql("product_by_id", {"id": f"gid://shopify/Product/{identifier}"})
        elif identifier.startswith("gid://"):
            data = await self._graphql("product_by_id", {"id": identifier})
        else:
            data = await self._graphql("product_by_handle", {"handle": identifier})

        node = data.get("product")
        if not node:
            raise NotFoundError(f"Shopify product {identifier} not found", 404)
        return parse_shopify_product(node)
