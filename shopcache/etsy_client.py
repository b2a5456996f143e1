"""
Etsy Open API v3 client.
"""

from typing import Optional, Dict, Any, List, Union

import httpx
from authlib.integrations.httpx_client import OAuth2Auth

from shopcache.config import Settings, require
from shopcache.http_client import ApiClient
from shopcache.models import Product, ProductList, Shop, Review
from shopcache.parsers import (
    parse_etsy_listing, parse_etsy_listings, parse_etsy_shop, parse_etsy_review
)

_ETSY_API_BASE = "https://api.etsy.com/v3/application"

# Etsy caps listing pages at 100 entries
_PAGE_LIMIT = 100


class EtsyClient(ApiClient):
    """
    Etsy Open API v3 client.

    Every request carries the application key in ``x-api-key`` and the
    OAuth 2.0 access token as a bearer token.
    """

    name = "etsy"
    product_kind = "products"

    def __init__(
        self,
        api_key: Optional[str],
        access_token: Optional[str],
        shop_id: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Etsy client.

        Args:
            api_key: Etsy application keystring
            access_token: OAuth 2.0 access token
            shop_id: Numeric shop id, needed for shop and listing queries
            timeout: Request timeout in seconds
            transport: Optional httpx transport
        """
        self.api_key = api_key
        self.access_token = access_token
        self.shop_id = shop_id

        auth = None
        if access_token:
            auth = OAuth2Auth({"access_token": access_token, "token_type": "Bearer"})

        super().__init__(timeout=timeout, auth=auth, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "EtsyClient":
        return cls(
            api_key=settings.etsy_api_key,
            access_token=settings.etsy_access_token,
            shop_id=settings.etsy_shop_id,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def _check_credentials(self):
        require(self.api_key, "ETSY_API_KEY")
        require(self.access_token, "ETSY_ACCESS_TOKEN")

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        headers["x-api-key"] = self.api_key or ""
        return headers

    def _shop_id(self) -> str:
        return require(self.shop_id, "ETSY_SHOP_ID")

    async def fetch_shop(self) -> Shop:
        """
        Get the configured shop.

        Returns:
            Shop model
        """
        shop_id = self._shop_id()
        data = await self._get_json(f"{_ETSY_API_BASE}/shops/{shop_id}")
        return parse_etsy_shop(data)

    async def fetch_product_list(self) -> ProductList:
        """
        Get every active listing of the shop, following offset pagination.

        Returns:
            ProductList with one Product per listing
        """
        shop_id = self._shop_id()
        pages: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page = await self._get_json(
                f"{_ETSY_API_BASE}/shops/{shop_id}/listings",
                {"state": "active", "limit": _PAGE_LIMIT, "offset": offset, "includes": "Images"},
            )
            pages.append(page)

            offset += _PAGE_LIMIT
            if not page.get("results") or offset >= page.get("count", 0):
                break

        return parse_etsy_listings(pages)

    async def fetch_product(self, product_id: Union[int, str]) -> Product:
        """
        Get one listing with images and inventory.

        Args:
            product_id: Etsy listing id

        Returns:
            Product model including variants
        """
        listing = await self._get_json(
            f"{_ETSY_API_BASE}/listings/{product_id}",
            {"includes": "Images,Shop,User,Translations"},
        )
        inventory = await self._get_json(f"{_ETSY_API_BASE}/listings/{product_id}/inventory")
        return parse_etsy_listing(listing, inventory)

    async def fetch_listing_reviews(self, listing_id: Union[int, str], limit: int = 100) -> List[Review]:
        """
        Get buyer reviews of a listing.

        Args:
            listing_id: Etsy listing id
            limit: Maximum number of reviews

        Returns:
            Reviews, newest first as returned by Etsy
        """
        data = await self._get_json(
            f"{_ETSY_API_BASE}/listings/{listing_id}/reviews",
            {"limit": limit},
        )
        return [parse_etsy_review(review) for review in data.get("results") or []]
