"""
Legacy Ravelry store client (patterns sold through a Ravelry store).
"""

from typing import Optional, Union

import httpx

from shopcache.config import Settings, require
from shopcache.http_client import ApiClient
from shopcache.models import Product, ProductList, Shop
from shopcache.parsers import parse_ravelry_designer, parse_ravelry_pattern, parse_ravelry_products

_RAVELRY_API_BASE = "https://api.ravelry.com"


class RavelryClient(ApiClient):
    """Ravelry REST client using HTTP Basic auth with a read-only key pair."""

    name = "ravelry"
    product_kind = "patterns"

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        store_id: Optional[str] = None,
        designer_id: Optional[str] = None,
        designer_name: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username
        self.password = password
        self.store_id = store_id
        self.designer_id = designer_id
        self.designer_name = designer_name

        auth = httpx.BasicAuth(username, password) if username and password else None
        super().__init__(timeout=timeout, auth=auth, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RavelryClient":
        return cls(
            username=settings.ravelry_api_key,
            password=settings.ravelry_api_password,
            store_id=settings.ravelry_store_id,
            designer_id=settings.ravelry_designer_id,
            designer_name=settings.designer_name,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def _check_credentials(self):
        require(self.username, "API_KEY")
        require(self.password, "API_PASSWORD")

    async def fetch_shop(self) -> Shop:
        """Designer profile with featured bundles."""
        designer_id = require(self.designer_id, "DESIGNER_ID")
        data = await self._get_json(
            f"{_RAVELRY_API_BASE}/designers/{designer_id}.json",
            {"include": "featured_bundles"},
        )
        return parse_ravelry_designer(data, self.designer_name)

    async def fetch_product_list(self) -> ProductList:
        store_id = require(self.store_id, "STORE_ID")
        data = await self._get_json(f"{_RAVELRY_API_BASE}/stores/{store_id}/products.json")
        return parse_ravelry_products(data)

    async def fetch_product(self, product_id: Union[int, str]) -> Product:
        data = await self._get_json(f"{_RAVELRY_API_BASE}/patterns/{product_id}.json")
        return parse_ravelry_pattern(data)
