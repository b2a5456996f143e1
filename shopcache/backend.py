"""
Storefront backend selection.
"""

from typing import Optional, Union, Protocol, Any

import httpx

from shopcache.config import Settings, ConfigurationError
from shopcache.etsy_client import EtsyClient
from shopcache.ravelry_client import RavelryClient
from shopcache.shopify_client import ShopifyClient


class Storefront(Protocol):
    """
    What the catalog needs from a backend.

    ``product_kind`` names the cache directory of single products
    (``products`` or ``patterns``). Fetch methods may return pydantic models
    or plain JSON values.
    """

    name: str
    product_kind: str

    async def fetch_shop(self) -> Any: ...

    async def fetch_product_list(self) -> Any: ...

    async def fetch_product(self, product_id: Union[int, str]) -> Any: ...

    async def close(self) -> None: ...


_BACKENDS = {
    "etsy": EtsyClient,
    "shopify": ShopifyClient,
    "ravelry": RavelryClient,
}


def create_storefront(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Storefront:
    """
    Build the client selected by ``STOREFRONT_BACKEND``.

    Raises:
        ConfigurationError: For an unknown backend name
    """
    backend = settings.backend.lower()
    client_cls = _BACKENDS.get(backend)
    if client_cls is None:
        raise ConfigurationError(
            f"Unknown STOREFRONT_BACKEND {settings.backend!r}; expected one of {', '.join(_BACKENDS)}"
        )
    return client_cls.from_settings(settings, transport=transport)
