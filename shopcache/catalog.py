"""
Cache-aside catalog.

Every read goes through ``CacheAside.load``: a fresh entry is served from the
store, a missing or expired one is fetched from the backend, written, and then
served.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel

from shopcache.backend import Storefront
from shopcache.cache import CacheReadError, CacheStatus, CacheStore, entity_key
from shopcache.config import Settings, ConfigurationError
from shopcache.database import create_session_factory
from shopcache.database_cache import DatabaseCache
from shopcache.file_cache import FileCache
from shopcache.http_client import NotFoundError, RemoteAPIError, NetworkError

logger = logging.getLogger(__name__)

SHOP_KEY = "shop"
PRODUCTS_KEY = "products"

# Where a CacheResult value came from
SOURCE_CACHE = "cache"
SOURCE_REMOTE = "remote"
SOURCE_STALE = "stale"


@dataclass
class CacheResult:
    """A served value and whether it came from the store, the backend or a stale fallback."""
    value: Any
    source: str

    @property
    def is_stale(self) -> bool:
        return self.source == SOURCE_STALE


def to_json(value: Any) -> Any:
    """Dump pydantic models to their cached (aliased) JSON shape."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def create_cache_store(settings: Settings) -> CacheStore:
    """
    Build the cache store selected by ``CACHE_BACKEND``.

    Raises:
        ConfigurationError: For an unknown cache backend or a missing DATABASE_URL
    """
    backend = settings.cache_backend.lower()
    if backend == "file":
        return FileCache(settings.data_dir, settings.cache_ttl_seconds, settings.cache_ttl_jitter_seconds)
    if backend == "database":
        session_factory = create_session_factory(settings.database_url)
        return DatabaseCache(session_factory, settings.cache_ttl_seconds, settings.cache_ttl_jitter_seconds)
    raise ConfigurationError(f"Unknown CACHE_BACKEND {settings.cache_backend!r}; expected 'file' or 'database'")


class CacheAside:
    """
    Fetch-or-serve gate in front of a cache store.

    Concurrent loads of one key share a single in-flight fetch. When a fetch
    fails and ``stale_if_error`` is set, a previously stored entry is served
    instead of propagating the error.
    """

    def __init__(self, cache: CacheStore, stale_if_error: bool = True):
        self.cache = cache
        self.stale_if_error = stale_if_error
        self._inflight: Dict[str, "asyncio.Future[CacheResult]"] = {}

    async def load(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        force: bool = False,
    ) -> CacheResult:
        """
        Serve ``key`` from the store or refresh it with ``fetch``.

        Args:
            key: Cache key
            fetch: Coroutine function returning the fresh value
            force: Refresh even when the stored entry is fresh

        Returns:
            CacheResult with the value and its source

        Raises:
            Whatever ``fetch`` raises when no stale fallback applies
            CacheWriteError: If the fetched value cannot be stored
        """
        if not force:
            status = self.cache.status(key)
            if status is CacheStatus.FRESH:
                value = self.cache.read(key)
                if value is not None:
                    return CacheResult(value, SOURCE_CACHE)
                status = CacheStatus.MISSING

            if status is CacheStatus.MISSING:
                logger.info("Cache miss for %s", key)
            else:
                logger.info("Cache expired for %s", key)

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, fetch))
            self._inflight[key] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        return await asyncio.shield(pending)

    async def _refresh(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> CacheResult:
        try:
            value = to_json(await fetch())
        except (RemoteAPIError, NetworkError) as e:
            if not self.stale_if_error or isinstance(e, NotFoundError):
                raise
            try:
                stale = self.cache.read(key)
            except CacheReadError as read_error:
                logger.warning("Stale entry for %s is unreadable: %s", key, read_error)
                raise e
            if stale is None:
                raise
            logger.warning("Fetch for %s failed (%s); serving stale entry", key, e)
            return CacheResult(stale, SOURCE_STALE)

        self.cache.set(key, value)
        return CacheResult(value, SOURCE_REMOTE)


class Catalog:
    """
    Shop, product list and product documents of one storefront backend.
    """

    def __init__(self, storefront: Storefront, cache_aside: CacheAside):
        self.storefront = storefront
        self.cache_aside = cache_aside

    def product_key(self, product_id: Union[int, str]) -> str:
        return entity_key(self.storefront.product_kind, product_id)

    async def get_shop(self, force: bool = False) -> CacheResult:
        return await self.cache_aside.load(SHOP_KEY, self.storefront.fetch_shop, force=force)

    async def get_product_list(self, force: bool = False) -> CacheResult:
        """Product list document as cached (``{"results": [...]}``)."""
        return await self.cache_aside.load(PRODUCTS_KEY, self.storefront.fetch_product_list, force=force)

    async def get_products(self) -> List[Dict[str, Any]]:
        """Products sorted case-insensitively by title."""
        result = await self.get_product_list()
        products = result.value.get("results") or []
        return sorted(products, key=lambda p: (p.get("title") or "").casefold())

    async def resolve_product_id(self, id_or_handle: Union[int, str]) -> Union[int, str]:
        """
        Map a handle to a product id through the product list.

        Numeric identifiers are returned unchanged.

        Raises:
            NotFoundError: If no listed product has that handle
        """
        identifier = str(id_or_handle)
        if identifier.isdigit():
            return identifier

        result = await self.get_product_list()
        for product in result.value.get("results") or []:
            if product.get("handle") == identifier:
                return product["id"]
        raise NotFoundError(f"No product with handle {identifier!r}", 404)

    async def get_product(self, id_or_handle: Union[int, str], force: bool = False) -> CacheResult:
        """
        Single product document, keyed by its id.

        Args:
            id_or_handle: Product id or URL handle
            force: Refresh even when cached

        Returns:
            CacheResult holding the product JSON
        """
        product_id = await self.resolve_product_id(id_or_handle)
        key = self.product_key(product_id)
        return await self.cache_aside.load(
            key,
            lambda: self.storefront.fetch_product(product_id),
            force=force,
        )

    async def get_tags(self) -> Dict[str, int]:
        """Tag -> number of products carrying it, most common first."""
        products = await self.get_products()
        counts = Counter(tag for product in products for tag in product.get("tags") or [])
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))

    async def get_products_by_tag(self, tag: str) -> List[Dict[str, Any]]:
        """Products carrying ``tag`` (case-insensitive)."""
        wanted = tag.casefold()
        return [
            product for product in await self.get_products()
            if any(t.casefold() == wanted for t in product.get("tags") or [])
        ]

    async def refresh_shop(self) -> CacheResult:
        return await self.get_shop(force=True)

    async def refresh_products(self) -> CacheResult:
        return await self.get_product_list(force=True)

    async def download_all(
        self,
        delay: float = 0.1,
        on_progress: Optional[Callable[[int, int, str, bool], None]] = None,
    ) -> Dict[str, int]:
        """
        Refresh the shop, the product list and every single product.

        Args:
            delay: Seconds to wait between product requests
            on_progress: Called with (index, total, title, ok) after each product

        Returns:
            Counts of successful and failed product downloads
        """
        await self.refresh_shop()
        result = await self.refresh_products()
        products = result.value.get("results") or []

        counts = {"successful": 0, "failed": 0}
        for index, product in enumerate(products, 1):
            try:
                loaded = await self.cache_aside.load(
                    self.product_key(product["id"]),
                    lambda product_id=product["id"]: self.storefront.fetch_product(product_id),
                    force=True,
                )
                ok = not loaded.is_stale
            except (RemoteAPIError, NetworkError) as e:
                logger.error("Failed to download %s: %s", product.get("title"), e)
                ok = False

            counts["successful" if ok else "failed"] += 1

            if on_progress is not None:
                on_progress(index, len(products), product.get("title", ""), ok)
            if delay and index < len(products):
                await asyncio.sleep(delay)

        return counts
