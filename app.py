from contextlib import asynccontextmanager
import logging
from typing import Optional, Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from shopcache.backend import Storefront, create_storefront
from shopcache.cache import CacheError, CacheStore, InvalidCacheKeyError
from shopcache.catalog import CacheAside, CacheResult, Catalog, create_cache_store
from shopcache.config import ConfigurationError, Settings, get_settings
from shopcache.etsy_client import EtsyClient
from shopcache.http_client import NotFoundError, RateLimitError, RemoteAPIError, NetworkError
from shopcache.logging_config import setup_logging
from shopcache.reviews import ReviewService, summarize
from shopcache.seo import analyze_product

logger = logging.getLogger("shopcache.app")

# Most specific first
_ERROR_STATUS = [
    (NotFoundError, 404),
    (RateLimitError, 429),
    (RemoteAPIError, 502),
    (NetworkError, 504),
    (ConfigurationError, 503),
    (InvalidCacheKeyError, 400),
    (CacheError, 500),
]

router = APIRouter()


def _cached_response(result: CacheResult, content: Any = None) -> JSONResponse:
    """JSON response tagged with where the value came from."""
    return JSONResponse(
        content=result.value if content is None else content,
        headers={"X-Cache": result.source},
    )


def _catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def _reviews(request: Request) -> ReviewService:
    reviews = request.app.state.reviews
    if reviews is None:
        raise ConfigurationError("Reviews are only available with STOREFRONT_BACKEND=etsy")
    return reviews


@router.get("/")
async def read_root(request: Request):
    shop = await _catalog(request).get_shop()
    return _cached_response(shop, {
        "shop": shop.value,
        "endpoints": {
            "products": "/products",
            "product": "/product/{id}",
            "tags": "/tags",
            "reviews": "/api/reviews/{listing_id}",
            "seo": "/api/seo/{id}",
        }
    })


@router.get("/products")
async def list_products(request: Request) -> dict:
    """All products, sorted by title."""
    return {"results": await _catalog(request).get_products()}


@router.get("/product/{product_id}")
async def get_product(product_id: str, request: Request):
    """
    Get one product by id or handle.

    Args:
        product_id: Numeric product id or URL handle

    Returns:
        Product document, from cache while it is fresh
    """
    return _cached_response(await _catalog(request).get_product(product_id))


@router.get("/pattern/{pattern_id}")
async def get_pattern(pattern_id: str, request: Request):
    """Ravelry-era alias of ``/product/{id}``."""
    return _cached_response(await _catalog(request).get_product(pattern_id))


@router.get("/tags")
async def list_tags(request: Request) -> dict:
    return {"tags": await _catalog(request).get_tags()}


@router.get("/tags/{tag}")
async def products_by_tag(tag: str, request: Request) -> dict:
    return {"tag": tag, "results": await _catalog(request).get_products_by_tag(tag)}


@router.get("/api/refresh-products", response_class=PlainTextResponse)
async def refresh_products(request: Request):
    await _catalog(request).refresh_products()
    return "ok"


@router.get("/api/refresh-shop", response_class=PlainTextResponse)
async def refresh_shop(request: Request):
    await _catalog(request).refresh_shop()
    return "ok"


@router.get("/api/reviews")
async def all_reviews(request: Request) -> dict:
    """Reviews of every listed product, keyed by listing id."""
    service = _reviews(request)
    products = await _catalog(request).get_products()
    return await service.fetch_all(p["id"] for p in products)


@router.get("/api/reviews/summary")
async def reviews_summary(request: Request) -> dict:
    service = _reviews(request)
    products = await _catalog(request).get_products()
    documents = await service.fetch_all(p["id"] for p in products)
    return summarize(documents).model_dump(mode="json", by_alias=True)


@router.get("/api/reviews/{listing_id}")
async def listing_reviews(listing_id: str, request: Request):
    return _cached_response(await _reviews(request).get_listing_reviews(listing_id))


@router.get("/api/seo/{product_id}")
async def product_seo(product_id: str, request: Request) -> dict:
    """SEO suggestions and score for one product."""
    product = await _catalog(request).get_product(product_id)
    return analyze_product(product.value).to_dict()


async def _handle_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(code for error_cls, code in _ERROR_STATUS if isinstance(exc, error_cls))
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    settings: Optional[Settings] = None,
    storefront: Optional[Storefront] = None,
    cache: Optional[CacheStore] = None,
    review_client: Optional[EtsyClient] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        storefront: Backend client; built from settings when omitted
        cache: Cache store; built from settings when omitted
        review_client: Etsy client used for reviews when STOREFRONT_BACKEND
            is etsy; defaults to the storefront when it is an Etsy client

    Returns:
        FastAPI app whose resources are created on startup and closed on shutdown
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler - runs on startup and shutdown."""
        setup_logging(settings.log_level, settings.log_file)
        owned = []

        try:
            backend = storefront
            if backend is None:
                backend = create_storefront(settings)
                owned.append(backend)

            cache_aside = CacheAside(cache or create_cache_store(settings), settings.stale_if_error)
            app.state.catalog = Catalog(backend, cache_aside)

            # Review ids are Etsy listing ids, so reviews follow an Etsy catalog only
            app.state.reviews = None
            if settings.backend.lower() == EtsyClient.name:
                reviews_client = review_client
                if reviews_client is None:
                    if isinstance(backend, EtsyClient):
                        reviews_client = backend
                    else:
                        reviews_client = EtsyClient.from_settings(settings)
                        owned.append(reviews_client)
                app.state.reviews = ReviewService(
                    reviews_client,
                    cache_aside,
                    batch_size=settings.reviews_batch_size,
                    batch_delay=settings.reviews_batch_delay_seconds,
                )
            logger.info("Serving %s catalog", backend.name)

            yield
        finally:
            for client in owned:
                await client.close()

    app = FastAPI(
        title="shopcache",
        description="Cached storefront catalog API",
        version="0.1.0",
        lifespan=lifespan
    )
    app.include_router(router)
    for error_cls, _ in _ERROR_STATUS:
        app.add_exception_handler(error_cls, _handle_error)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
