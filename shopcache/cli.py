"""
Command line entry point.

    shopcache download                 cache shop, product list and every product
    shopcache reviews                  fetch reviews for every cached product
    shopcache reviews --listing 12345  fetch reviews of one listing
    shopcache reviews --summary        review statistics across the catalog
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from shopcache.backend import create_storefront
from shopcache.cache import CacheError, InvalidCacheKeyError
from shopcache.catalog import CacheAside, Catalog, create_cache_store
from shopcache.config import ConfigurationError, Settings, load_settings
from shopcache.etsy_client import EtsyClient
from shopcache.http_client import RemoteAPIError, NetworkError
from shopcache.logging_config import setup_logging
from shopcache.reviews import ReviewService, summarize, RATINGS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shopcache", description="Storefront catalog cache tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    download = subparsers.add_parser("download", help="Download every product into the cache")
    download.add_argument("--delay", type=float, default=0.1, help="Seconds between product requests")

    reviews = subparsers.add_parser("reviews", help="Fetch Etsy listing reviews")
    group = reviews.add_mutually_exclusive_group()
    group.add_argument("--listing", help="Fetch reviews for one listing id")
    group.add_argument("--summary", action="store_true", help="Print review statistics")

    return parser


def _print_progress(index: int, total: int, title: str, ok: bool):
    mark = "ok" if ok else "FAILED"
    print(f"[{index}/{total}] {mark}: {title}")


async def _download(settings: Settings, delay: float) -> int:
    storefront = create_storefront(settings)
    try:
        catalog = Catalog(storefront, CacheAside(create_cache_store(settings), settings.stale_if_error))
        counts = await catalog.download_all(delay=delay, on_progress=_print_progress)
    finally:
        await storefront.close()

    print(f"Downloaded: {counts['successful']} product(s), failed: {counts['failed']}")
    return 0 if counts["failed"] == 0 else 1


def _print_listing(document: dict):
    total = document["totalReviews"]
    print(f"Reviews for listing {document['listingId']}")
    print(f"Total reviews: {total}")
    print(f"Average rating: {document['averageRating']:.2f}/5.0")
    for rating in RATINGS:
        count = document["summary"].get(rating, 0)
        share = (count / total) * 100 if total else 0.0
        print(f"  {rating} stars: {count} ({share:.1f}%)")
    for index, review in enumerate(document["reviews"][:5], 1):
        print(f"  {index}. {review['rating']}/5 - \"{review['review']}\" by {review['buyerDisplayName']}")
    print(f"Last updated: {document['lastUpdated']}")


def _print_summary(summary: dict):
    print(f"Total products: {summary['totalProducts']}")
    print(f"Products with reviews: {summary['productsWithReviews']} ({summary['reviewsPercentage']:.1f}%)")
    print(f"Total reviews: {summary['totalReviews']}")
    print(f"Overall average rating: {summary['overallAverageRating']:.2f}/5.0")
    for rating in RATINGS:
        print(f"  {rating} stars: {summary['ratingDistribution'][rating]} review(s)")


async def _reviews(settings: Settings, listing: Optional[str], show_summary: bool) -> int:
    if settings.backend.lower() != EtsyClient.name:
        raise ConfigurationError("Reviews are only available with STOREFRONT_BACKEND=etsy")

    cache_aside = CacheAside(create_cache_store(settings), settings.stale_if_error)
    client = create_storefront(settings)
    try:
        service = ReviewService(
            client,
            cache_aside,
            batch_size=settings.reviews_batch_size,
            batch_delay=settings.reviews_batch_delay_seconds,
        )
        if listing:
            result = await service.get_listing_reviews(listing)
            _print_listing(result.value)
            return 0

        catalog = Catalog(client, cache_aside)
        products = await catalog.get_products()
        documents = await service.fetch_all(p["id"] for p in products)
    finally:
        await client.close()

    if show_summary:
        _print_summary(summarize(documents).model_dump(mode="json", by_alias=True))
    else:
        total_reviews = sum(d["totalReviews"] for d in documents.values())
        print(f"Listings processed: {len(documents)}")
        print(f"Total reviews fetched: {total_reviews}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
        setup_logging(settings.log_level, settings.log_file)
        if args.command == "download":
            return asyncio.run(_download(settings, args.delay))
        return asyncio.run(_reviews(settings, args.listing, args.summary))
    except (ConfigurationError, RemoteAPIError, NetworkError, CacheError, InvalidCacheKeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
