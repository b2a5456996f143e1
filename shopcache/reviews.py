"""
Etsy listing reviews, cached per listing under ``reviews/<listingId>``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Union

from shopcache.cache import entity_key
from shopcache.catalog import CacheAside, CacheResult
from shopcache.etsy_client import EtsyClient
from shopcache.http_client import RemoteAPIError, NetworkError
from shopcache.models import ListingReviews, Review, ReviewsSummary

logger = logging.getLogger(__name__)

RATINGS = ("5", "4", "3", "2", "1")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_listing_reviews(listing_id: Union[int, str], reviews: List[Review]) -> ListingReviews:
    """
    Aggregate a listing's reviews into the cached document.

    Args:
        listing_id: Etsy listing id
        reviews: Parsed reviews

    Returns:
        ListingReviews with totals, average rating and per-star counts
    """
    total = len(reviews)
    average = sum(r.rating for r in reviews) / total if total else 0.0
    summary = {rating: sum(1 for r in reviews if r.rating == int(rating)) for rating in RATINGS}

    return ListingReviews(
        listing_id=listing_id,
        reviews=reviews,
        total_reviews=total,
        average_rating=average,
        last_updated=_now_iso(),
        summary=summary,
    )


def summarize(all_reviews: Dict[str, Dict[str, Any]]) -> ReviewsSummary:
    """
    Statistics across many cached ``ListingReviews`` documents.

    Args:
        all_reviews: listing id -> cached reviews document

    Returns:
        ReviewsSummary; the overall average is weighted by review count
    """
    total_products = len(all_reviews)
    products_with_reviews = 0
    total_reviews = 0
    total_rating = 0.0
    distribution = {rating: 0 for rating in RATINGS}

    for document in all_reviews.values():
        count = document.get("totalReviews", 0)
        if count <= 0:
            continue
        products_with_reviews += 1
        total_reviews += count
        total_rating += document.get("averageRating", 0.0) * count
        for rating in RATINGS:
            distribution[rating] += (document.get("summary") or {}).get(rating, 0)

    return ReviewsSummary(
        total_products=total_products,
        products_with_reviews=products_with_reviews,
        total_reviews=total_reviews,
        overall_average_rating=total_rating / total_reviews if total_reviews else 0.0,
        rating_distribution=distribution,
        reviews_percentage=(products_with_reviews / total_products) * 100 if total_products else 0.0,
        last_updated=_now_iso(),
    )


class ReviewService:
    """
    Fetches and caches listing reviews.

    Bulk fetching runs ``batch_size`` requests concurrently and sleeps
    ``batch_delay`` seconds between batches to stay under Etsy's rate limit.
    """

    def __init__(
        self,
        client: EtsyClient,
        cache_aside: CacheAside,
        batch_size: int = 5,
        batch_delay: float = 1.0,
    ):
        self.client = client
        self.cache_aside = cache_aside
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay

    async def _fetch(self, listing_id: Union[int, str]) -> ListingReviews:
        reviews = await self.client.fetch_listing_reviews(listing_id)
        logger.info("Fetched %d review(s) for listing %s", len(reviews), listing_id)
        return build_listing_reviews(listing_id, reviews)

    async def get_listing_reviews(self, listing_id: Union[int, str], force: bool = False) -> CacheResult:
        """
        Reviews document of one listing.

        Raises:
            RemoteAPIError, NetworkError: When Etsy fails and nothing is cached
        """
        key = entity_key("reviews", listing_id)
        return await self.cache_aside.load(key, lambda: self._fetch(listing_id), force=force)

    async def fetch_all(self, listing_ids: Iterable[Union[int, str]]) -> Dict[str, Dict[str, Any]]:
        """
        Reviews of many listings, fetched in rate-limited batches.

        Listings whose fetch fails are logged and left out of the result.

        Returns:
            listing id (as string) -> reviews document
        """
        ids = list(listing_ids)
        logger.info("Fetching reviews for %d listing(s)", len(ids))
        all_reviews: Dict[str, Dict[str, Any]] = {}

        for start in range(0, len(ids), self.batch_size):
            batch = ids[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self.get_listing_reviews(listing_id) for listing_id in batch),
                return_exceptions=True,
            )

            for listing_id, result in zip(batch, results):
                if isinstance(result, (RemoteAPIError, NetworkError)):
                    logger.error("Failed to fetch reviews for %s: %s", listing_id, result)
                    continue
                if isinstance(result, BaseException):
                    raise result
                all_reviews[str(listing_id)] = result.value

            if start + self.batch_size < len(ids):
                await asyncio.sleep(self.batch_delay)

        logger.info("Reviews fetched for %d listing(s)", len(all_reviews))
        return all_reviews
