"""
Backend response parsers.
Converts Etsy, Shopify and Ravelry payloads to our Pydantic models.
"""

from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple
from .models import (
    Money, PriceRange, Product, ProductImage, ProductVariant, ProductList,
    Shop, Review
)

_RAVELRY_BASE = "https://www.ravelry.com"


def _iso_from_epoch(timestamp: Optional[int]) -> Optional[str]:
    """Convert epoch seconds to an ISO 8601 UTC string."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _format_amount(value: float) -> str:
    return f"{value:.2f}"


def _pretty_price(money: Money) -> str:
    return f"{money.currency_code} {money.amount}"


def _single_price_range(money: Money) -> PriceRange:
    return PriceRange(min_variant_price=money, max_variant_price=money)


def _gid_tail(gid: str) -> str:
    """Reduce ``gid://shopify/Product/123`` to ``123``."""
    return gid.rsplit("/", 1)[-1] if gid else gid


def _edges(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Unwrap a GraphQL connection into its nodes."""
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", []) if edge.get("node")]


# Etsy

def _etsy_money(price: Optional[Dict[str, Any]]) -> Money:
    """Etsy money is ``amount / divisor`` in ``currency_code``."""
    if not price:
        return Money()
    divisor = price.get("divisor") or 1
    return Money(
        amount=_format_amount(price.get("amount", 0) / divisor),
        currency_code=price.get("currency_code", "USD"),
    )


def _etsy_handle(listing: Dict[str, Any]) -> str:
    url = listing.get("url")
    if url:
        return url.split("?")[0].rstrip("/").split("/")[-1]
    return str(listing["listing_id"])


def _etsy_images(listing: Dict[str, Any]) -> List[ProductImage]:
    return [
        ProductImage(
            id=image.get("listing_image_id"),
            url=image.get("url_fullxfull", ""),
            alt_text=image.get("alt_text") or listing.get("title", ""),
            width=image.get("full_width"),
            height=image.get("full_height"),
        )
        for image in listing.get("images") or []
    ]


def _etsy_variants(listing: Dict[str, Any], inventory: Optional[Dict[str, Any]]) -> List[ProductVariant]:
    """
    Flatten Etsy inventory products/offerings into variants.

    Older responses carry a flat ``results`` list instead of ``products``.
    """
    if not inventory:
        return []

    variants = []
    fallback_sku = str(listing["listing_id"])
    for item in inventory.get("products") or []:
        names = [
            ", ".join(prop.get("values") or [])
            for prop in item.get("property_values") or []
        ]
        for offering in item.get("offerings") or []:
            if offering.get("is_deleted"):
                continue
            price = _etsy_money(offering.get("price"))
            quantity = offering.get("quantity") or 0
            variants.append(ProductVariant(
                id=offering.get("offering_id") or item.get("product_id"),
                title=" / ".join(n for n in names if n) or _pretty_price(price),
                sku=item.get("sku") or fallback_sku,
                available_for_sale=bool(offering.get("is_enabled", True)) and quantity > 0,
                quantity_available=quantity,
                price=price,
            ))

    for item in inventory.get("results") or []:
        price = _etsy_money(item.get("price"))
        quantity = item.get("quantity") or 0
        variants.append(ProductVariant(
            id=item.get("offering_id") or item.get("product_id"),
            title=_pretty_price(price) if item.get("price") else "Default",
            sku=item.get("sku") or fallback_sku,
            available_for_sale=quantity > 0,
            quantity_available=quantity,
            price=price,
        ))

    return variants


def _variant_price_range(variants: List[ProductVariant], default: Money) -> PriceRange:
    if not variants:
        return _single_price_range(default)
    ordered = sorted(variants, key=lambda v: float(v.price.amount))
    return PriceRange(min_variant_price=ordered[0].price, max_variant_price=ordered[-1].price)


def parse_etsy_listing(listing: Dict[str, Any], inventory: Optional[Dict[str, Any]] = None) -> Product:
    """
    Parse an Etsy listing (optionally with its inventory) into a Product.

    Args:
        listing: Listing object from ``listings/{id}`` or a shop listings page
        inventory: Response of ``listings/{id}/inventory``

    Returns:
        Product model
    """
    listing_id = listing["listing_id"]
    price = _etsy_money(listing.get("price"))
    images = _etsy_images(listing)
    variants = _etsy_variants(listing, inventory)
    first_image = (listing.get("images") or [{}])[0]

    return Product(
        id=listing_id,
        title=listing.get("title", ""),
        handle=_etsy_handle(listing),
        url=listing.get("url") or f"https://www.etsy.com/listing/{listing_id}",
        description=listing.get("description") or "",
        product_type=" > ".join(listing.get("taxonomy_path") or []),
        tags=listing.get("tags") or [],
        vendor=str(listing.get("shop_section_id") or ""),
        created_at=_iso_from_epoch(listing.get("creation_timestamp")),
        updated_at=_iso_from_epoch(listing.get("last_modified_timestamp")),
        available_for_sale=listing.get("state") == "active",
        total_inventory=listing.get("quantity") or 0,
        price_range=_variant_price_range(variants, price),
        pretty_price=_pretty_price(price),
        thumbnail_url=first_image.get("url_170x135", ""),
        images=images,
        variants=variants,
    )


def parse_etsy_listings(pages: List[Dict[str, Any]]) -> ProductList:
    """Parse one or more ``shops/{id}/listings`` pages."""
    return ProductList(results=[
        parse_etsy_listing(listing)
        for page in pages
        for listing in page.get("results") or []
    ])


def parse_etsy_shop(shop: Dict[str, Any]) -> Shop:
    """Parse ``shops/{shop_id}``."""
    return Shop(
        id=shop["shop_id"],
        name=shop.get("shop_name", ""),
        title=shop.get("title") or "",
        description=shop.get("announcement") or "",
        url=shop.get("url") or "",
        icon_url=shop.get("icon_url_fullxfull") or "",
        currency_code=shop.get("currency_code") or "",
        product_count=shop.get("listing_active_count") or 0,
    )


def parse_etsy_review(review: Dict[str, Any]) -> Review:
    """Parse one entry of ``listings/{id}/reviews``."""
    return Review(
        id=review.get("shop_review_id") or review.get("listing_review_id"),
        rating=review.get("rating", 0),
        review=review.get("review") or "",
        review_date=_iso_from_epoch(review.get("create_timestamp")),
        buyer_user_id=review.get("buyer_user_id"),
        buyer_display_name=review.get("buyer_display_name") or "Anonymous",
        is_recommended=review.get("is_recommended") or False,
        language=review.get("language") or "en",
    )


# Shopify

def _shopify_money(value: Any, currency_code: str) -> Optional[Money]:
    """Storefront money is an object, Admin variant prices are bare strings."""
    if value is None:
        return None
    if isinstance(value, dict):
        return Money(amount=str(value.get("amount", "0")), currency_code=value.get("currencyCode", currency_code))
    return Money(amount=str(value), currency_code=currency_code)


def _shopify_price_range(node: Dict[str, Any]) -> Tuple[PriceRange, str]:
    raw = node.get("priceRange") or node.get("priceRangeV2") or {}
    price_range = PriceRange(
        min_variant_price=_shopify_money(raw.get("minVariantPrice"), "USD") or Money(),
        max_variant_price=_shopify_money(raw.get("maxVariantPrice"), "USD") or Money(),
    )
    return price_range, price_range.min_variant_price.currency_code


def parse_shopify_product(node: Dict[str, Any]) -> Product:
    """
    Parse a Storefront or Admin GraphQL product node.

    Args:
        node: ``product`` object (or a ``products`` edge node)

    Returns:
        Product model
    """
    price_range, currency_code = _shopify_price_range(node)

    images = [
        ProductImage(
            id=_gid_tail(image.get("id", "")),
            url=image.get("url", ""),
            alt_text=image.get("altText") or "",
            width=image.get("width"),
            height=image.get("height"),
        )
        for image in _edges(node.get("images"))
    ]

    variants = []
    for variant in _edges(node.get("variants")):
        quantity = variant.get("quantityAvailable")
        if quantity is None:
            quantity = variant.get("inventoryQuantity") or 0
        variants.append(ProductVariant(
            id=_gid_tail(variant.get("id", "")),
            title=variant.get("title") or "Default",
            sku=variant.get("sku") or "",
            available_for_sale=bool(variant.get("availableForSale")),
            quantity_available=quantity,
            price=_shopify_money(variant.get("price"), currency_code) or Money(currency_code=currency_code),
            compare_at_price=_shopify_money(variant.get("compareAtPrice"), currency_code),
        ))

    total_inventory = node.get("totalInventory")
    if total_inventory is None:
        total_inventory = sum(v.quantity_available for v in variants)

    return Product(
        id=_gid_tail(node["id"]),
        title=node.get("title", ""),
        handle=node.get("handle", ""),
        url=node.get("onlineStoreUrl") or "",
        description=node.get("description") or "",
        product_type=node.get("productType") or "",
        tags=node.get("tags") or [],
        vendor=node.get("vendor") or "",
        created_at=node.get("createdAt"),
        updated_at=node.get("updatedAt"),
        available_for_sale=bool(node.get("availableForSale", node.get("status") == "ACTIVE")),
        total_inventory=total_inventory,
        price_range=price_range,
        pretty_price=_pretty_price(price_range.min_variant_price),
        thumbnail_url=images[0].url if images else "",
        images=images,
        variants=variants,
    )


def parse_shopify_shop(shop: Dict[str, Any]) -> Shop:
    """Parse the ``shop`` object of either GraphQL API."""
    primary_domain = shop.get("primaryDomain") or {}
    payment_settings = shop.get("paymentSettings") or {}
    return Shop(
        id=_gid_tail(shop.get("id", "")),
        name=shop.get("name", ""),
        title=shop.get("name", ""),
        description=shop.get("description") or "",
        url=shop.get("url") or primary_domain.get("url", ""),
        currency_code=shop.get("currencyCode") or payment_settings.get("currencyCode", ""),
    )


# Ravelry

def _ravelry_money(price: Any, currency: Optional[str]) -> Money:
    try:
        amount = float(price) if price is not None else 0.0
    except (TypeError, ValueError):
        amount = 0.0
    return Money(amount=_format_amount(amount), currency_code=currency or "USD")


def parse_ravelry_pattern(response: Dict[str, Any]) -> Product:
    """
    Parse ``patterns/{id}.json``.

    Args:
        response: Full response, the pattern lives under ``pattern``

    Returns:
        Product model
    """
    pattern = response.get("pattern", response)
    price = _ravelry_money(pattern.get("price"), pattern.get("currency"))
    permalink = pattern.get("permalink", "")

    images = [
        ProductImage(
            id=photo.get("id", index),
            url=photo.get("medium_url") or photo.get("small_url", ""),
            alt_text=pattern.get("name", ""),
        )
        for index, photo in enumerate(pattern.get("photos") or [])
    ]
    photos = pattern.get("photos") or [{}]
    designer = pattern.get("pattern_author") or pattern.get("designer") or {}

    return Product(
        id=pattern["id"],
        title=pattern.get("name", ""),
        handle=permalink,
        url=f"{_RAVELRY_BASE}/patterns/library/{permalink}" if permalink else "",
        description=pattern.get("notes") or "",
        product_type=(pattern.get("craft") or {}).get("name", ""),
        tags=[attr["permalink"] for attr in pattern.get("pattern_attributes") or [] if attr.get("permalink")],
        vendor=designer.get("name", ""),
        created_at=pattern.get("created_at"),
        updated_at=pattern.get("updated_at"),
        available_for_sale=bool(pattern.get("downloadable") or pattern.get("free")),
        price_range=_single_price_range(price),
        pretty_price="Free" if pattern.get("free") else _pretty_price(price),
        thumbnail_url=photos[0].get("square_url", ""),
        images=images,
    )


def parse_ravelry_products(response: Dict[str, Any]) -> ProductList:
    """Parse ``stores/{id}/products.json``."""
    results = []
    for item in response.get("products") or []:
        price = _ravelry_money(item.get("price"), item.get("currency"))
        photo = item.get("first_photo") or {}
        results.append(Product(
            id=item["id"],
            title=item.get("title", ""),
            handle=str(item["id"]),
            available_for_sale=True,
            price_range=_single_price_range(price),
            pretty_price=item.get("pretty_price") or _pretty_price(price),
            thumbnail_url=item.get("square_thumbnail_url") or photo.get("square_url", ""),
        ))
    return ProductList(results=results)


def parse_ravelry_designer(response: Dict[str, Any], display_name: Optional[str] = None) -> Shop:
    """
    Parse ``designers/{id}.json?include=featured_bundles``.

    Args:
        response: Designer response
        display_name: Optional name overriding the pattern author's name

    Returns:
        Shop model describing the designer
    """
    author = response.get("pattern_author") or {}
    users = author.get("users") or [{}]
    user = users[0]
    sites = [
        site.get("url", "") if isinstance(site, dict) else str(site)
        for site in user.get("user_sites") or []
    ]
    featured = [
        {
            "id": bundle.get("id"),
            "name": bundle.get("name"),
            "url": bundle.get("url"),
            "imageUrl": bundle.get("small_image_url"),
        }
        for bundle in response.get("featured_bundles") or []
    ]
    permalink = author.get("permalink", "")

    return Shop(
        id=author.get("id", ""),
        name=author.get("name", ""),
        title=display_name or author.get("name", ""),
        description=author.get("notes_html") or "",
        url=f"{_RAVELRY_BASE}/designers/{permalink}" if permalink else "",
        icon_url=user.get("photo_url") or "",
        product_count=author.get("patterns_count") or 0,
        sites=[s for s in sites if s],
        featured=featured,
    )
