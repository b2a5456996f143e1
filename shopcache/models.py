"""
Normalized storefront data models.

Every backend (Etsy, Shopify, Ravelry) is mapped onto these records before
anything is written to the catalog cache. Field aliases keep the camelCase
shape of the JSON documents on disk.
"""

from typing import Optional, List, Dict, Union
from pydantic import BaseModel, Field


class Money(BaseModel):
    """Monetary amount as a decimal string plus ISO currency code."""
    amount: str = "0"
    currency_code: str = Field(default="USD", alias="currencyCode")

    class Config:
        populate_by_name = True


class PriceRange(BaseModel):
    """Cheapest and most expensive variant price."""
    min_variant_price: Money = Field(default_factory=Money, alias="minVariantPrice")
    max_variant_price: Money = Field(default_factory=Money, alias="maxVariantPrice")

    class Config:
        populate_by_name = True


class ProductImage(BaseModel):
    """Product photo."""
    id: Union[int, str]
    url: str
    alt_text: str = Field(default="", alias="altText")
    width: Optional[int] = None
    height: Optional[int] = None

    class Config:
        populate_by_name = True


class ProductVariant(BaseModel):
    """Purchasable variant (size, colour, offering)."""
    id: Union[int, str]
    title: str = "Default"
    sku: str = ""
    available_for_sale: bool = Field(default=False, alias="availableForSale")
    quantity_available: int = Field(default=0, alias="quantityAvailable")
    price: Money = Field(default_factory=Money)
    compare_at_price: Optional[Money] = Field(default=None, alias="compareAtPrice")

    class Config:
        populate_by_name = True


class Product(BaseModel):
    """A listing, product or pattern in normalized form."""
    id: Union[int, str]
    title: str
    handle: str = ""
    url: str = ""
    description: str = ""
    product_type: str = Field(default="", alias="productType")
    tags: List[str] = Field(default_factory=list)
    vendor: str = ""
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    available_for_sale: bool = Field(default=False, alias="availableForSale")
    total_inventory: int = Field(default=0, alias="totalInventory")
    price_range: PriceRange = Field(default_factory=PriceRange, alias="priceRange")
    pretty_price: str = Field(default="", alias="prettyPrice")
    thumbnail_url: str = Field(default="", alias="thumbnailUrl")
    images: List[ProductImage] = Field(default_factory=list)
    variants: List[ProductVariant] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ProductList(BaseModel):
    """Shop-wide product listing as cached in products.json."""
    results: List[Product] = Field(default_factory=list)


class Shop(BaseModel):
    """Shop (or Ravelry designer) profile."""
    id: Union[int, str]
    name: str
    title: str = ""
    description: str = ""
    url: str = ""
    icon_url: str = Field(default="", alias="iconUrl")
    currency_code: str = Field(default="", alias="currencyCode")
    product_count: int = Field(default=0, alias="productCount")
    sites: List[str] = Field(default_factory=list)
    featured: List[Dict[str, Union[int, str, None]]] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class Review(BaseModel):
    """Single buyer review of a listing."""
    id: Optional[Union[int, str]] = None
    rating: int
    review: str = ""
    review_date: Optional[str] = Field(default=None, alias="reviewDate")
    buyer_user_id: Optional[int] = Field(default=None, alias="buyerUserId")
    buyer_display_name: str = Field(default="Anonymous", alias="buyerDisplayName")
    is_recommended: bool = Field(default=False, alias="isRecommended")
    language: str = "en"

    class Config:
        populate_by_name = True


class ListingReviews(BaseModel):
    """Reviews of one listing plus aggregate numbers."""
    listing_id: Union[int, str] = Field(alias="listingId")
    reviews: List[Review] = Field(default_factory=list)
    total_reviews: int = Field(default=0, alias="totalReviews")
    average_rating: float = Field(default=0.0, alias="averageRating")
    last_updated: str = Field(alias="lastUpdated")
    summary: Dict[str, int] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class ReviewsSummary(BaseModel):
    """Review statistics across the whole catalog."""
    total_products: int = Field(default=0, alias="totalProducts")
    products_with_reviews: int = Field(default=0, alias="productsWithReviews")
    total_reviews: int = Field(default=0, alias="totalReviews")
    overall_average_rating: float = Field(default=0.0, alias="overallAverageRating")
    rating_distribution: Dict[str, int] = Field(default_factory=dict, alias="ratingDistribution")
    reviews_percentage: float = Field(default=0.0, alias="reviewsPercentage")
    last_updated: str = Field(alias="lastUpdated")

    class Config:
        populate_by_name = True
