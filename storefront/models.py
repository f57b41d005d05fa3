"""Storage projections and request/response models for the storefront endpoints.

Numeric storage columns (price, discounted_price, discount_percent, stock_quantity)
are kept loose: the store may send numerics as strings, nulls, or garbage. The
ranking helpers coerce them.
"""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field

Numeric = Union[float, str, None]
SORT_MODES: tuple[str, ...] = ("newest", "priceAsc", "priceDesc")


class Variant(BaseModel):
    """A purchasable variant of a catalog product."""
    id: int
    product_id: Optional[int] = None
    price: Numeric = None
    stock_quantity: Numeric = None
    attributes: Any = None


class CatalogProduct(BaseModel):
    """Listing candidate: one product row with its variants."""
    id: int
    title: Optional[str] = ""
    product_code: Optional[str] = None
    type_id: Optional[int] = None
    image_urls: Any = None
    created_at: Optional[str] = None
    product_variants: list[Variant] = Field(default_factory=list)


class DiscountProduct(BaseModel):
    """Parent product embedded in a discount candidate row."""
    id: int
    title: Optional[str] = ""
    type_id: Optional[int] = None
    image_urls: Any = None
    created_at: Optional[str] = None


class DiscountRow(BaseModel):
    """Discount candidate: one variant row with its parent product."""
    id: int
    product_id: int
    price: Numeric = None
    discounted_price: Numeric = None
    discount_percent: Numeric = None
    stock_quantity: Numeric = None
    pin_to_home_discount: Optional[bool] = False
    pinned_to_home_discount_at: Optional[str] = None
    created_at: Optional[str] = None
    products: Optional[DiscountProduct] = None


class PriceStats(BaseModel):
    """Price envelope over the composed, unfiltered list."""
    min: float = 0.0
    max: float = 0.0


class HomeDiscountCard(BaseModel):
    """Card rendered in the homepage discount carousel."""
    id: int
    variant_id: int
    title: str
    image: str
    oldPrice: float
    newPrice: float
    discountPercent: float
    fireicon: bool
    inventoryno: float
    type_id: Optional[int] = None


class ProductsResponse(BaseModel):
    products: list[dict[str, Any]] = Field(default_factory=list)
    mixed: bool = False
    stats: Optional[PriceStats] = None


class SearchResponse(BaseModel):
    products: list[dict[str, Any]] = Field(default_factory=list)


class MostViewedResponse(BaseModel):
    products: list[dict[str, Any]] = Field(default_factory=list)


class DiscountedResponse(BaseModel):
    products: list[HomeDiscountCard] = Field(default_factory=list)


class ViewRequest(BaseModel):
    """Body of POST /api/products/view; productId is validated by the handler."""
    productId: Numeric = None


class ViewResponse(BaseModel):
    success: bool = True
