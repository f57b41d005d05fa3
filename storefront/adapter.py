"""
Adapter: store rows -> storefront models.
products rows (with product_variants) -> CatalogProduct;
product_variants rows (with products) -> DiscountRow -> HomeDiscountCard.
"""
from __future__ import annotations

from typing import Any, Iterable

from storefront.config import ComposerConfig
from storefront.models import CatalogProduct, DiscountProduct, DiscountRow, HomeDiscountCard
from storefront.ranking import discount_of, stock_of, to_number

DEFAULT_PRODUCT_IMAGE = "/images/product-default.jpg"


def rows_to_catalog(rows: Iterable[dict[str, Any]]) -> list[CatalogProduct]:
    products = []
    for row in rows:
        row = dict(row)
        if row.get("product_variants") is None:
            row["product_variants"] = []
        products.append(CatalogProduct.model_validate(row))
    return products


def rows_to_discount_rows(rows: Iterable[dict[str, Any]]) -> list[DiscountRow]:
    return [DiscountRow.model_validate(row) for row in rows]


def image_of(product: DiscountProduct) -> str:
    """First image url, else the default product image."""
    urls = product.image_urls if isinstance(product.image_urls, list) else []
    return (urls[0] if urls else None) or DEFAULT_PRODUCT_IMAGE


def discount_row_to_card(row: DiscountRow, config: ComposerConfig) -> HomeDiscountCard:
    """Map a composed discount row (with its parent product) to a homepage card."""
    product = row.products
    if product is None:
        raise ValueError(f"discount row {row.id} has no parent product")
    percent = discount_of(row)
    return HomeDiscountCard(
        id=product.id,
        variant_id=row.id,
        title=product.title or "",
        image=image_of(product),
        oldPrice=to_number(row.price),
        newPrice=to_number(row.discounted_price),
        discountPercent=percent,
        fireicon=percent >= config.fire_min_percent,
        inventoryno=stock_of(row),
        type_id=product.type_id,
    )
