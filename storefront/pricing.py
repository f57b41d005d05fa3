"""Price envelope, price-range post-filter and sort modes for the search listing."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from storefront.composer import compose_search
from storefront.config import ComposerConfig
from storefront.models import CatalogProduct, PriceStats
from storefront.ranking import parse_number

UNBUCKETED = 999
UNRANKED = 999999


def variant_prices(product: CatalogProduct) -> list[float]:
    prices = (parse_number(v.price) for v in product.product_variants)
    return [p for p in prices if p is not None]


def min_variant_price(product: CatalogProduct) -> float:
    """Cheapest variant price; +inf when no variant has a numeric price."""
    prices = variant_prices(product)
    return min(prices) if prices else math.inf


def compute_price_stats(products: Iterable[CatalogProduct]) -> PriceStats:
    lo = math.inf
    hi = 0.0
    for p in products:
        for price in variant_prices(p):
            lo = min(lo, price)
            hi = max(hi, price)
    if not math.isfinite(lo):
        lo = 0.0
    if hi < lo:
        hi = lo
    return PriceStats(min=lo, max=hi)


def filter_by_price_range(
    products: Sequence[CatalogProduct],
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> list[CatalogProduct]:
    """Keep products whose cheapest variant lies in [min_price, max_price].

    A missing bound is unbounded. With any bound set, products without a numeric
    price are dropped.
    """
    if min_price is None and max_price is None:
        return list(products)
    lo = -math.inf if min_price is None else min_price
    hi = math.inf if max_price is None else max_price
    kept = []
    for p in products:
        price = min_variant_price(p)
        if math.isfinite(price) and lo <= price <= hi:
            kept.append(p)
    return kept


def apply_sort_mode(
    products: Sequence[CatalogProduct],
    sort: str,
    generated: Sequence[CatalogProduct],
    bucket_by_id: dict[int, int],
) -> list[CatalogProduct]:
    """Re-order within generator buckets; bucket priority always dominates price."""
    position = {p.id: i for i, p in enumerate(generated)}

    def bucket(p: CatalogProduct) -> int:
        return bucket_by_id.get(p.id, UNBUCKETED)

    def generator_rank(p: CatalogProduct) -> int:
        return position.get(p.id, UNRANKED)

    if sort == "priceAsc":
        return sorted(products, key=lambda p: (bucket(p), min_variant_price(p), generator_rank(p)))
    if sort == "priceDesc":
        return sorted(products, key=lambda p: (bucket(p), -min_variant_price(p), generator_rank(p)))
    return sorted(products, key=generator_rank)


@dataclass
class SearchListing:
    products: list[CatalogProduct]
    mixed: bool
    stats: PriceStats


def build_search_listing(
    candidates: Iterable[CatalogProduct],
    query: str,
    primary_category: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: str = "newest",
    config: ComposerConfig = ComposerConfig(),
) -> SearchListing:
    """Compose, take stats over the unfiltered result, then price-filter and sort."""
    composition = compose_search(candidates, query, primary_category, config)
    stats = compute_price_stats(composition.products)
    filtered = filter_by_price_range(composition.products, min_price, max_price)
    ordered = apply_sort_mode(filtered, sort, composition.products, composition.bucket_by_id)
    return SearchListing(products=ordered, mixed=composition.mixed, stats=stats)
