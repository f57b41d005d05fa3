"""
Result composition for the search/listing generator and the homepage discount picker.

Search/listing: candidates are split into match / non-match by title or product code,
then by category; every cell is newest-first. Cells are emitted in stage order under a
global cap and each emitted product remembers its stage number (bucket priority).

Discount: pinned representatives first (newest pin first), then auto-eligible
representatives interleaved round-robin across categories for diversity.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, TypeVar

from storefront.config import ComposerConfig
from storefront.models import CatalogProduct, DiscountRow
from storefront.ranking import (
    compare_key,
    discount_of,
    parse_timestamp,
    pick_representatives,
    rank,
    recency_of,
    stock_of,
)

T = TypeVar("T")

CategoryId = Optional[int]


def category_of(product: CatalogProduct) -> CategoryId:
    """Category id, with 0 treated as uncategorized."""
    return product.type_id or None


def matches_query(product: CatalogProduct, query: str) -> bool:
    """Case-insensitive substring match on title or product code."""
    q = query.lower()
    title = (product.title or "").lower()
    code = (product.product_code or "").lower()
    return q in title or q in code


def newest_first(products: Iterable[CatalogProduct]) -> list[CatalogProduct]:
    return sorted(products, key=lambda p: parse_timestamp(p.created_at), reverse=True)


@dataclass
class SearchBuckets:
    """Match / non-match cells keyed by category, in first-seen category order."""
    matches: dict[CategoryId, list[CatalogProduct]] = field(default_factory=dict)
    non_matches: dict[CategoryId, list[CatalogProduct]] = field(default_factory=dict)
    category_ids: list[CategoryId] = field(default_factory=list)


def bucketize_search(
    products: Iterable[CatalogProduct],
    query: str,
    *,
    include_uncategorized: bool = False,
) -> SearchBuckets:
    buckets = SearchBuckets()
    seen: set[CategoryId] = set()
    for p in products:
        cid = category_of(p)
        if cid is None and not include_uncategorized:
            continue
        if cid not in seen:
            seen.add(cid)
            buckets.category_ids.append(cid)
        cells = buckets.matches if matches_query(p, query) else buckets.non_matches
        cells.setdefault(cid, []).append(p)

    buckets.matches = {cid: newest_first(cell) for cid, cell in buckets.matches.items()}
    buckets.non_matches = {cid: newest_first(cell) for cid, cell in buckets.non_matches.items()}
    return buckets


@dataclass
class SearchComposition:
    products: list[CatalogProduct]
    mixed: bool
    bucket_by_id: dict[int, int]


class _Emitter:
    """Accumulates emitted products under a cap, skipping ids already emitted."""

    def __init__(self, cap: int, primary: CategoryId) -> None:
        self.cap = cap
        self.primary = primary
        self.items: list[CatalogProduct] = []
        self.bucket_by_id: dict[int, int] = {}
        self.mixed = False

    @property
    def full(self) -> bool:
        return len(self.items) >= self.cap

    def push(self, items: Optional[Sequence[CatalogProduct]], bucket: int, category_id: CategoryId) -> None:
        for p in items or ():
            if self.full:
                break
            if p.id in self.bucket_by_id:
                continue
            if self.primary is not None and category_id is not None and category_id != self.primary:
                self.mixed = True
            self.items.append(p)
            self.bucket_by_id[p.id] = bucket


def compose_search(
    products: Iterable[CatalogProduct],
    query: str,
    primary_category: CategoryId = None,
    config: ComposerConfig = ComposerConfig(),
) -> SearchComposition:
    """Run the search generator over a candidate snapshot."""
    primary = primary_category or None
    buckets = bucketize_search(products, query, include_uncategorized=primary is None)
    out = _Emitter(config.search_cap, primary)
    matched_ids = list(buckets.matches)

    if primary is not None:
        other_matched = [cid for cid in matched_ids if cid != primary]

        out.push(buckets.matches.get(primary), 1, primary)
        for cid in other_matched:
            if out.full:
                break
            out.push(buckets.matches[cid], 2, cid)

        out.push(buckets.non_matches.get(primary), 3, primary)
        for cid in other_matched:
            if out.full:
                break
            out.push(buckets.non_matches.get(cid), 4, cid)

        for cid in buckets.category_ids:
            if out.full:
                break
            if cid == primary or cid in buckets.matches:
                continue
            out.push(buckets.non_matches.get(cid), 5, cid)

        return SearchComposition(out.items, out.mixed, out.bucket_by_id)

    for cid in matched_ids:
        if out.full:
            break
        out.push(buckets.matches[cid], 1, cid)

    for cid in matched_ids:
        if out.full:
            break
        out.push(buckets.non_matches.get(cid), 2, cid)

    for cid in buckets.category_ids:
        if out.full:
            break
        if cid in buckets.matches:
            continue
        out.push(buckets.non_matches.get(cid), 3, cid)

    categories = {category_of(p) for p in out.items} - {None}
    return SearchComposition(out.items, len(categories) > 1, out.bucket_by_id)


def interleave(buckets: Sequence[Sequence[T]], want: int) -> list[T]:
    """Round-robin: round i takes element i of every bucket that still has one.

    Stops once `want` items are picked or a whole round contributes nothing.
    """
    picked: list[T] = []
    round_index = 0
    while len(picked) < want:
        contributed = False
        for bucket in buckets:
            if round_index >= len(bucket):
                continue
            contributed = True
            picked.append(bucket[round_index])
            if len(picked) >= want:
                break
        if not contributed:
            break
        round_index += 1
    return picked


def discount_category_of(row: DiscountRow) -> CategoryId:
    return (row.products.type_id if row.products else None) or None


def is_pinned(row: DiscountRow) -> bool:
    return row.pin_to_home_discount is True and discount_of(row) > 0


def is_auto_eligible(row: DiscountRow, config: ComposerConfig) -> bool:
    return (
        not row.pin_to_home_discount
        and discount_of(row) >= config.auto_min_percent
        and stock_of(row) > 0
    )


def category_buckets(rows: Iterable[DiscountRow], cap: int) -> list[list[DiscountRow]]:
    """Group by category, rank and cap each group, order groups by their lead row."""
    by_category: dict[int, list[DiscountRow]] = {}
    for row in rows:
        cid = discount_category_of(row)
        if cid is None:
            continue
        by_category.setdefault(cid, []).append(row)

    capped = [rank(group)[:cap] for group in by_category.values()]
    capped = [group for group in capped if group]
    return sorted(capped, key=lambda group: compare_key(group[0]))


def compose_discounted(
    rows: Iterable[DiscountRow],
    limit: Optional[int] = None,
    config: ComposerConfig = ComposerConfig(),
) -> list[DiscountRow]:
    """Pick the homepage discount rows: pinned tier, then diversified auto picks."""
    rows = list(rows)
    limit = config.page_limit if limit is None else min(limit, config.page_limit)
    if limit <= 0:
        return []

    pinned = pick_representatives(r for r in rows if is_pinned(r))
    pinned.sort(key=lambda r: (recency_of(r), r.id), reverse=True)
    selected = pinned[:limit]
    if len(selected) >= limit:
        return selected

    used_products = {r.product_id for r in selected}
    auto = pick_representatives(
        r for r in rows
        if r.product_id not in used_products and is_auto_eligible(r, config)
    )
    buckets = category_buckets(auto, config.per_category_cap)
    picked = interleave(buckets, limit - len(selected))
    return (selected + picked)[:limit]
