"""
Deterministic "better-of-two" ranking for discount candidates.

Tie-break chain, evaluated left to right until two rows differ:
  1) higher discount percent
  2) larger savings (price - discounted_price, floored at 0)
  3) more recent timestamp (pin time, else row creation, else parent creation)
  4) larger effective stock
  5) larger row id
Only rows with the same id compare equal.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Optional

from storefront.models import DiscountRow

DESC = -1
ASC = 1


def parse_number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string; None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def to_number(value: Any) -> float:
    """Like parse_number but degrades to 0."""
    v = parse_number(value)
    return 0.0 if v is None else v


def parse_timestamp(value: Optional[str]) -> float:
    """Epoch seconds for an ISO-8601 timestamp. Missing or unparseable -> 0 (epoch)."""
    if not value:
        return 0.0
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def stock_of(row: DiscountRow) -> float:
    return max(0.0, to_number(row.stock_quantity))


def discount_of(row: DiscountRow) -> float:
    return max(0.0, to_number(row.discount_percent))


def savings_of(row: DiscountRow) -> float:
    return max(0.0, to_number(row.price) - to_number(row.discounted_price))


def recency_of(row: DiscountRow) -> float:
    # first present source wins, even if it fails to parse
    parent_created = row.products.created_at if row.products else None
    source = row.pinned_to_home_discount_at or row.created_at or parent_created
    return parse_timestamp(source)


def identity_of(row: DiscountRow) -> float:
    return float(row.id)


TIE_BREAK_CHAIN: tuple[tuple[Callable[[DiscountRow], float], int], ...] = (
    (discount_of, DESC),
    (savings_of, DESC),
    (recency_of, DESC),
    (stock_of, DESC),
    (identity_of, DESC),
)


def compare(a: DiscountRow, b: DiscountRow) -> int:
    """Negative when a is preferred, positive when b is preferred."""
    for extractor, direction in TIE_BREAK_CHAIN:
        va = extractor(a)
        vb = extractor(b)
        if va != vb:
            return direction if va > vb else -direction
    return 0


compare_key = cmp_to_key(compare)


def preferred(a: DiscountRow, b: DiscountRow) -> DiscountRow:
    """Return whichever of a, b ranks first."""
    return b if compare(a, b) > 0 else a


def rank(rows: Iterable[DiscountRow]) -> list[DiscountRow]:
    """Sort best-first by the tie-break chain."""
    return sorted(rows, key=compare_key)


def pick_representatives(rows: Iterable[DiscountRow]) -> list[DiscountRow]:
    """One best row per product_id, in first-seen product order."""
    best: dict[int, DiscountRow] = {}
    for row in rows:
        prev = best.get(row.product_id)
        if prev is None or compare(prev, row) > 0:
            best[row.product_id] = row
    return list(best.values())
