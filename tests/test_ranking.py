"""
Tie-break chain tests: each level decides on its own, later levels only break ties.
"""
from __future__ import annotations

import itertools

from storefront.models import DiscountProduct, DiscountRow
from storefront.ranking import (
    compare,
    discount_of,
    parse_timestamp,
    pick_representatives,
    preferred,
    rank,
    recency_of,
    savings_of,
    stock_of,
)


def _row(vid: int, product_id: int = 1, **kw: object) -> DiscountRow:
    data: dict = {
        "id": vid,
        "product_id": product_id,
        "price": 100,
        "discounted_price": 80,
        "discount_percent": 20,
        "stock_quantity": 5,
        "created_at": "2024-01-01T00:00:00+00:00",
        "products": {"id": product_id, "title": f"Product {product_id}", "type_id": 1},
    }
    data.update(kw)
    return DiscountRow.model_validate(data)


def test_higher_discount_percent_wins() -> None:
    a = _row(1, discount_percent=30, price=100, discounted_price=90)
    b = _row(2, discount_percent=20, price=1000, discounted_price=100)
    assert compare(a, b) < 0
    assert compare(b, a) > 0
    assert preferred(b, a) is a


def test_savings_breaks_discount_tie() -> None:
    a = _row(1, price=200, discounted_price=100)
    b = _row(2, price=100, discounted_price=50)
    assert preferred(a, b) is a


def test_recency_breaks_savings_tie() -> None:
    older = _row(5, created_at="2024-01-01T00:00:00Z")
    newer = _row(1, created_at="2024-06-01T00:00:00Z")
    assert preferred(older, newer) is newer


def test_pin_time_preferred_over_creation_time() -> None:
    row = _row(1, created_at="2020-01-01T00:00:00Z", pinned_to_home_discount_at="2024-03-01T00:00:00Z")
    assert recency_of(row) == parse_timestamp("2024-03-01T00:00:00Z")


def test_parent_creation_time_is_last_fallback() -> None:
    row = _row(
        1,
        created_at=None,
        products={"id": 1, "title": "P", "type_id": 1, "created_at": "2023-05-05T00:00:00Z"},
    )
    assert recency_of(row) == parse_timestamp("2023-05-05T00:00:00Z")


def test_unparseable_timestamp_is_epoch() -> None:
    assert parse_timestamp("not-a-date") == 0.0
    assert parse_timestamp(None) == 0.0
    row = _row(1, created_at="garbage")
    assert recency_of(row) == 0.0


def test_stock_breaks_recency_tie() -> None:
    a = _row(1, stock_quantity=3)
    b = _row(2, stock_quantity=9)
    assert preferred(a, b) is b


def test_larger_id_is_final_fallback() -> None:
    a = _row(7)
    b = _row(3)
    assert preferred(a, b) is a
    assert compare(a, a) == 0


def test_malformed_numerics_degrade_to_zero() -> None:
    row = _row(1, stock_quantity=-4, discount_percent="abc", price="x", discounted_price=None)
    assert stock_of(row) == 0.0
    assert discount_of(row) == 0.0
    assert savings_of(row) == 0.0


def test_savings_never_negative() -> None:
    row = _row(1, price=50, discounted_price=80)
    assert savings_of(row) == 0.0


def test_numeric_strings_are_accepted() -> None:
    row = _row(1, price="120.5", discounted_price="100.5", discount_percent="15")
    assert savings_of(row) == 20.0
    assert discount_of(row) == 15.0


def test_comparator_is_strict_total_order() -> None:
    """Distinct ids never tie; ordering is antisymmetric and transitive over a mixed set."""
    rows = [
        _row(1),
        _row(2),
        _row(3, discount_percent=40),
        _row(4, price=300, discounted_price=100),
        _row(5, created_at="2025-01-01T00:00:00Z"),
        _row(6, stock_quantity=50),
        _row(7, stock_quantity="nope"),
    ]
    for a, b in itertools.permutations(rows, 2):
        assert compare(a, b) != 0
        assert (compare(a, b) < 0) == (compare(b, a) > 0)
    for a, b, c in itertools.permutations(rows, 3):
        if compare(a, b) < 0 and compare(b, c) < 0:
            assert compare(a, c) < 0


def test_rank_orders_best_first() -> None:
    rows = [_row(1, discount_percent=10), _row(2, discount_percent=50), _row(3, discount_percent=30)]
    assert [r.id for r in rank(rows)] == [2, 3, 1]


def test_one_representative_per_product_and_it_is_the_best() -> None:
    rows = [
        _row(1, product_id=100, discount_percent=15),
        _row(2, product_id=100, discount_percent=35),
        _row(3, product_id=200, discount_percent=20),
        _row(4, product_id=100, discount_percent=25),
    ]
    reps = pick_representatives(rows)
    assert [r.product_id for r in reps] == [100, 200]
    by_product = {r.product_id: r for r in reps}
    assert by_product[100].id == 2
    for r in rows:
        if r.product_id == 100:
            assert compare(by_product[100], r) <= 0


def test_embedded_product_is_optional() -> None:
    row = DiscountRow(id=1, product_id=1)
    assert recency_of(row) == 0.0
    assert row.products is None
    assert DiscountProduct(id=1).title == ""
