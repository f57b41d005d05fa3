"""
Unit tests for store rows -> storefront models and discount row -> homepage card (no network).
"""
from __future__ import annotations

import pytest

from storefront.adapter import (
    DEFAULT_PRODUCT_IMAGE,
    discount_row_to_card,
    rows_to_catalog,
    rows_to_discount_rows,
)
from storefront.config import ComposerConfig


def _discount_row(**kw: object) -> dict:
    row = {
        "id": 501,
        "product_id": 50,
        "price": "250000",
        "discounted_price": "150000",
        "discount_percent": 40,
        "stock_quantity": 3,
        "pin_to_home_discount": None,
        "pinned_to_home_discount_at": None,
        "created_at": "2024-01-01T00:00:00+00:00",
        "products": {
            "id": 50,
            "title": "Linen shirt",
            "type_id": 7,
            "image_urls": ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"],
            "created_at": "2023-12-01T00:00:00+00:00",
        },
    }
    row.update(kw)
    return row


def test_catalog_rows_null_variants_become_empty() -> None:
    out = rows_to_catalog([{"id": 1, "title": "Shirt", "type_id": 2, "product_variants": None}])
    assert out[0].product_variants == []
    assert out[0].type_id == 2


def test_catalog_rows_keep_variant_prices() -> None:
    out = rows_to_catalog([{"id": 1, "title": "Shirt", "product_variants": [{"id": 9, "price": "19.90"}]}])
    assert out[0].product_variants[0].price == "19.90"


def test_discount_rows_null_pin_flag() -> None:
    rows = rows_to_discount_rows([_discount_row()])
    assert not rows[0].pin_to_home_discount
    assert rows[0].products is not None


def test_card_fields() -> None:
    row = rows_to_discount_rows([_discount_row()])[0]
    card = discount_row_to_card(row, ComposerConfig())
    assert card.id == 50
    assert card.variant_id == 501
    assert card.title == "Linen shirt"
    assert card.image == "https://cdn.example.com/a.jpg"
    assert card.oldPrice == 250000
    assert card.newPrice == 150000
    assert card.discountPercent == 40
    assert card.fireicon is True
    assert card.inventoryno == 3
    assert card.type_id == 7


def test_card_fireicon_below_threshold() -> None:
    row = rows_to_discount_rows([_discount_row(discount_percent=39.5)])[0]
    assert discount_row_to_card(row, ComposerConfig()).fireicon is False
    assert discount_row_to_card(row, ComposerConfig(fire_min_percent=30)).fireicon is True


def test_card_default_image() -> None:
    for urls in (None, [], "not-a-list"):
        product = dict(_discount_row()["products"], image_urls=urls)
        row = rows_to_discount_rows([_discount_row(products=product)])[0]
        assert discount_row_to_card(row, ComposerConfig()).image == DEFAULT_PRODUCT_IMAGE


def test_card_clamps_negative_stock_and_discount() -> None:
    row = rows_to_discount_rows([_discount_row(stock_quantity=-2, discount_percent=-5)])[0]
    card = discount_row_to_card(row, ComposerConfig())
    assert card.inventoryno == 0
    assert card.discountPercent == 0


def test_card_requires_parent_product() -> None:
    row = rows_to_discount_rows([_discount_row(products=None)])[0]
    with pytest.raises(ValueError):
        discount_row_to_card(row, ComposerConfig())
