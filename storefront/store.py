"""
Store access over the hosted PostgREST API (tables + stored procedures).
No retries: every transport error, non-2xx status or missing config is raised as
UpstreamError and handled by the caller.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from storefront.adapter import rows_to_catalog, rows_to_discount_rows
from storefront.config import StoreConfig
from storefront.models import CatalogProduct, DiscountRow

CATALOG_SELECT = (
    "id,title,product_code,type_id,image_urls,created_at,"
    "product_variants(id,price,stock_quantity,attributes)"
)
SEARCH_SELECT = (
    "id,title,product_code,type_id,image_urls,created_at,"
    "product_variants(id,price),types(id,typename)"
)
DISCOUNT_SELECT = (
    "id,product_id,price,discounted_price,discount_percent,stock_quantity,"
    "pin_to_home_discount,pinned_to_home_discount_at,created_at,"
    "products:products(id,title,type_id,image_urls,created_at)"
)
DAILY_VIEWS_CONFLICT = "product_id,viewer_key,viewed_on"


class UpstreamError(Exception):
    """A read or write against the store failed."""


_client: Optional[httpx.Client] = None


def get_client() -> httpx.Client | None:
    """Shared client built from env (SUPABASE_URL, SUPABASE_SERVICE_ROLE). None if config is missing."""
    global _client
    if _client is None:
        config = StoreConfig.from_env()
        if not config.base_url or not config.service_key:
            return None
        _client = build_client(config)
    return _client


def build_client(config: StoreConfig, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return httpx.Client(
        base_url=config.base_url,
        headers={
            "apikey": config.service_key,
            "Authorization": f"Bearer {config.service_key}",
        },
        timeout=config.timeout_s,
        transport=transport,
    )


def set_client(client: httpx.Client | None) -> None:
    """Set the shared client (for tests); None resets to env-built default."""
    global _client
    _client = client


def _require(client: httpx.Client | None) -> httpx.Client:
    if client is None:
        raise UpstreamError("store config missing")
    return client


def _send(client: httpx.Client | None, method: str, path: str, **kwargs: Any) -> httpx.Response:
    try:
        r = _require(client).request(method, path, **kwargs)
        r.raise_for_status()
    except httpx.HTTPError as e:
        raise UpstreamError(f"{method} {path} failed: {e}") from e
    return r


def _json(r: httpx.Response) -> Any:
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError as e:
        raise UpstreamError(f"invalid JSON from store: {e}") from e


def _rpc(client: httpx.Client | None, name: str, payload: dict[str, Any]) -> Any:
    return _json(_send(client, "POST", f"/rest/v1/rpc/{name}", json=payload))


def _quote(value: str) -> str:
    """Quote a value for a PostgREST or=() filter."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def fetch_catalog(client: httpx.Client | None, limit: int = 10000) -> list[CatalogProduct]:
    """Bulk read of products with variants, newest first, for the search generator."""
    r = _send(
        client,
        "GET",
        "/rest/v1/products",
        params={"select": CATALOG_SELECT, "order": "created_at.desc", "limit": str(limit)},
    )
    return rows_to_catalog(_json(r) or [])


def search_products(client: httpx.Client | None, query: str, limit: int = 50) -> list[dict[str, Any]]:
    """Title or product-code ilike match, newest first (suggestion list)."""
    pattern = _quote(f"*{query}*")
    r = _send(
        client,
        "GET",
        "/rest/v1/products",
        params={
            "select": SEARCH_SELECT,
            "or": f"(title.ilike.{pattern},product_code.ilike.{pattern})",
            "order": "created_at.desc",
            "limit": str(limit),
        },
    )
    return list(_json(r) or [])


def fetch_discount_candidates(
    client: httpx.Client | None,
    auto_min_percent: float,
    limit: int = 10000,
) -> list[DiscountRow]:
    """Variant rows with a discounted price that are pinned or above the auto threshold."""
    r = _send(
        client,
        "GET",
        "/rest/v1/product_variants",
        params={
            "select": DISCOUNT_SELECT,
            "discounted_price": "not.is.null",
            "or": f"(pin_to_home_discount.eq.true,discount_percent.gte.{_fmt_number(auto_min_percent)})",
            "limit": str(limit),
        },
    )
    return rows_to_discount_rows(_json(r) or [])


def fetch_filtered_products(
    client: httpx.Client | None,
    *,
    type_id: Optional[int],
    filters: dict[str, Any],
    min_price: Optional[float],
    max_price: Optional[float],
    sort: str,
    limit: int,
    offset: int,
) -> list[dict[str, Any]]:
    """Non-search listing via the get_products_filtered procedure."""
    data = _rpc(
        client,
        "get_products_filtered",
        {
            "p_type_id": type_id,
            "p_search": None,
            "p_filters": filters,
            "p_min_price": min_price,
            "p_max_price": max_price,
            "p_sort": sort,
            "p_limit": limit,
            "p_offset": offset,
        },
    )
    if isinstance(data, dict):
        return list(data.get("products") or [])
    return []


def fetch_price_stats(
    client: httpx.Client | None,
    *,
    type_id: Optional[int],
    filters: dict[str, Any],
) -> dict[str, Any]:
    data = _rpc(
        client,
        "get_products_price_stats",
        {"p_type_id": type_id, "p_search": None, "p_filters": filters},
    )
    return data if isinstance(data, dict) else {}


def fetch_most_viewed(client: httpx.Client | None, limit: int = 10) -> list[dict[str, Any]]:
    data = _rpc(client, "get_most_viewed_products", {"p_limit": limit})
    return list(data or [])


def record_daily_view(
    client: httpx.Client | None,
    product_id: int,
    viewer_key: str,
    user_id: Optional[str] = None,
) -> None:
    """Upsert one view per (product, viewer, day); duplicates are ignored by the store."""
    _send(
        client,
        "POST",
        "/rest/v1/product_daily_views",
        params={"on_conflict": DAILY_VIEWS_CONFLICT},
        json={"product_id": product_id, "viewer_key": viewer_key, "user_id": user_id},
        headers={"Prefer": "resolution=ignore-duplicates,return=minimal"},
    )


def resolve_user_id(client: httpx.Client | None, token: str) -> str | None:
    """User id for a bearer token, or None when the token cannot be resolved."""
    if not token or client is None:
        return None
    try:
        r = client.get("/auth/v1/user", headers={"Authorization": f"Bearer {token}"})
        r.raise_for_status()
        user = r.json()
    except (httpx.HTTPError, ValueError):
        return None
    user_id = user.get("id") if isinstance(user, dict) else None
    return str(user_id) if user_id else None
