from __future__ import annotations

import json
import re
import time
import uuid
from typing import Any, NoReturn, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response

from storefront import logging_utils as logging_utils_module
from storefront import metrics as metrics_module
from storefront import store as store_module
from storefront.adapter import discount_row_to_card
from storefront.composer import compose_discounted
from storefront.config import ComposerConfig, StoreConfig, is_production
from storefront.models import (
    SORT_MODES,
    DiscountedResponse,
    MostViewedResponse,
    PriceStats,
    ProductsResponse,
    SearchResponse,
    ViewRequest,
    ViewResponse,
)
from storefront.pricing import SearchListing, build_search_listing
from storefront.ranking import parse_number, stock_of, to_number


app = FastAPI(title="storefront-bff", version="0.1.0")
composer_config = ComposerConfig.from_env()
store_config = StoreConfig.from_env()

PRODUCTS_FETCH_FAILED = "Failed to load products."
PRICE_STATS_FAILED = "Failed to load price stats."
MOST_VIEWED_FAILED = "Failed to load most viewed products."
SEARCH_FAILED = "Search failed."
DISCOUNTED_FAILED = "Failed to load discounted products."
VIEW_FAILED = "Failed to record view."
INVALID_PRODUCT_ID = "Invalid productId."

LIST_LIMIT_DEFAULT = 50
LIST_LIMIT_MAX = 100
MOST_VIEWED_DEFAULT = 10
MOST_VIEWED_MAX = 30
SEARCH_MIN_CHARS = 2
VISITOR_COOKIE = "vid"
VISITOR_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _session_request_ids(request: Request) -> tuple[str | None, str | None]:
    """Read x-session-id and x-request-id from headers; default None."""
    session_id = request.headers.get("x-session-id") or None
    request_id = request.headers.get("x-request-id") or None
    return session_id, request_id


def _parse_int(raw: Optional[str], default: int) -> int:
    """Leading integer of a query value ("10.5" -> 10); missing, unparseable or <= 0 -> default."""
    m = _LEADING_INT.match(raw or "")
    if m is None:
        return default
    value = int(m.group(1))
    return value if value > 0 else default


def _parse_optional_number(raw: Optional[str]) -> Optional[float]:
    return parse_number(raw) if raw is not None and raw != "" else None


def _parse_type_id(raw: Optional[str]) -> Optional[int]:
    value = _parse_optional_number(raw)
    if value is None or not value.is_integer() or value == 0:
        return None
    return int(value)


def _parse_filters(raw: Optional[str]) -> dict[str, Any]:
    """JSON object from the filters query param; anything else -> {}."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _finish(route: str, request: Request, t0: float, result_count: int) -> None:
    session_id, request_id = _session_request_ids(request)
    latency_ms = (time.perf_counter() - t0) * 1000
    metrics_module.record_request(latency_ms=latency_ms, upstream_error=False)
    logging_utils_module.log_request(
        route=route,
        latency_ms=latency_ms,
        result_count=result_count,
        session_id=session_id,
        request_id=request_id,
    )


def _upstream_failed(
    route: str,
    request: Request,
    t0: float,
    error: store_module.UpstreamError,
    detail: str,
) -> NoReturn:
    """Log and count the failure, then surface a fixed message to the caller."""
    session_id, request_id = _session_request_ids(request)
    latency_ms = (time.perf_counter() - t0) * 1000
    metrics_module.record_request(latency_ms=latency_ms, upstream_error=True)
    logging_utils_module.log_error(route=route, error=str(error), request_id=request_id)
    logging_utils_module.log_request(
        route=route,
        latency_ms=latency_ms,
        session_id=session_id,
        request_id=request_id,
        upstream_error=True,
    )
    raise HTTPException(status_code=502, detail=detail) from error


def _search_listing(
    search: str,
    type_id: Optional[int],
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: str = "newest",
) -> SearchListing:
    """Bulk-fetch the catalog and run the search generator over it."""
    client = store_module.get_client()
    candidates = store_module.fetch_catalog(client, limit=store_config.bulk_fetch_limit)
    return build_search_listing(
        candidates,
        search,
        primary_category=type_id,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        config=composer_config,
    )


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> dict:
    """Lightweight JSON metrics (in-memory since process start)."""
    return metrics_module.get_metrics()


@app.get("/api/products", response_model=ProductsResponse)
def list_products(
    request: Request,
    type_: Optional[str] = Query(default=None, alias="type"),
    search: Optional[str] = None,
    sort: Optional[str] = None,
    min_price: Optional[str] = Query(default=None, alias="minPrice"),
    max_price: Optional[str] = Query(default=None, alias="maxPrice"),
    filters: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
) -> ProductsResponse:
    """Search mode runs the generator (stats before price filter); otherwise the filter procedure."""
    route = "/api/products"
    t0 = time.perf_counter()

    type_id = _parse_type_id(type_)
    query = (search or "").strip()
    sort_mode = sort if sort in SORT_MODES else "newest"
    lo = _parse_optional_number(min_price)
    hi = _parse_optional_number(max_price)
    page_size = min(_parse_int(limit, LIST_LIMIT_DEFAULT), LIST_LIMIT_MAX)
    start = max(_parse_int(offset, 0), 0)

    if query:
        try:
            listing = _search_listing(query, type_id, lo, hi, sort_mode)
        except store_module.UpstreamError as e:
            _upstream_failed(route, request, t0, e, PRODUCTS_FETCH_FAILED)
        paged = listing.products[start : start + page_size]
        _finish(route, request, t0, len(paged))
        return ProductsResponse(
            products=[p.model_dump() for p in paged],
            mixed=listing.mixed,
            stats=listing.stats,
        )

    try:
        products = store_module.fetch_filtered_products(
            store_module.get_client(),
            type_id=type_id,
            filters=_parse_filters(filters),
            min_price=lo,
            max_price=hi,
            sort=sort_mode,
            limit=page_size,
            offset=start,
        )
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, PRODUCTS_FETCH_FAILED)
    _finish(route, request, t0, len(products))
    return ProductsResponse(products=products, mixed=False)


@app.get("/api/products/stats", response_model=PriceStats)
def product_price_stats(
    request: Request,
    type_: Optional[str] = Query(default=None, alias="type"),
    search: Optional[str] = None,
    filters: Optional[str] = None,
) -> PriceStats:
    """Search mode reuses the generator's unfiltered stats; otherwise the stats procedure."""
    route = "/api/products/stats"
    t0 = time.perf_counter()
    type_id = _parse_type_id(type_)
    query = (search or "").strip()

    if query:
        try:
            listing = _search_listing(query, type_id)
        except store_module.UpstreamError as e:
            _upstream_failed(route, request, t0, e, PRODUCTS_FETCH_FAILED)
        _finish(route, request, t0, 1)
        return listing.stats

    try:
        data = store_module.fetch_price_stats(
            store_module.get_client(),
            type_id=type_id,
            filters=_parse_filters(filters),
        )
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, PRICE_STATS_FAILED)
    _finish(route, request, t0, 1)
    return PriceStats(min=to_number(data.get("min")), max=to_number(data.get("max")))


@app.get("/api/products/most-viewed", response_model=MostViewedResponse)
def most_viewed(request: Request, limit: Optional[str] = None) -> MostViewedResponse:
    route = "/api/products/most-viewed"
    t0 = time.perf_counter()
    n = min(_parse_int(limit, MOST_VIEWED_DEFAULT), MOST_VIEWED_MAX)
    try:
        products = store_module.fetch_most_viewed(store_module.get_client(), limit=n)
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, MOST_VIEWED_FAILED)
    _finish(route, request, t0, len(products))
    return MostViewedResponse(products=products)


@app.post("/api/products/view", response_model=ViewResponse)
def track_view(request: Request, response: Response, body: Optional[ViewRequest] = None) -> ViewResponse:
    """Record one view per product, viewer and day. Viewer = signed-in user, else visitor cookie."""
    route = "/api/products/view"
    t0 = time.perf_counter()

    product_id = parse_number(body.productId) if body is not None else None
    if product_id is None or product_id <= 0 or not product_id.is_integer():
        raise HTTPException(status_code=400, detail=INVALID_PRODUCT_ID)

    client = store_module.get_client()
    auth = request.headers.get("authorization") or ""
    token = auth[len("Bearer "):].strip() if auth.startswith("Bearer ") else ""
    user_id = store_module.resolve_user_id(client, token)

    vid = request.cookies.get(VISITOR_COOKIE)
    if not vid:
        vid = str(uuid.uuid4())
        response.set_cookie(
            VISITOR_COOKIE,
            vid,
            max_age=VISITOR_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
            secure=is_production(),
        )

    try:
        store_module.record_daily_view(client, int(product_id), user_id or vid, user_id)
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, VIEW_FAILED)
    _finish(route, request, t0, 1)
    return ViewResponse(success=True)


@app.get("/api/search", response_model=SearchResponse)
def search_suggestions(request: Request, q: Optional[str] = None, limit: Optional[str] = None) -> SearchResponse:
    """Title / product-code suggestions; queries shorter than two characters return nothing."""
    route = "/api/search"
    t0 = time.perf_counter()
    query = (q or "").strip()
    if len(query) < SEARCH_MIN_CHARS:
        _finish(route, request, t0, 0)
        return SearchResponse(products=[])

    n = min(_parse_int(limit, LIST_LIMIT_DEFAULT), LIST_LIMIT_MAX)
    try:
        products = store_module.search_products(store_module.get_client(), query, limit=n)
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, SEARCH_FAILED)
    _finish(route, request, t0, len(products))
    return SearchResponse(products=products)


@app.get("/api/home/discounted", response_model=DiscountedResponse)
def home_discounted(request: Request, limit: Optional[str] = None) -> DiscountedResponse:
    """Homepage discount carousel: pinned tier first, then diversified auto picks."""
    route = "/api/home/discounted"
    t0 = time.perf_counter()
    page_limit = composer_config.page_limit
    n = min(_parse_int(limit, page_limit), page_limit)

    try:
        rows = store_module.fetch_discount_candidates(
            store_module.get_client(),
            composer_config.auto_min_percent,
            limit=store_config.bulk_fetch_limit,
        )
    except store_module.UpstreamError as e:
        _upstream_failed(route, request, t0, e, DISCOUNTED_FAILED)

    renderable = [r for r in rows if r.products is not None and stock_of(r) > 0]
    composed = compose_discounted(renderable, n, composer_config)
    cards = [discount_row_to_card(r, composer_config) for r in composed]
    _finish(route, request, t0, len(cards))
    return DiscountedResponse(products=cards)


def main() -> None:
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8040, reload=True)


if __name__ == "__main__":
    main()
