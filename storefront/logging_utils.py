"""Structured request logging (one JSON line per request)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


SERVICE_NAME = "storefront-bff"


def _ts() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def log_request(
    route: str,
    latency_ms: float,
    result_count: int = 0,
    session_id: str | None = None,
    request_id: str | None = None,
    upstream_error: bool = False,
) -> None:
    """Emit one JSON line with required fields."""
    payload: dict[str, Any] = {
        "ts": _ts(),
        "service": SERVICE_NAME,
        "route": route,
        "latency_ms": round(latency_ms, 2),
        "result_count": result_count,
        "session_id": session_id,
        "request_id": request_id,
        "upstream_error": upstream_error,
    }
    print(json.dumps(payload))


def log_error(route: str, error: str, request_id: str | None = None) -> None:
    """Emit one JSON line for a failed upstream call."""
    payload: dict[str, Any] = {
        "ts": _ts(),
        "service": SERVICE_NAME,
        "level": "error",
        "route": route,
        "error": error,
        "request_id": request_id,
    }
    print(json.dumps(payload))
