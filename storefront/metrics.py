"""In-memory metrics since process start (requests_total, upstream_errors_total, avg_latency_ms)."""

from __future__ import annotations

_metrics: dict[str, int | float] = {
    "requests_total": 0,
    "upstream_errors_total": 0,
    "sum_latency_ms": 0.0,
}


def record_request(latency_ms: float, upstream_error: bool = False) -> None:
    """Record one request for metrics."""
    _metrics["requests_total"] = _metrics.get("requests_total", 0) + 1
    _metrics["sum_latency_ms"] = _metrics.get("sum_latency_ms", 0.0) + latency_ms
    if upstream_error:
        _metrics["upstream_errors_total"] = _metrics.get("upstream_errors_total", 0) + 1


def get_metrics() -> dict[str, int | float]:
    """Return current metrics as dict (for /metrics endpoint)."""
    total = _metrics.get("requests_total", 0)
    sum_ms = _metrics.get("sum_latency_ms", 0.0)
    avg = sum_ms / total if total else 0.0
    return {
        "requests_total": total,
        "upstream_errors_total": _metrics.get("upstream_errors_total", 0),
        "avg_latency_ms": round(avg, 2),
    }


def reset_metrics() -> None:
    """Reset in-memory counters (for tests only)."""
    _metrics["requests_total"] = 0
    _metrics["upstream_errors_total"] = 0
    _metrics["sum_latency_ms"] = 0.0
