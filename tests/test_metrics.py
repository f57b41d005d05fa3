"""
Tests for /metrics and structured logging.
No network; store calls are mocked.
"""

from __future__ import annotations

import json
from unittest.mock import patch

from fastapi.testclient import TestClient

from storefront import metrics as metrics_module
from storefront.main import app
from storefront.store import UpstreamError


def _log_lines(out: str) -> list[dict]:
    lines = [line.strip() for line in out.strip().split("\n") if line.strip()]
    return [json.loads(line) for line in lines]


def test_metrics_endpoint_returns_json_with_required_keys() -> None:
    """GET /metrics returns requests_total, upstream_errors_total, avg_latency_ms starting from zero."""
    metrics_module.reset_metrics()
    c = TestClient(app)
    r = c.get("/metrics")
    assert r.status_code == 200
    body = r.json()
    assert body == {"requests_total": 0, "upstream_errors_total": 0, "avg_latency_ms": 0.0}


@patch("storefront.main.store_module.fetch_most_viewed", return_value=[])
def test_requests_are_counted(_mock_rpc) -> None:
    metrics_module.reset_metrics()
    c = TestClient(app)
    c.get("/api/products/most-viewed")
    c.get("/api/search", params={"q": "x"})
    m = c.get("/metrics").json()
    assert m["requests_total"] == 2
    assert m["upstream_errors_total"] == 0
    assert m["avg_latency_ms"] >= 0


@patch("storefront.main.store_module.fetch_most_viewed", side_effect=UpstreamError("store down"))
def test_upstream_errors_are_counted(_mock_rpc) -> None:
    metrics_module.reset_metrics()
    c = TestClient(app)
    r = c.get("/api/products/most-viewed")
    assert r.status_code == 502
    m = c.get("/metrics").json()
    assert m["requests_total"] == 1
    assert m["upstream_errors_total"] == 1


@patch("storefront.main.store_module.fetch_most_viewed", return_value=[{"id": 1}, {"id": 2}])
def test_structured_log_has_required_fields(_mock_rpc, capsys: object) -> None:
    """One JSON log line per request with ts, service, route, latency_ms, result_count, session/request ids."""
    c = TestClient(app)
    c.get("/api/products/most-viewed", headers={"x-session-id": "s2", "x-request-id": "r2"})
    log = _log_lines(capsys.readouterr().out)[-1]
    assert "ts" in log
    assert log["service"] == "storefront-bff"
    assert log["route"] == "/api/products/most-viewed"
    assert log["result_count"] == 2
    assert "latency_ms" in log
    assert log.get("session_id") == "s2"
    assert log.get("request_id") == "r2"
    assert log["upstream_error"] is False


@patch("storefront.main.store_module.fetch_most_viewed", side_effect=UpstreamError("store down"))
def test_upstream_failure_logs_error_line(_mock_rpc, capsys: object) -> None:
    c = TestClient(app)
    c.get("/api/products/most-viewed", headers={"x-request-id": "r3"})
    logs = _log_lines(capsys.readouterr().out)
    errors = [line for line in logs if line.get("level") == "error"]
    assert errors and errors[-1]["error"] == "store down"
    assert errors[-1]["request_id"] == "r3"
    assert logs[-1]["upstream_error"] is True
