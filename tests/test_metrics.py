"""Tests for Prometheus metrics."""
from fastapi.testclient import TestClient

from storytrace.metrics import Metrics


def test_metrics_endpoint(app):
    client = TestClient(app)
    client.post("/trace", json={"type": "choice", "data": {"choice": "flee"}})
    client.post("/trace", content=b"not json")
    client.post("/trace", json={"type": "custom.kind"})

    r = client.get("/metrics")
    assert r.status_code == 200
    content = r.text
    assert "http_requests_total" in content
    assert "http_request_duration_seconds" in content
    assert "app_up" in content
    assert 'storytrace_events_ingested_total{event_type="choice"} 1.0' in content
    assert 'storytrace_events_ingested_total{event_type="raw"} 1.0' in content
    assert 'storytrace_events_ingested_total{event_type="other"} 1.0' in content
    assert "storytrace_contexts 1.0" in content


def test_unknown_paths_share_one_label(app):
    client = TestClient(app)
    client.get("/does-not-exist")
    client.get("/also/missing")

    content = client.get("/metrics").text
    assert 'path="unmatched"' in content
    assert "does-not-exist" not in content


def test_persist_failure_counted(app, monkeypatch):
    def boom(payload):
        raise OSError("disk full")

    monkeypatch.setattr(app.state.persistence, "_append_sync", boom)
    client = TestClient(app)
    r = client.post("/trace", json={"type": "choice"})
    assert r.status_code == 500

    assert "storytrace_persist_failures_total 1.0" in client.get("/metrics").text


def test_route_label():
    metrics = Metrics()
    assert metrics.route_label("/stats") == "/stats"
    assert metrics.route_label("/wp-admin") == "unmatched"
