"""
Tests for health check endpoints.
"""
from fastapi.testclient import TestClient


def test_health_liveness(app):
    """Test liveness health check."""
    with TestClient(app) as client:
        r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert "updatedAt" in data
    assert "now" in data


def test_health_reflects_last_update(app):
    with TestClient(app) as client:
        before = client.get("/health").json()["updatedAt"]
        client.post("/trace", json={"type": "ping"})
        after = client.get("/health").json()["updatedAt"]
    assert after >= before
    assert after == app.state.store.snapshot.updated_at


def test_health_readiness(app):
    """Test readiness health check."""
    with TestClient(app) as client:
        r = client.get("/health/ready")
    # Should be 200 (ready) or 503 (not ready)
    assert r.status_code in [200, 503]
    data = r.json()
    assert data["checks"]["snapshot"]["loaded"] is True
    assert data["checks"]["data_dir"]["writable"] is True
    assert "disk_space" in data["checks"]
    assert "memory" in data["checks"]
    assert data["status"] in ("ready", "not_ready")


def test_lifespan_loads_snapshot(app):
    assert not app.state.store.loaded
    with TestClient(app):
        assert app.state.store.loaded
        assert app.state.persistence.data_dir.is_dir()
