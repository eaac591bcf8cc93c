"""Tests for health endpoints"""
from fastapi.testclient import TestClient


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    assert client.get("/api/health/live").json()["status"] == "alive"


def test_readiness_reports_store_state(client: TestClient, settings):
    response = client.get("/api/health/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["checks"]["data_dir"] is True
    assert body["checks"]["store_files"] is True
    assert body["checks"]["live_connections"] == 0

    (settings.DATA_DIR / "admin_notifications.txt").unlink()
    response = client.get("/api/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
