"""
Integration tests for the health and admin endpoints.
"""

from types import SimpleNamespace

import pytest

from vitalvida.tasks import maintenance

pytestmark = pytest.mark.integration


def test_root(client):
    data = client.get("/").json()
    assert data["name"] == "VitalVida Sync API"
    assert data["endpoints"]["status"] == "/status"


def test_health_and_liveness(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/live").json()["status"] == "alive"


def test_status_reports_components(client):
    data = client.get("/status").json()

    assert data["status"] == "healthy"
    assert data["components"]["database"]["status"] == "healthy"
    assert data["components"]["redis"] == {"status": "healthy"}


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Response-Time"].endswith("ms")


def test_sync_stats(client, make_agent, make_role_agent):
    agent = make_agent()
    make_agent(name="Bola")
    make_role_agent(agent.id)

    data = client.get("/api/v1/admin/sync/stats").json()

    assert data["vitalvida_agents"] == 2
    assert data["role_agents"] == 1
    assert data["sync_health"] == 50.0


def test_sync_health_is_cached(client, make_agent):
    first = client.get("/api/v1/admin/sync/health").json()
    assert first["status"] == "healthy"

    make_agent()
    cached = client.get("/api/v1/admin/sync/health").json()
    assert cached["generated_at"] == first["generated_at"]

    fresh = client.get("/api/v1/admin/sync/health", params={"refresh": True}).json()
    assert fresh["agent_coverage"] == 0.0
    assert fresh["status"] == "critical"


def test_trigger_full_sync(client, monkeypatch):
    monkeypatch.setattr(maintenance.full_sync, "delay", lambda: SimpleNamespace(id="sync-123"))

    response = client.post("/api/v1/admin/sync/full")

    assert response.status_code == 202
    assert response.json() == {"task_id": "sync-123", "status": "queued", "message": "Full sync queued"}
