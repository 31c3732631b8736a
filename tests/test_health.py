import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


async def _ok():
    return {"status": "ok"}


async def _db_down():
    return {"status": "error", "error": "unreachable"}


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_live_needs_no_token() -> None:
    response = client.get("/api/v1/health/live")
    assert response.json()["success"] is True


def test_health_ready_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["database"]["status"] == "ok"
    assert payload["checks"]["redis"]["status"] == "ok"


def test_health_ready_degraded(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _db_down)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["error"] == "unreachable"


def test_status_summary(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["ready"] is True
    assert payload["version"] == health_module.APP_VERSION
    assert payload["service"] == "deals"
