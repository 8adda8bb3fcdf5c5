import asyncio

import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)
_real_check_storage = health_module._check_storage


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")

    async def ok():
        return {"status": "ok", "latency_ms": 1.0}

    monkeypatch.setattr(health_module, "_check_db", ok)
    monkeypatch.setattr(health_module, "_check_storage", ok)
    yield


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok() -> None:
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert set(payload["checks"]) == {"api", "database", "document_storage"}


def test_health_ready_degraded(monkeypatch) -> None:
    async def bad_db():
        return {"status": "error", "error": "unreachable"}

    monkeypatch.setattr(health_module, "_check_db", bad_db)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "degraded"
    assert payload.get("ready") is False
    assert payload["checks"]["database"]["status"] == "error"


def test_status_summary() -> None:
    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("version") == health_module.APP_VERSION
    assert payload.get("environment") == "test"


def test_storage_check_reports_unwritable_path(monkeypatch, tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    monkeypatch.setattr(health_module.settings, "local_upload_dir", str(blocker / "uploads"))

    result = asyncio.run(_real_check_storage())
    assert result["status"] == "error"


def test_admin_system_health(monkeypatch, override_deps, admin_principal) -> None:
    async def bad_storage():
        return {"status": "error", "error": "read-only filesystem", "latency_ms": 0.5}

    monkeypatch.setattr(health_module, "_check_storage", bad_storage)
    override_deps(admin_principal)

    response = client.get("/api/v1/admin/system/health")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "degraded"
    assert data["version"] == health_module.APP_VERSION
    components = {component["name"]: component for component in data["components"]}
    assert components["document_storage"]["detail"] == "read-only filesystem"
    assert components["database"]["status"] == "ok"
