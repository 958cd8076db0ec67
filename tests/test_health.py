import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_health_endpoint_returns_expected_shape(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "Maintenance Planning API"
    assert "timestamp" in data
    assert data["scheduling_defaults"]["technician_count"] == 2
    assert data["scheduling_defaults"]["work_saturdays"] is False


def test_health_endpoint_reflects_crew_overrides(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("MAINTENANCE_TECHNICIAN_COUNT", "4")
    monkeypatch.setenv("MAINTENANCE_WORK_SATURDAYS", "true")
    get_settings.cache_clear()

    response = client.get("/api/health")

    assert response.status_code == 200
    defaults = response.json()["scheduling_defaults"]
    assert defaults["technician_count"] == 4
    assert defaults["work_saturdays"] is True
