"""Health check and error envelope."""
from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j.get("status") == "ok"
    assert j.get("smtp_configured") is False
    assert r.headers.get("X-Request-ID")


def test_validation_error_is_400_with_request_id(client: TestClient):
    r = client.post("/api/order/quote", json={})
    assert r.status_code == 400
    j = r.json()
    assert j["status_code"] == 400
    assert "package_id" in j["error"]
    assert j.get("request_id") == r.headers.get("X-Request-ID")
