"""Health endpoint and error envelope."""
from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j.get("status") == "ok"
    assert j.get("database") == "ok"
    # webhook secret only: card checkout is not fully configured
    assert j.get("stripe_configured") is False
    assert "cloudinary_configured" in j


def test_errors_carry_request_id(client: TestClient):
    r = client.get("/order")
    assert r.status_code == 401
    j = r.json()
    assert j["status_code"] == 401
    assert j["request_id"] == r.headers["X-Request-ID"]
