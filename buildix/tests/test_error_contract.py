"""Tests for normalized error responses."""

from fastapi.testclient import TestClient

from buildix.main import app


def test_not_found_has_standard_shape():
    client = TestClient(app)
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "not_found"
    assert body["error"]["request_id"] == rid


def test_unauthorized_error_normalized():
    client = TestClient(app)
    resp = client.get("/api/usage/prompts", headers={"X-Request-Id": "rid-401"})
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "unauthorized"
    assert body["error"]["request_id"] == "rid-401"
    assert body["detail"] == body["error"]["message"]


def test_usage_limit_body_is_not_enveloped():
    client = TestClient(app)
    headers = {"X-User-Id": "limit-user"}
    client.post("/api/exports/html", headers=headers)
    client.post("/api/exports/html", headers=headers)

    resp = client.post("/api/exports/html", headers=headers)

    assert resp.status_code == 429
    assert set(resp.json()) == {"error", "usageLimit", "usage", "plan"}
    assert isinstance(resp.json()["error"], str)
