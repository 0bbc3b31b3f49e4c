from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from buildix.core.logging import get_request_id
from buildix.core.middleware.request_id import RequestIdMiddleware


def _make_app():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/")
    async def root(request: Request):
        return {
            "request_id": getattr(request.state, "request_id", None),
            "context_request_id": get_request_id(),
        }

    return app


def test_generates_request_id_when_missing():
    client = TestClient(_make_app())

    resp = client.get("/")
    assert resp.status_code == 200
    rid_header = resp.headers.get("x-request-id")

    assert rid_header
    assert resp.json()["request_id"] == rid_header
    assert resp.json()["context_request_id"] == rid_header


def test_echoes_provided_request_id():
    client = TestClient(_make_app())

    resp = client.get("/", headers={"X-Request-Id": "test-rid-123"})

    assert resp.status_code == 200
    assert resp.headers.get("x-request-id") == "test-rid-123"


def test_context_is_cleared_after_request():
    client = TestClient(_make_app())
    client.get("/", headers={"X-Request-Id": "test-rid-456"})
    assert get_request_id() is None
