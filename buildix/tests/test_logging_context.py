"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from buildix.core.logging import JsonFormatter, RequestIdFilter, log_event, request_id_ctx_var
from buildix.main import app


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="buildix"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_gate_decision_is_logged_with_context(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="buildix"):
        response = client.get("/api/usage/prompts", headers={"X-User-Id": "log-user"})
    assert response.status_code == 200

    decisions = [r for r in caplog.records if r.getMessage() == "usage.gate_decision"]
    assert len(decisions) == 1
    assert decisions[0].user_id == "log-user"
    assert decisions[0].feature == "prompts"
    assert decisions[0].decision == "allow"


def test_json_formatter_includes_extra_fields():
    token = request_id_ctx_var.set("rid-json")
    try:
        record = logging.LogRecord("buildix", logging.INFO, __file__, 1, "usage.incremented", None, None)
        record.user_id = "u1"
        record.amount = 2
        RequestIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "usage.incremented"
    assert payload["request_id"] == "rid-json"
    assert payload["user_id"] == "u1"
    assert payload["amount"] == 2


def test_log_event_truncates_long_values(caplog):
    with caplog.at_level(logging.INFO, logger="buildix"):
        log_event("warning", "billing.event_failed", event_type="customer.subscription.updated", extra={"error": "x" * 2000})

    record = [r for r in caplog.records if r.getMessage() == "billing.event_failed"][-1]
    assert record.levelname == "WARNING"
    assert record.event_type == "customer.subscription.updated"
    assert record.error.endswith("...<truncated>")
    assert len(record.error) < 600
