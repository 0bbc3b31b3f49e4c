"""HTTP surface for usage status and metered exports."""

from unittest.mock import patch

import jwt
from sqlalchemy.exc import OperationalError

from buildix.core.config import settings
from buildix.features.usage.bypass import configure_bypass
from buildix.features.usage.ledger import find_latest_period
from buildix.models.plan import PlanType


USER = {"X-User-Id": "u1", "X-User-Email": "u1@buildix.dev"}


def test_user_usage_dashboard(client):
    resp = client.get("/api/user/usage", headers=USER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["plan"] == "FREE"
    assert body["prompts"] == {"used": 0, "limit": 5, "remaining": 5, "isLimitReached": False, "percentUsed": 0}
    assert body["figmaExports"]["isLimitReached"] is True
    assert body["htmlExports"]["limit"] == 2
    assert "periodStart" in body and "periodEnd" in body


def test_feature_status(client):
    resp = client.get("/api/usage/images", headers=USER)
    assert resp.status_code == 200
    assert resp.json() == {
        "allowed": False,
        "usage": {"used": 0, "limit": 0, "remaining": 0, "isLimitReached": True, "percentUsed": 100},
        "plan": "FREE",
    }


def test_unknown_feature_in_path_is_rejected(client):
    resp = client.get("/api/usage/tokens", headers=USER)
    assert resp.status_code == 422


def test_html_export_until_limit_then_429(client):
    first = client.post("/api/exports/html", headers=USER)
    assert first.status_code == 200
    assert first.json() == {"success": True, "usage": {"used": 1, "limit": 2, "remaining": 1}, "usage_recorded": True}

    second = client.post("/api/exports/html", headers=USER)
    assert second.json()["usage"] == {"used": 2, "limit": 2, "remaining": 0}

    third = client.post("/api/exports/html", headers=USER)
    assert third.status_code == 429
    body = third.json()
    assert body["usageLimit"] is True
    assert body["plan"] == "FREE"
    assert body["usage"] == {"used": 2, "limit": 2, "remaining": 0, "isLimitReached": True, "percentUsed": 100}
    assert body["error"] == "Você atingiu o limite de 2 exports HTML do plano Free. Faça upgrade para continuar criando!"
    assert third.headers.get("x-request-id")

    assert find_latest_period("u1").html_exports_used == 2


def test_429_message_follows_accept_language(client):
    client.post("/api/exports/html", headers=USER)
    client.post("/api/exports/html", headers=USER)

    resp = client.post("/api/exports/html", headers={**USER, "Accept-Language": "en-US,en;q=0.9"})

    assert resp.status_code == 429
    assert resp.json()["error"] == "You reached the Free plan limit of 2 HTML exports. Upgrade to keep creating!"


def test_html_export_status(client):
    client.post("/api/exports/html", headers=USER)
    resp = client.get("/api/exports/html", headers=USER)
    assert resp.json()["usage"]["used"] == 1
    assert resp.json()["allowed"] is True


def test_paid_plan_exports_are_unlimited(client, set_subscription, make_user):
    make_user("u1", email="u1@buildix.dev")
    set_subscription("u1", PlanType.PRO)

    for _ in range(3):
        resp = client.post("/api/exports/html", headers=USER)
        assert resp.status_code == 200
    assert resp.json()["usage"] == {"used": 3, "limit": -1, "remaining": -1}


def test_bypass_export_is_not_recorded(client):
    configure_bypass(["u1@buildix.dev"])

    for _ in range(3):
        resp = client.post("/api/exports/html", headers=USER)
        assert resp.status_code == 200

    assert resp.json()["usage"] == {"used": 0, "limit": -1, "remaining": -1}
    assert find_latest_period("u1") is None


def test_export_still_succeeds_when_increment_fails(client):
    from buildix.core.errors import StorageUnavailableError

    with patch(
        "buildix.features.usage.service.increment_usage",
        side_effect=StorageUnavailableError("Storage unavailable during usage.atomic_increment"),
    ):
        resp = client.post("/api/exports/html", headers=USER)

    assert resp.status_code == 200
    assert resp.json()["usage_recorded"] is False
    assert resp.json()["usage"]["used"] == 0


def test_storage_outage_denies_with_503(client):
    with patch(
        "buildix.features.usage.ledger.get_db_session",
        side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
    ):
        resp = client.post("/api/exports/html", headers=USER)

    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "storage_unavailable"


def test_missing_identity_is_401(client):
    resp = client.get("/api/user/usage")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


def test_header_identity_disabled_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    resp = client.get("/api/user/usage", headers=USER)
    assert resp.status_code == 401


def test_jwt_identity(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", "test-secret-for-buildix-usage-service")
    token = jwt.encode({"sub": "jwt_user", "email": "JWT@Buildix.dev"}, "test-secret-for-buildix-usage-service", algorithm="HS256")

    resp = client.get("/api/usage/prompts", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200
    assert resp.json()["plan"] == "FREE"


def test_jwt_with_wrong_secret_is_401(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", "test-secret-for-buildix-usage-service")
    token = jwt.encode({"sub": "jwt_user"}, "other-secret-for-buildix-usage-service", algorithm="HS256")

    resp = client.get("/api/usage/prompts", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Invalid token"
