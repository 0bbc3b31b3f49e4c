# buildix/conftest.py
import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("ENV", "test")
os.environ.setdefault("USAGE_MESSAGE_LOCALE", "pt-BR")

from buildix.core.cache import set_config_cache
from buildix.core.database import create_all_tables, init_engine
from buildix.core.metrics import METRICS
from buildix.features.billing.service import set_provider
from buildix.features.usage.bypass import configure_bypass


@pytest.fixture(scope="function", autouse=True)
def sqlite_db():
    """
    Fresh in-memory SQLite database per test.

    init_engine() disposes the previous engine, so every test starts from
    empty tables.
    """
    engine = init_engine("sqlite://")
    create_all_tables()
    yield engine


@pytest.fixture(scope="function", autouse=True)
def reset_process_state():
    """Clear module-level state shared across tests."""
    METRICS.reset()
    configure_bypass([])
    set_config_cache(None)
    set_provider(None)
    yield
    configure_bypass([])
    set_provider(None)


@pytest.fixture
def jan_2025():
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_user():
    """Create a user mirror row; created_at anchors the usage period."""
    from buildix.features.users.service import upsert_user

    def _make(user_id="user_1", email=None, role=None, created_at=None):
        return upsert_user(
            user_id,
            email=email,
            role=role,
            created_at=created_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from buildix.main import app

    return TestClient(app)


@pytest.fixture
def seed_period():
    """Insert a ledger row with preset counters."""
    from sqlalchemy import insert
    from buildix.core.database import get_db_session, usage_periods

    def _seed(user_id, start, end, **counters):
        with get_db_session() as session:
            result = session.execute(
                insert(usage_periods).values(
                    user_id=user_id, period_start=start, period_end=end, **counters
                )
            )
            return result.inserted_primary_key[0]

    return _seed


@pytest.fixture
def override_limits(monkeypatch):
    """Swap a catalog plan's limits for the duration of a test."""
    from buildix.features.plans.service import PLANS

    def _override(plan_id, **limits):
        plan = PLANS[plan_id]
        patched = plan.model_copy(update={"limits": plan.limits.model_copy(update=limits)})
        monkeypatch.setitem(PLANS, plan_id, patched)
        return patched

    return _override


@pytest.fixture
def set_subscription():
    from buildix.features.billing.subscriptions import upsert_subscription

    def _set(user_id, plan, status="ACTIVE", **fields):
        return upsert_subscription(user_id, plan=plan, status=status, **fields)

    return _set
