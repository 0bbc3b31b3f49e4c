"""Ledger storage and the period rollover rule."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from buildix.core.database import get_db_session, usage_periods
from buildix.core.errors import StorageUnavailableError
from buildix.core.metrics import usage_periods_created_total
from buildix.features.usage.ledger import (
    add_months,
    atomic_increment,
    compute_period_window,
    create_period,
    find_latest_period,
    resolve_current_period,
)
from buildix.models.usage import Feature


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def count_periods(user_id):
    with get_db_session() as session:
        return session.execute(
            select(func.count()).select_from(usage_periods).where(usage_periods.c.user_id == user_id)
        ).scalar()


def test_add_months_clamps_to_short_months():
    assert add_months(utc(2025, 1, 31), 1) == utc(2025, 2, 28)
    assert add_months(utc(2024, 1, 31), 1) == utc(2024, 2, 29)
    assert add_months(utc(2025, 1, 31), 2) == utc(2025, 3, 31)
    assert add_months(utc(2025, 11, 15), 3) == utc(2026, 2, 15)


def test_window_contains_now():
    start, end = compute_period_window(utc(2024, 6, 10, 8), utc(2025, 1, 15))
    assert start == utc(2025, 1, 10, 8)
    assert end == utc(2025, 2, 10, 8)


def test_window_before_anchor_day_uses_previous_month():
    start, end = compute_period_window(utc(2024, 6, 20), utc(2025, 1, 15))
    assert start == utc(2024, 12, 20)
    assert end == utc(2025, 1, 20)


def test_window_anchored_on_31st_does_not_drift():
    start, end = compute_period_window(utc(2025, 1, 31), utc(2025, 3, 1))
    assert start == utc(2025, 2, 28)
    assert end == utc(2025, 3, 31)


def test_future_anchor_starts_at_now():
    now = utc(2025, 1, 15)
    start, end = compute_period_window(utc(2025, 3, 1), now)
    assert start == now
    assert end == utc(2025, 2, 15)


def test_first_call_creates_zeroed_period(make_user, jan_2025):
    make_user("u1")
    period = resolve_current_period("u1", utc(2025, 1, 1), jan_2025)

    assert period.period_start == utc(2025, 1, 1)
    assert period.period_end == utc(2025, 2, 1)
    assert (period.prompts_used, period.images_used, period.figma_exports_used, period.html_exports_used) == (0, 0, 0, 0)
    assert period.contains(jan_2025)
    assert usage_periods_created_total.value() == 1


def test_current_period_is_reused(make_user, jan_2025):
    make_user("u1")
    first = resolve_current_period("u1", utc(2025, 1, 1), jan_2025)
    second = resolve_current_period("u1", utc(2025, 1, 1), utc(2025, 1, 31, 23, 59))
    assert first.id == second.id
    assert count_periods("u1") == 1


def test_rollover_at_period_end_creates_next_period(make_user, seed_period):
    make_user("u1")
    seed_period("u1", utc(2025, 1, 1), utc(2025, 2, 1), prompts_used=4, html_exports_used=2)

    period = resolve_current_period("u1", utc(2025, 1, 1), utc(2025, 2, 1))

    assert period.period_start == utc(2025, 2, 1)
    assert period.period_end == utc(2025, 3, 1)
    assert period.prompts_used == 0
    assert period.html_exports_used == 0
    assert count_periods("u1") == 2


def test_rollover_after_long_gap_lands_on_current_window(make_user, seed_period):
    make_user("u1")
    seed_period("u1", utc(2024, 3, 5), utc(2024, 4, 5), prompts_used=3)

    period = resolve_current_period("u1", utc(2024, 1, 5), utc(2025, 1, 15))

    assert period.period_start == utc(2025, 1, 5)
    assert period.period_end == utc(2025, 2, 5)


def test_new_window_never_starts_before_previous_end(make_user, seed_period):
    make_user("u1")
    # Previous row ran past the anchored boundary (e.g. anchor changed)
    seed_period("u1", utc(2024, 12, 20), utc(2025, 1, 20))

    period = resolve_current_period("u1", utc(2024, 6, 1), utc(2025, 1, 25))

    assert period.period_start == utc(2025, 1, 20)
    assert period.period_end == utc(2025, 2, 1)


def test_duplicate_create_returns_existing_row(make_user):
    make_user("u1")
    winner = create_period("u1", utc(2025, 1, 1), utc(2025, 2, 1))
    loser = create_period("u1", utc(2025, 1, 1), utc(2025, 2, 1))

    assert loser.id == winner.id
    assert count_periods("u1") == 1
    assert usage_periods_created_total.value() == 1


def test_atomic_increment_adds_in_place(make_user, jan_2025):
    make_user("u1")
    period = resolve_current_period("u1", utc(2025, 1, 1), jan_2025)

    atomic_increment(period.id, Feature.PROMPTS)
    atomic_increment(period.id, Feature.PROMPTS, 3)
    atomic_increment(period.id, Feature.FIGMA_EXPORTS)

    latest = find_latest_period("u1")
    assert latest.prompts_used == 4
    assert latest.figma_exports_used == 1
    assert latest.images_used == 0


def test_atomic_increment_on_missing_row_raises():
    with pytest.raises(StorageUnavailableError):
        atomic_increment(9999, Feature.PROMPTS)


def test_find_latest_period_none_for_new_user(make_user):
    make_user("u1")
    assert find_latest_period("u1") is None
