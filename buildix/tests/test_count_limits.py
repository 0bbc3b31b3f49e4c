"""Count-based limits (pages per project, uploaded images)."""

import pytest

from buildix.core.errors import InvalidFeatureError, UserNotFoundError
from buildix.features.usage.service import check_count_limit
from buildix.models.plan import PlanType
from buildix.models.usage import CountLimitKind


def test_free_pages_under_limit(make_user):
    make_user("u1")
    check = check_count_limit("u1", CountLimitKind.PAGES, 1)
    assert check.allowed is True
    assert check.usage.remaining == 1
    assert check.message is None


def test_free_pages_at_limit(make_user):
    make_user("u1")
    check = check_count_limit("u1", "pages", 2, locale="en")
    assert check.allowed is False
    assert check.plan == PlanType.FREE
    assert check.message == "You reached the Free plan limit of 2 pages per project. Upgrade to raise the limit."


def test_uploads_follow_plan(make_user, set_subscription):
    make_user("u1")
    set_subscription("u1", PlanType.MAX)
    check = check_count_limit("u1", CountLimitKind.IMAGE_UPLOADS, 499)
    assert check.allowed is True
    assert check.usage.limit == 500


def test_ultra_is_unlimited(make_user, set_subscription):
    make_user("u1")
    set_subscription("u1", PlanType.ULTRA)
    check = check_count_limit("u1", CountLimitKind.IMAGE_UPLOADS, 100_000)
    assert check.allowed is True
    assert check.usage.remaining == -1


def test_unknown_kind(make_user):
    make_user("u1")
    with pytest.raises(InvalidFeatureError):
        check_count_limit("u1", "projects", 1)


def test_unknown_user():
    with pytest.raises(UserNotFoundError):
        check_count_limit("ghost", CountLimitKind.PAGES, 0)
