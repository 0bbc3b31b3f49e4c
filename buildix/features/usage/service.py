"""
buildix/features/usage/service.py

Usage gating and metering.

Handles:
- Gate: can_use_feature() before a metered action
- Incrementer: increment_usage() after the action succeeded
- Dashboard view (get_user_usage_info) and count-based limits

Request flow:
    check = can_use_feature(user_id, feature)
    if not check.allowed: -> 429
    perform action
    increment_usage(user_id, feature)

The gap between check and increment is not locked: two requests at
used = limit - 1 can both pass and both land (used = limit + 1).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union

from buildix.core.errors import (
    InvalidFeatureError,
    StorageUnavailableError,
    UsageLimitError,
    UserNotFoundError,
)
from buildix.core.metrics import usage_gate_decisions_total, usage_increments_total
from buildix.features.billing.subscriptions import get_effective_plan, resolve_plan
from buildix.features.plans.service import (
    get_count_limit,
    get_feature_limit,
    get_plan_limits,
)
from buildix.features.usage.bypass import is_bypassed
from buildix.features.usage.evaluator import evaluate
from buildix.features.usage.ledger import (
    FEATURE_COLUMNS,
    atomic_increment,
    resolve_current_period,
)
from buildix.features.usage.messages import get_count_limit_message, get_usage_limit_message
from buildix.features.users.service import get_user
from buildix.models.billing import Subscription
from buildix.models.plan import UNLIMITED
from buildix.models.usage import (
    CountLimitCheck,
    CountLimitKind,
    Feature,
    FeatureCheck,
    UsagePeriod,
    UserUsageInfo,
)
from buildix.models.user import User


logger = logging.getLogger("buildix")


def parse_feature(feature: Union[Feature, str]) -> Feature:
    """Resolve a feature key. Unknown keys are a programming error, never defaulted."""
    if isinstance(feature, Feature):
        return feature
    try:
        return Feature(feature)
    except ValueError:
        raise InvalidFeatureError(f"Unknown usage feature: {feature!r}")


def parse_count_kind(kind: Union[CountLimitKind, str]) -> CountLimitKind:
    if isinstance(kind, CountLimitKind):
        return kind
    try:
        return CountLimitKind(kind)
    except ValueError:
        raise InvalidFeatureError(f"Unknown count limit: {kind!r}")


def _require_user(user_id: str) -> User:
    user = get_user(user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def _period_anchor(user: User, subscription: Optional[Subscription]) -> datetime:
    if subscription is not None and subscription.current_period_start is not None:
        return subscription.current_period_start
    return user.created_at


def _current_period(
    user: User,
    subscription: Optional[Subscription],
    now: Optional[datetime],
) -> UsagePeriod:
    return resolve_current_period(user.user_id, _period_anchor(user, subscription), now)


def _counter(period: UsagePeriod, feature: Feature) -> int:
    return getattr(period, FEATURE_COLUMNS[feature])


def can_use_feature(
    user_id: str,
    feature: Union[Feature, str],
    *,
    now: Optional[datetime] = None,
) -> FeatureCheck:
    """
    Decide whether the user may perform one more metered action.

    Uses the user's current effective plan; only lazy period creation
    writes to storage.

    Raises:
        InvalidFeatureError: unknown feature key
        UserNotFoundError: unknown user
        StorageUnavailableError: ledger unreachable (callers must deny)
    """
    feature = parse_feature(feature)
    user = _require_user(user_id)
    plan_id, subscription = resolve_plan(user_id)

    if is_bypassed(user.user_id, user.email):
        usage_gate_decisions_total.inc({"feature": feature.value, "plan": plan_id.value, "decision": "bypass"})
        logger.info(
            "usage.gate_bypass",
            extra={"user_id": user_id, "feature": feature.value, "plan": plan_id.value},
        )
        return FeatureCheck(allowed=True, usage=evaluate(0, UNLIMITED), plan=plan_id, bypassed=True)

    period = _current_period(user, subscription, now)
    limit = get_feature_limit(get_plan_limits(plan_id), feature)
    status = evaluate(_counter(period, feature), limit)
    allowed = not status.is_limit_reached

    decision = "allow" if allowed else "deny"
    usage_gate_decisions_total.inc({"feature": feature.value, "plan": plan_id.value, "decision": decision})
    logger.info(
        "usage.gate_decision",
        extra={
            "user_id": user_id,
            "feature": feature.value,
            "plan": plan_id.value,
            "decision": decision,
            "used": status.used,
            "limit": status.limit,
        },
    )
    return FeatureCheck(allowed=allowed, usage=status, plan=plan_id)


def increment_usage(
    user_id: str,
    feature: Union[Feature, str],
    amount: int = 1,
    *,
    now: Optional[datetime] = None,
) -> None:
    """
    Record amount units of a metered action that already succeeded.

    Resolves the period with the same rule as the gate, then issues one
    atomic column increment. Bypass identities are not metered.
    """
    feature = parse_feature(feature)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise ValueError(f"amount must be a positive integer, got {amount!r}")

    user = _require_user(user_id)
    if is_bypassed(user.user_id, user.email):
        logger.info("usage.increment_bypass", extra={"user_id": user_id, "feature": feature.value})
        return

    _, subscription = resolve_plan(user_id)
    period = _current_period(user, subscription, now)
    atomic_increment(period.id, feature, amount)

    usage_increments_total.inc({"feature": feature.value}, amount)
    logger.info(
        "usage.incremented",
        extra={"user_id": user_id, "feature": feature.value, "amount": amount, "period_id": period.id},
    )


def get_user_usage_info(user_id: str, *, now: Optional[datetime] = None) -> UserUsageInfo:
    """Dashboard view: plan, all four feature statuses and the current window."""
    user = _require_user(user_id)
    plan_id, subscription = resolve_plan(user_id)
    period = _current_period(user, subscription, now)
    limits = get_plan_limits(plan_id)

    def status_for(feature: Feature):
        return evaluate(_counter(period, feature), get_feature_limit(limits, feature))

    return UserUsageInfo(
        plan=plan_id,
        prompts=status_for(Feature.PROMPTS),
        images=status_for(Feature.IMAGES),
        figma_exports=status_for(Feature.FIGMA_EXPORTS),
        html_exports=status_for(Feature.HTML_EXPORTS),
        period_start=period.period_start,
        period_end=period.period_end,
    )


def check_count_limit(
    user_id: str,
    kind: Union[CountLimitKind, str],
    current_count: int,
    *,
    locale: Optional[str] = None,
) -> CountLimitCheck:
    """
    Check a running total (pages in a project, uploaded images) against
    the plan's count limit. current_count is supplied by the caller.
    """
    kind = parse_count_kind(kind)
    _require_user(user_id)
    plan_id = get_effective_plan(user_id)
    status = evaluate(current_count, get_count_limit(get_plan_limits(plan_id), kind))
    allowed = not status.is_limit_reached
    return CountLimitCheck(
        allowed=allowed,
        usage=status,
        plan=plan_id,
        message=None if allowed else get_count_limit_message(kind, plan_id, locale),
    )


def can_access_pro(user_id: str) -> bool:
    _require_user(user_id)
    plan_id = get_effective_plan(user_id)
    return get_plan_limits(plan_id).can_access_pro


@dataclass
class MeteredOutcome:
    value: Any
    check: FeatureCheck
    usage_recorded: bool


def run_metered(
    user_id: str,
    feature: Union[Feature, str],
    action: Callable[[], Any],
    *,
    locale: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MeteredOutcome:
    """
    Gate -> action -> increment, in that order.

    - Denied: raises UsageLimitError, action is not called
    - action raises: the exception propagates, nothing is recorded
    - increment fails after a successful action: logged, usage_recorded False
    - bypass identities: action runs, nothing is recorded
    """
    feature = parse_feature(feature)
    check = can_use_feature(user_id, feature, now=now)
    if not check.allowed:
        raise UsageLimitError(
            get_usage_limit_message(feature, check.plan, locale),
            usage=check.usage.model_dump(by_alias=True),
            plan=check.plan.value,
        )

    value = action()
    if check.bypassed:
        return MeteredOutcome(value=value, check=check, usage_recorded=False)

    try:
        increment_usage(user_id, feature, now=now)
    except StorageUnavailableError:
        logger.error(
            "usage.increment_failed",
            exc_info=True,
            extra={"user_id": user_id, "feature": feature.value},
        )
        return MeteredOutcome(value=value, check=check, usage_recorded=False)

    return MeteredOutcome(value=value, check=check, usage_recorded=True)
