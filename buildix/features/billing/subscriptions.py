"""
Subscription store.

One row per user, written by the billing webhook and read by the usage
gate to resolve the effective plan. Only ACTIVE subscriptions grant their
plan; anything else (or no row) is FREE.
"""
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import select, insert, update, or_

from buildix.core.database import get_db_session, storage_guard, subscriptions
from buildix.features.plans.service import coerce_plan_id
from buildix.models.billing import Subscription, SubscriptionStatus
from buildix.models.plan import PlanType


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_status(value: Optional[str]) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(str(value).upper())
    except ValueError:
        # Unrecognised statuses never grant a paid plan
        return SubscriptionStatus.INCOMPLETE


def _row_to_subscription(row) -> Subscription:
    return Subscription(
        user_id=row.user_id,
        plan=coerce_plan_id(row.plan),
        status=_coerce_status(row.status),
        stripe_customer_id=row.stripe_customer_id,
        stripe_subscription_id=row.stripe_subscription_id,
        stripe_price_id=row.stripe_price_id,
        current_period_start=_utc(row.current_period_start),
        current_period_end=_utc(row.current_period_end),
        cancel_at_period_end=bool(row.cancel_at_period_end),
    )


def get_subscription(user_id: str) -> Optional[Subscription]:
    with storage_guard("subscriptions.get", user_id=user_id):
        with get_db_session() as session:
            row = session.execute(
                select(subscriptions).where(subscriptions.c.user_id == user_id)
            ).first()
    return _row_to_subscription(row) if row else None


def find_subscription(
    stripe_customer_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[Subscription]:
    """Look up a subscription by Stripe customer id or user id (either matches)."""
    clauses = []
    if stripe_customer_id:
        clauses.append(subscriptions.c.stripe_customer_id == stripe_customer_id)
    if user_id:
        clauses.append(subscriptions.c.user_id == user_id)
    if not clauses:
        return None

    with storage_guard("subscriptions.find", user_id=user_id):
        with get_db_session() as session:
            row = session.execute(
                select(subscriptions).where(or_(*clauses)).limit(1)
            ).first()
    return _row_to_subscription(row) if row else None


def resolve_plan(user_id: str) -> Tuple[PlanType, Optional[Subscription]]:
    """The user's effective plan together with the subscription it came from."""
    subscription = get_subscription(user_id)
    if subscription is None:
        return PlanType.FREE, None
    return subscription.effective_plan, subscription


def get_effective_plan(user_id: str) -> PlanType:
    return resolve_plan(user_id)[0]


def upsert_subscription(user_id: str, **fields) -> Subscription:
    """
    Create or update the user's subscription row.

    Enum values are stored by name; omitted fields keep their current value.
    """
    values = {}
    for key, value in fields.items():
        if key not in subscriptions.c:
            raise ValueError(f"Unknown subscription field: {key}")
        if isinstance(value, (PlanType, SubscriptionStatus)):
            value = value.value
        values[key] = value

    existing = get_subscription(user_id)
    with storage_guard("subscriptions.upsert", user_id=user_id):
        with get_db_session() as session:
            if existing is None:
                session.execute(insert(subscriptions).values(user_id=user_id, **values))
            elif values:
                session.execute(
                    update(subscriptions)
                    .where(subscriptions.c.user_id == user_id)
                    .values(updated_at=datetime.now(timezone.utc), **values)
                )
    return get_subscription(user_id)
