"""
buildix/models/billing.py

Subscription state as seen by usage gating.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from buildix.models.plan import PlanType


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    PAST_DUE = "PAST_DUE"
    INCOMPLETE = "INCOMPLETE"
    TRIALING = "TRIALING"


# Stripe subscription.status -> local status
STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELED,
    "past_due": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "trialing": SubscriptionStatus.TRIALING,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.CANCELED,
}


class Subscription(BaseModel):
    """
    A user's subscription record (at most one per user).

    Only ACTIVE subscriptions grant their plan; every other status
    (and no record at all) gates as FREE.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: PlanType = PlanType.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    @property
    def effective_plan(self) -> PlanType:
        if self.status != SubscriptionStatus.ACTIVE:
            return PlanType.FREE
        return self.plan
