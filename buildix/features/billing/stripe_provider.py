"""
Stripe billing provider implementation.

Implements the BillingProvider protocol using the Stripe SDK.
Handles webhook signature verification and event parsing; the plan is
derived from the subscription's price id via the plan catalog.
"""
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import stripe

from buildix.core.config import settings
from buildix.features.billing.provider import (
    BillingProviderError,
    BillingWebhookError,
    BillingWebhookResult,
)
from buildix.features.plans.service import get_plan_by_stripe_price_id
from buildix.models.billing import STRIPE_STATUS_MAP, SubscriptionStatus
from buildix.models.plan import PlanType


SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        """
        Args:
            secret_key: Stripe secret key (defaults to settings.STRIPE_SECRET_KEY)
            webhook_secret: Stripe webhook secret (defaults to settings.STRIPE_WEBHOOK_SECRET)
        """
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key

    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """Verify Stripe webhook signature and parse event."""
        if not self.webhook_secret:
            raise BillingWebhookError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            sig_header = headers.get("stripe-signature") or headers.get("Stripe-Signature")
            if not sig_header:
                raise BillingWebhookError("Missing stripe-signature header")

            event = stripe.Webhook.construct_event(body, sig_header, self.webhook_secret)
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            raise BillingWebhookError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise BillingWebhookError(f"Invalid signature: {e}")

        payload = event.to_dict()
        if "id" not in payload or "type" not in payload:
            raise BillingWebhookError("Invalid payload: missing event id or type")

        return self._parse_event(payload)

    def _parse_event(self, event: Dict[str, Any]) -> BillingWebhookResult:
        """Parse Stripe event into normalized BillingWebhookResult."""
        event_type = event["type"]
        data = (event.get("data") or {}).get("object") or {}
        metadata = data.get("metadata") or {}

        result = BillingWebhookResult(
            event_id=event["id"],
            event_type=event_type,
            user_id=metadata.get("userId"),
            customer_id=data.get("customer"),
            metadata=metadata,
        )

        if event_type in SUBSCRIPTION_EVENTS:
            items = (data.get("items") or {}).get("data") or []
            first_item = items[0] if items else {}
            result.subscription_id = data.get("id")
            result.price_id = (first_item.get("price") or {}).get("id")
            result.plan_id = self._map_price_to_plan(result.price_id, metadata.get("planId"))
            result.status = STRIPE_STATUS_MAP.get(data.get("status"), SubscriptionStatus.ACTIVE)
            # Newer API versions carry the period on the subscription item
            result.current_period_start = _from_timestamp(
                data.get("current_period_start") or first_item.get("current_period_start")
            )
            result.current_period_end = _from_timestamp(
                data.get("current_period_end") or first_item.get("current_period_end")
            )
            result.cancel_at_period_end = bool(data.get("cancel_at_period_end", False))

        elif event_type == "checkout.session.completed":
            result.subscription_id = data.get("subscription")
            result.plan_id = self._map_price_to_plan(None, metadata.get("planId"))

        return result

    def _map_price_to_plan(self, price_id: Optional[str], metadata_plan: Optional[str]) -> PlanType:
        """Price id first, then the planId metadata, then FREE."""
        plan = get_plan_by_stripe_price_id(price_id)
        if plan is not None:
            return plan.id
        if metadata_plan:
            try:
                return PlanType(metadata_plan)
            except ValueError:
                pass
        return PlanType.FREE
