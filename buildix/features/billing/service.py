"""
Billing webhook orchestrator.

Coordinates:
- Webhook verification (delegated to the provider)
- Event idempotency (billing_events, one row per Stripe event id)
- Subscription store updates

All Stripe-specific code is in stripe_provider.py.
"""
import hashlib
import logging
from typing import Optional, Dict
from datetime import datetime, timezone
from dataclasses import replace
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from buildix.core.config import settings
from buildix.core.database import get_db_session, storage_guard, billing_events
from buildix.core.errors import BillingDisabledError
from buildix.core.logging import log_event
from buildix.core.metrics import billing_webhooks_total
from buildix.features.billing.provider import BillingProvider, BillingWebhookResult
from buildix.features.billing.stripe_provider import StripeProvider
from buildix.features.billing.subscriptions import find_subscription, upsert_subscription
from buildix.features.users.service import get_user, upsert_user
from buildix.models.billing import SubscriptionStatus
from buildix.models.plan import PlanType


logger = logging.getLogger("buildix")

_provider_override: Optional[BillingProvider] = None


def billing_enabled() -> bool:
    """Check if billing is enabled (Stripe keys configured)."""
    return bool(settings.STRIPE_SECRET_KEY and settings.STRIPE_WEBHOOK_SECRET)


def set_provider(provider: Optional[BillingProvider]) -> None:
    """Install a provider instance (tests); None restores Stripe."""
    global _provider_override
    _provider_override = provider


def get_provider() -> BillingProvider:
    if _provider_override is not None:
        return _provider_override
    if not billing_enabled():
        raise BillingDisabledError("Billing is not configured")
    return StripeProvider()


def apply_subscription_state(result: BillingWebhookResult) -> Optional[str]:
    """
    Write a customer.subscription.created/updated event to the store.

    The user is found by Stripe customer id or by the userId metadata.
    Returns the affected user id, or None when the event matches nobody.
    """
    existing = find_subscription(stripe_customer_id=result.customer_id, user_id=result.user_id)
    if existing is not None:
        user_id = existing.user_id
    elif result.user_id:
        user_id = result.user_id
        if get_user(user_id) is None:
            upsert_user(user_id)
    else:
        logger.warning(
            "billing.subscription_unmatched",
            extra={"event_id": result.event_id, "subscription_id": result.subscription_id},
        )
        return None

    upsert_subscription(
        user_id,
        stripe_customer_id=result.customer_id,
        stripe_subscription_id=result.subscription_id,
        stripe_price_id=result.price_id,
        plan=result.plan_id or PlanType.FREE,
        status=result.status or SubscriptionStatus.ACTIVE,
        current_period_start=result.current_period_start,
        current_period_end=result.current_period_end,
        cancel_at_period_end=result.cancel_at_period_end,
    )
    logger.info(
        "billing.subscription_updated",
        extra={
            "user_id": user_id,
            "plan": (result.plan_id or PlanType.FREE).value,
            "status": (result.status or SubscriptionStatus.ACTIVE).value,
        },
    )
    return user_id


def reset_subscription(result: BillingWebhookResult) -> Optional[str]:
    """customer.subscription.deleted: back to an ACTIVE FREE record."""
    existing = find_subscription(stripe_customer_id=result.customer_id)
    if existing is None:
        logger.warning("billing.deleted_unmatched", extra={"event_id": result.event_id})
        return None

    upsert_subscription(
        existing.user_id,
        stripe_subscription_id=None,
        stripe_price_id=None,
        plan=PlanType.FREE,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=None,
        current_period_end=None,
        cancel_at_period_end=False,
    )
    logger.info("billing.subscription_reset", extra={"user_id": existing.user_id})
    return existing.user_id


def _dispatch(result: BillingWebhookResult) -> None:
    if result.event_type in ("customer.subscription.created", "customer.subscription.updated"):
        apply_subscription_state(result)
    elif result.event_type == "customer.subscription.deleted":
        reset_subscription(result)
    elif result.event_type == "checkout.session.completed":
        # Plan changes arrive with the subscription events that follow
        logger.info(
            "billing.checkout_completed",
            extra={"user_id": result.user_id, "plan": result.plan_id.value if result.plan_id else None},
        )
    else:
        logger.info("billing.event_ignored", extra={"event_type": result.event_type})


def _record_event(result: BillingWebhookResult, payload_hash: str) -> bool:
    """
    Claim the event id. Returns False if it was already processed.

    An event that previously failed is claimed again so Stripe's retry
    can apply it.
    """
    with storage_guard("billing.record_event", event_id=result.event_id):
        try:
            with get_db_session() as session:
                session.execute(
                    insert(billing_events).values(
                        stripe_event_id=result.event_id,
                        event_type=result.event_type,
                        payload_hash=payload_hash,
                        processed=False,
                    )
                )
            return True
        except IntegrityError:
            with get_db_session() as session:
                row = session.execute(
                    select(billing_events.c.processed).where(
                        billing_events.c.stripe_event_id == result.event_id
                    )
                ).first()
            return row is not None and not row.processed


def _mark_event(event_id: str, error: Optional[str] = None) -> None:
    values = {"error": error}
    if error is None:
        values.update(processed=True, processed_at=datetime.now(timezone.utc))
    with storage_guard("billing.mark_event", event_id=event_id):
        with get_db_session() as session:
            session.execute(
                update(billing_events)
                .where(billing_events.c.stripe_event_id == event_id)
                .values(**values)
            )


def process_webhook_event(headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
    """
    Process billing webhook event (idempotent).

    1. Verify signature and parse
    2. Skip events already processed
    3. Apply state changes
    4. Mark as processed (or store the error and re-raise)

    Raises:
        BillingDisabledError: Stripe not configured
        BillingWebhookError: signature invalid or payload malformed
    """
    provider = get_provider()
    try:
        result = provider.handle_webhook(headers, body)
    except Exception:
        billing_webhooks_total.inc({"event_type": "unknown", "outcome": "rejected"})
        raise

    payload_hash = hashlib.sha256(body).hexdigest()
    if not _record_event(result, payload_hash):
        billing_webhooks_total.inc({"event_type": result.event_type, "outcome": "duplicate"})
        logger.info("billing.event_duplicate", extra={"event_id": result.event_id})
        return replace(result, duplicate=True)

    try:
        _dispatch(result)
    except Exception as e:
        _mark_event(result.event_id, error=str(e))
        billing_webhooks_total.inc({"event_type": result.event_type, "outcome": "error"})
        log_event(
            "error",
            "billing.event_failed",
            user_id=result.user_id,
            event_type=result.event_type,
            error_code="billing_event_failed",
            extra={"event_id": result.event_id, "error": e},
        )
        raise

    _mark_event(result.event_id)
    billing_webhooks_total.inc({"event_type": result.event_type, "outcome": "processed"})
    logger.info("billing.event_processed", extra={"event_id": result.event_id, "event_type": result.event_type})
    return result
