"""
Billing provider protocol.

Defines the interface the webhook pipeline needs from a billing provider
(Stripe today), so parsing can be swapped or faked without touching the
subscription logic.
"""
from typing import Protocol, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

from buildix.core.errors import AppError
from buildix.models.billing import SubscriptionStatus
from buildix.models.plan import PlanType


@dataclass
class BillingWebhookResult:
    """Normalized webhook event."""
    event_id: str
    event_type: str
    user_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    price_id: Optional[str] = None
    plan_id: Optional[PlanType] = None
    status: Optional[SubscriptionStatus] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    duplicate: bool = False


class BillingProvider(Protocol):
    """
    Protocol for billing providers.

    Checkout and portal sessions are created by the web app; this service
    only consumes the provider's webhooks.
    """

    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """
        Verify webhook signature and parse event.

        Args:
            headers: HTTP headers (must include signature header)
            body: Raw webhook body (for signature verification)

        Returns:
            Parsed webhook result

        Raises:
            BillingWebhookError: If signature invalid or parsing fails
        """
        ...


class BillingProviderError(AppError):
    """Base exception for billing provider errors."""
    code = "billing_provider_error"
    status_code = 502


class BillingWebhookError(BillingProviderError):
    """Rejected webhook (bad signature or payload)."""
    code = "billing_webhook_invalid"
    status_code = 400
