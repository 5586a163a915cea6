"""
Billing provider protocol.

Defines the read-only interface the entitlement reconciliation needs from
a billing provider (Stripe). Checkout creation and payment capture live in
the provider's hosted pages, not here.
"""
from typing import Protocol, Optional
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Authoritative subscription state as reported by the provider."""
    subscription_id: str
    customer_id: Optional[str]
    status: str  # provider status string: active, trialing, past_due, canceled, unpaid, ...
    current_period_end: Optional[datetime]


@dataclass(frozen=True)
class CheckoutSnapshot:
    """Completed (or not) checkout session."""
    session_id: str
    payment_status: str  # paid, unpaid, no_payment_required
    subscription_id: Optional[str]
    customer_id: Optional[str]


class BillingProvider(Protocol):
    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        """
        Fetch a subscription.

        Raises:
            BillingNotFoundError: Subscription does not exist (deleted)
            BillingProviderError: Any other provider failure
        """
        ...

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSnapshot:
        """
        Fetch a checkout session.

        Raises:
            BillingNotFoundError: Session does not exist
            BillingProviderError: Any other provider failure
        """
        ...


class BillingProviderError(Exception):
    """Base exception for billing provider errors."""
    pass


class BillingNotFoundError(BillingProviderError):
    """The requested billing object does not exist."""
    pass
