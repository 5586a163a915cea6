"""
Stripe billing provider implementation.

Implements BillingProvider with the Stripe API. Read-only: subscription
and checkout session retrieval for status reconciliation.
"""
import os
from typing import Any, Optional
from datetime import datetime, timezone
import stripe

from listingai.features.billing.provider import (
    BillingNotFoundError,
    BillingProviderError,
    CheckoutSnapshot,
    SubscriptionSnapshot,
)


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may be an id string or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id")


def _period_end(subscription: Any) -> Optional[datetime]:
    # Newer API versions report the period on subscription items instead
    ts = subscription.get("current_period_end")
    if not ts:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            ts = items[0].get("current_period_end")
    if not ts:
        return None
    return datetime.fromtimestamp(ts, timezone.utc)


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str] = None):
        """
        Initialize Stripe provider.

        Args:
            secret_key: Stripe secret key (defaults to STRIPE_SECRET_KEY env var)
        """
        self.secret_key = secret_key or os.getenv("STRIPE_SECRET_KEY")

        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key

    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except stripe.InvalidRequestError as e:
            if getattr(e, "http_status", None) == 404:
                raise BillingNotFoundError(f"Stripe subscription {subscription_id} not found")
            raise BillingProviderError(f"Stripe subscription retrieval failed: {e}")
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe subscription retrieval failed: {e}")

        return SubscriptionSnapshot(
            subscription_id=subscription.get("id") or subscription_id,
            customer_id=_id_of(subscription.get("customer")),
            status=subscription.get("status") or "none",
            current_period_end=_period_end(subscription),
        )

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSnapshot:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.InvalidRequestError as e:
            if getattr(e, "http_status", None) == 404:
                raise BillingNotFoundError(f"Stripe checkout session {session_id} not found")
            raise BillingProviderError(f"Stripe checkout session retrieval failed: {e}")
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe checkout session retrieval failed: {e}")

        return CheckoutSnapshot(
            session_id=session.get("id") or session_id,
            payment_status=session.get("payment_status") or "unpaid",
            subscription_id=_id_of(session.get("subscription")),
            customer_id=_id_of(session.get("customer")),
        )
