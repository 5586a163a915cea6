"""
Billing reconciliation service.

Keeps the entitlement record convergent with Stripe without webhooks:
- after checkout, the client posts the session id and we record the
  subscription it created
- status reads re-check the stored subscription and reconcile on drift

All Stripe-specific code is in stripe_provider.py.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from listingai.core.config import settings
from listingai.core.errors import BillingUnavailableError
from listingai.features.billing.provider import (
    BillingNotFoundError,
    BillingProvider,
    BillingProviderError,
)
from listingai.features.billing.stripe_provider import StripeProvider
from listingai.features.entitlements.service import EntitlementService
from listingai.models.entitlement import EntitlementRecord, SubscriptionStatus, coerce_status


logger = logging.getLogger(__name__)


def billing_enabled() -> bool:
    """Check if billing is enabled (Stripe configured)."""
    return bool(settings.STRIPE_SECRET_KEY)


def get_provider() -> Optional[BillingProvider]:
    """Get billing provider if billing is enabled."""
    if not billing_enabled():
        return None
    try:
        return StripeProvider(settings.STRIPE_SECRET_KEY)
    except BillingProviderError:
        return None


def _require_provider(provider: Optional[BillingProvider]) -> BillingProvider:
    provider = provider or get_provider()
    if provider is None:
        raise BillingUnavailableError("Stripe is not configured. Set STRIPE_SECRET_KEY environment variable.")
    return provider


async def sync_subscription_status(
    entitlements: EntitlementService,
    user_id: str,
    provider: Optional[BillingProvider] = None,
) -> EntitlementRecord:
    """
    Re-read the user's Stripe subscription and reconcile the local record.

    - status drift: overwrite status and period end
    - subscription deleted while locally active: mark canceled
    - any other provider failure: keep the local record as is

    Returns:
        The (possibly updated) entitlement record
    """
    record = await entitlements.get_record(user_id)
    if not record.stripe_subscription_id:
        return record

    provider = provider or get_provider()
    if provider is None:
        return record

    try:
        snapshot = await asyncio.to_thread(provider.retrieve_subscription, record.stripe_subscription_id)
    except BillingNotFoundError:
        if record.subscription_status == SubscriptionStatus.ACTIVE:
            logger.warning(
                "[billing] subscription missing at provider, marking canceled",
                extra={"user_id": user_id, "subscription_id": record.stripe_subscription_id},
            )
            return await entitlements.reconcile_with_billing(
                user_id, SubscriptionStatus.CANCELED, record.subscription_end_date
            )
        return record
    except BillingProviderError as e:
        logger.warning("[billing] subscription read failed", extra={"user_id": user_id, "error_message": str(e)})
        return record

    if coerce_status(snapshot.status) != record.subscription_status:
        return await entitlements.reconcile_with_billing(user_id, snapshot.status, snapshot.current_period_end)
    return record


async def sync_checkout_session(
    entitlements: EntitlementService,
    user_id: str,
    session_id: str,
    provider: Optional[BillingProvider] = None,
) -> Dict[str, Any]:
    """
    Record the subscription created by a completed checkout session.

    Returns:
        {"success": True, "subscriptionStatus": ...} when paid,
        {"success": False, "message": "Payment not completed"} otherwise

    Raises:
        BillingUnavailableError: Stripe not configured
        BillingProviderError: Stripe lookup failed
    """
    provider = _require_provider(provider)
    session = await asyncio.to_thread(provider.retrieve_checkout_session, session_id)

    if session.payment_status != "paid" or not session.subscription_id:
        return {"success": False, "message": "Payment not completed"}

    subscription = await asyncio.to_thread(provider.retrieve_subscription, session.subscription_id)
    record = await entitlements.reconcile_with_billing(
        user_id,
        subscription.status,
        subscription.current_period_end,
        customer_id=subscription.customer_id or session.customer_id,
        subscription_id=subscription.subscription_id,
    )
    return {"success": True, "subscriptionStatus": record.subscription_status.value}
