"""
Billing reconciliation routes.

Minimal surface:
- GET  /api/billing/subscription-status: Re-check Stripe and return the record
- POST /api/billing/sync-subscription: Record the subscription from a checkout session

Checkout itself happens on Stripe's hosted page; these routes only pull
Stripe's authoritative state into the entitlement record.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from listingai.api.deps import get_entitlement_service
from listingai.core.auth import get_current_user_id
from listingai.features.billing.provider import BillingNotFoundError, BillingProviderError
from listingai.features.billing.service import sync_checkout_session, sync_subscription_status
from listingai.features.entitlements.service import EntitlementService


logger = logging.getLogger("listingai")

router = APIRouter(prefix="/api/billing", tags=["billing"])


class SyncSubscriptionRequest(BaseModel):
    """Body posted by the client after returning from checkout."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")


@router.get("/subscription-status")
async def get_subscription_status(
    user_id: str = Depends(get_current_user_id),
    entitlements: EntitlementService = Depends(get_entitlement_service),
) -> Dict[str, Any]:
    """
    Get the user's entitlement record, reconciled against Stripe.

    Returns:
        Record in metadata form (subscriptionStatus, listingCount,
        trialStartDate, subscriptionEndDate, stripeCustomerId,
        stripeSubscriptionId)

    Errors:
        401: Unauthenticated
        503: Entitlement store unavailable
    """
    record = await sync_subscription_status(entitlements, user_id)
    return record.to_metadata()


@router.post("/sync-subscription")
async def sync_subscription(
    body: SyncSubscriptionRequest,
    user_id: str = Depends(get_current_user_id),
    entitlements: EntitlementService = Depends(get_entitlement_service),
) -> Dict[str, Any]:
    """
    Sync subscription state after checkout completion.

    Returns:
        {"success": true, "subscriptionStatus": "active"} or
        {"success": false, "message": "Payment not completed"}

    Errors:
        400: sessionId missing
        404: Checkout session not found
        502: Stripe API error
        503: Billing disabled or entitlement store unavailable
    """
    if not body.session_id.strip():
        raise HTTPException(status_code=400, detail="Session ID is required")

    try:
        return await sync_checkout_session(entitlements, user_id, body.session_id.strip())
    except BillingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BillingProviderError as e:
        logger.error("[billing] sync failed", extra={"user_id": user_id, "error_message": str(e)})
        raise HTTPException(status_code=502, detail="Failed to sync subscription")
