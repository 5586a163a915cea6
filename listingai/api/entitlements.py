"""
Entitlement read API.

GET /api/entitlements/me: current record plus the gate decision, for the
dashboard's "listings left" and "trial ends" display. Read-only: does not
start a trial or touch Stripe.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from listingai.api.deps import get_entitlement_service
from listingai.core.auth import get_current_user_id
from listingai.features.entitlements.service import (
    EntitlementService,
    evaluate_entitlement,
    trial_ends_at,
)
from listingai.models.entitlement import format_timestamp


router = APIRouter(prefix="/api/entitlements", tags=["entitlements"])


class EntitlementResponse(BaseModel):
    subscriptionStatus: str
    listingCount: int
    freeQuota: int
    trialDays: int
    trialStartDate: Optional[str] = None
    trialEndsAt: Optional[str] = None
    subscriptionEndDate: Optional[str] = None
    canCreateListing: bool
    reason: Optional[str] = None
    reasonCode: Optional[str] = None


@router.get("/me", response_model=EntitlementResponse)
async def get_my_entitlement(
    user_id: str = Depends(get_current_user_id),
    entitlements: EntitlementService = Depends(get_entitlement_service),
):
    record = await entitlements.get_record(user_id)
    decision = evaluate_entitlement(
        record,
        now=datetime.now(timezone.utc),
        trial_days=entitlements.trial_days,
        free_quota=entitlements.free_quota,
    )
    return EntitlementResponse(
        subscriptionStatus=record.subscription_status.value,
        listingCount=record.listing_count,
        freeQuota=entitlements.free_quota,
        trialDays=entitlements.trial_days,
        trialStartDate=format_timestamp(record.trial_start_date),
        trialEndsAt=format_timestamp(trial_ends_at(record, entitlements.trial_days)),
        subscriptionEndDate=format_timestamp(record.subscription_end_date),
        canCreateListing=decision.allowed,
        reason=decision.reason,
        reasonCode=decision.reason_code,
    )
