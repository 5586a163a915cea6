"""
listingai/models/entitlement.py

Per-user entitlement record, as stored in Clerk public metadata.

The record is owned by the external store; the service reads it fresh on
every request and never caches it across requests.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionStatus(str, Enum):
    NONE = "none"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# Stripe subscription statuses outside our enum
STRIPE_STATUS_MAP = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.NONE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "paused": SubscriptionStatus.CANCELED,
}


def coerce_status(value: Any) -> SubscriptionStatus:
    """Map a stored or Stripe status string onto SubscriptionStatus (unknown -> none)."""
    if isinstance(value, SubscriptionStatus):
        return value
    text = str(value or "").strip().lower()
    if text in STRIPE_STATUS_MAP:
        return STRIPE_STATUS_MAP[text]
    try:
        return SubscriptionStatus(text)
    except ValueError:
        return SubscriptionStatus.NONE


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (with or without 'Z') and epoch seconds into UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Record field name -> Clerk public_metadata key
METADATA_KEYS = {
    "subscription_status": "subscriptionStatus",
    "listing_count": "listingCount",
    "trial_start_date": "trialStartDate",
    "subscription_end_date": "subscriptionEndDate",
    "stripe_customer_id": "stripeCustomerId",
    "stripe_subscription_id": "stripeSubscriptionId",
}


class EntitlementRecord(BaseModel):
    """
    Entitlement state for one user.

    Invariants:
    - listing_count only increases
    - trial_start_date is set at most once
    - subscription_status changes only from billing reconciliation or the
      initial none -> trialing transition
    """
    model_config = ConfigDict(frozen=True)

    subscription_status: SubscriptionStatus = SubscriptionStatus.NONE
    listing_count: int = Field(default=0, ge=0)
    trial_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

    @field_validator("subscription_status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> SubscriptionStatus:
        return coerce_status(value)

    @field_validator("listing_count", mode="before")
    @classmethod
    def _count(cls, value: Any) -> int:
        try:
            return max(0, int(value or 0))
        except (TypeError, ValueError):
            return 0

    @field_validator("trial_start_date", "subscription_end_date", mode="before")
    @classmethod
    def _timestamps(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]]) -> "EntitlementRecord":
        """Build a record from Clerk public_metadata (camelCase keys)."""
        metadata = metadata or {}
        values = {
            field: metadata.get(key)
            for field, key in METADATA_KEYS.items()
            if metadata.get(key) is not None
        }
        return cls(**values)

    def to_metadata(self) -> Dict[str, Any]:
        return to_metadata(self.model_dump())


def to_metadata(partial: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial record update into Clerk public_metadata keys."""
    out: Dict[str, Any] = {}
    for field, value in partial.items():
        key = METADATA_KEYS.get(field)
        if key is None:
            raise KeyError(f"Unknown entitlement field: {field}")
        if isinstance(value, SubscriptionStatus):
            value = value.value
        elif isinstance(value, datetime):
            value = format_timestamp(value)
        out[key] = value
    return out


class EntitlementDecision(BaseModel):
    """Outcome of the entitlement gate."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None
