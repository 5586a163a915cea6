"""
listingai/features/entitlements/service.py

Entitlement state machine: free trial, free quota and paid subscription.

Handles:
- Lazy trial initialization (none -> trialing on first sight)
- The can-create-listing gate (pure read)
- Usage recording after a successful generation
- Reconciliation with the billing provider's authoritative status
- Slot reservation so concurrent requests cannot overrun the free quota

Store failures propagate as EntitlementStoreUnavailableError: the gate
fails closed and never substitutes a default record.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, Optional

from listingai.core.errors import EntitlementDeniedError
from listingai.features.entitlements.store import EntitlementStore
from listingai.models.entitlement import (
    EntitlementDecision,
    EntitlementRecord,
    SubscriptionStatus,
    coerce_status,
    parse_timestamp,
)


logger = logging.getLogger(__name__)

REASON_TRIAL_ENDED = "trial_ended"
REASON_QUOTA_EXHAUSTED = "quota_exhausted"
REASON_SUBSCRIPTION_INACTIVE = "subscription_inactive"


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def trial_ends_at(record: EntitlementRecord, trial_days: int) -> Optional[datetime]:
    if record.trial_start_date is None:
        return None
    return record.trial_start_date + timedelta(days=trial_days)


def evaluate_entitlement(
    record: EntitlementRecord,
    *,
    now: datetime,
    trial_days: int,
    free_quota: int,
    in_flight: int = 0,
) -> EntitlementDecision:
    """Decide whether `record` may start one more generation at `now`.

    `in_flight` counts reservations not yet recorded in listing_count; it
    only matters for the free-quota rule.
    """
    status = record.subscription_status

    if status == SubscriptionStatus.ACTIVE:
        return EntitlementDecision(allowed=True)

    if status == SubscriptionStatus.TRIALING and record.trial_start_date is not None:
        if now < trial_ends_at(record, trial_days):
            return EntitlementDecision(allowed=True)
        return EntitlementDecision(
            allowed=False,
            reason="Your free trial has ended. Please subscribe to continue.",
            reason_code=REASON_TRIAL_ENDED,
        )

    if record.listing_count + in_flight < free_quota:
        return EntitlementDecision(allowed=True)

    if status in (SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED):
        return EntitlementDecision(
            allowed=False,
            reason=(
                f"Your subscription is no longer active and you've used your {free_quota} "
                "free listings. Subscribe to continue creating listings."
            ),
            reason_code=REASON_SUBSCRIPTION_INACTIVE,
        )

    return EntitlementDecision(
        allowed=False,
        reason=f"You've used your {free_quota} free listings. Subscribe to continue creating listings.",
        reason_code=REASON_QUOTA_EXHAUSTED,
    )


class EntitlementService:
    """Entitlement operations over an EntitlementStore."""

    def __init__(self, store: EntitlementStore, *, trial_days: int = 3, free_quota: int = 2):
        self.store = store
        self.trial_days = trial_days
        self.free_quota = free_quota
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._in_flight: Dict[str, int] = {}

    async def get_record(self, user_id: str) -> EntitlementRecord:
        return await self.store.get(user_id)

    async def initialize_trial(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """Start the trial on first sight of a user. Returns True when a write happened."""
        async with self._lock_for(user_id):
            record = await self.store.get(user_id)
            if record.trial_start_date is not None:
                return False

            started = _normalize_now(now)
            await self.store.set(
                user_id,
                {
                    "subscription_status": SubscriptionStatus.TRIALING,
                    "trial_start_date": started,
                    "listing_count": 0,
                },
            )
        logger.info("[entitlement] trial started", extra={"user_id": user_id, "trial_days": self.trial_days})
        return True

    async def can_create_listing(self, user_id: str, now: Optional[datetime] = None) -> EntitlementDecision:
        record = await self.store.get(user_id)
        decision = evaluate_entitlement(
            record,
            now=_normalize_now(now),
            trial_days=self.trial_days,
            free_quota=self.free_quota,
        )
        self._log_decision(user_id, record, decision)
        return decision

    async def increment_listing_count(self, user_id: str) -> int:
        """Record one successful generation. Returns the new count."""
        async with self._lock_for(user_id):
            return await self._record_usage(user_id)

    async def _record_usage(self, user_id: str) -> int:
        # Caller holds the user's lock
        record = await self.store.get(user_id)
        new_count = record.listing_count + 1
        await self.store.set(user_id, {"listing_count": new_count})
        logger.info("[entitlement] usage recorded", extra={"user_id": user_id, "listing_count": new_count})
        return new_count

    async def reconcile_with_billing(
        self,
        user_id: str,
        external_status: Any,
        external_period_end: Optional[Any],
        *,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> EntitlementRecord:
        """Overwrite status and period end from the billing provider's authoritative read."""
        status = coerce_status(external_status)
        update: Dict[str, Any] = {
            "subscription_status": status,
            "subscription_end_date": parse_timestamp(external_period_end),
        }
        if customer_id:
            update["stripe_customer_id"] = customer_id
        if subscription_id:
            update["stripe_subscription_id"] = subscription_id

        await self.store.set(user_id, update)
        logger.info(
            "[entitlement] reconciled with billing",
            extra={"user_id": user_id, "external_status": str(external_status), "subscription_status": status.value},
        )
        return await self.store.get(user_id)

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def in_flight(self, user_id: str) -> int:
        return self._in_flight.get(user_id, 0)

    def _release(self, user_id: str) -> None:
        remaining = self._in_flight.get(user_id, 0) - 1
        if remaining > 0:
            self._in_flight[user_id] = remaining
        else:
            self._in_flight.pop(user_id, None)

    @asynccontextmanager
    async def listing_slot(self, user_id: str, now: Optional[datetime] = None) -> AsyncIterator[EntitlementDecision]:
        """Reserve one generation for `user_id`.

        Check and reservation happen under a per-user lock and count other
        in-flight reservations, so N concurrent requests at
        listing_count = FREE_QUOTA - 1 admit exactly one. On clean exit the
        usage is recorded under the same lock before the reservation is
        dropped; on exception the slot is released unrecorded.

        Raises:
            EntitlementDeniedError: gate refused
            EntitlementStoreUnavailableError: store read/write failed
        """
        async with self._lock_for(user_id):
            record = await self.store.get(user_id)
            decision = evaluate_entitlement(
                record,
                now=_normalize_now(now),
                trial_days=self.trial_days,
                free_quota=self.free_quota,
                in_flight=self.in_flight(user_id),
            )
            self._log_decision(user_id, record, decision)
            if not decision.allowed:
                raise EntitlementDeniedError(
                    decision.reason or "Subscription required",
                    code=decision.reason_code,
                )
            self._in_flight[user_id] = self.in_flight(user_id) + 1

        try:
            yield decision
        except BaseException:
            self._release(user_id)
            raise

        # The reservation is dropped only once the new count has landed
        async with self._lock_for(user_id):
            try:
                await self._record_usage(user_id)
            finally:
                self._release(user_id)

    def _log_decision(self, user_id: str, record: EntitlementRecord, decision: EntitlementDecision) -> None:
        extra = {
            "user_id": user_id,
            "subscription_status": record.subscription_status.value,
            "listing_count": record.listing_count,
            "in_flight": self.in_flight(user_id),
        }
        if decision.allowed:
            logger.info("[entitlement] ALLOWED", extra=extra)
        else:
            extra["reason_code"] = decision.reason_code
            logger.warning("[entitlement] DENIED", extra=extra)
