"""Entitlement record mapping and store adapter tests."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from listingai.core.config import Settings
from listingai.core.errors import EntitlementStoreUnavailableError
from listingai.features.entitlements.store import (
    ClerkEntitlementStore,
    InMemoryEntitlementStore,
    build_store,
)
from listingai.models.entitlement import (
    EntitlementRecord,
    SubscriptionStatus,
    parse_timestamp,
    to_metadata,
)


def test_record_defaults_for_unseen_user():
    rec = EntitlementRecord.from_metadata(None)
    assert rec.subscription_status == SubscriptionStatus.NONE
    assert rec.listing_count == 0
    assert rec.trial_start_date is None


def test_record_from_clerk_metadata():
    rec = EntitlementRecord.from_metadata({
        "subscriptionStatus": "trialing",
        "listingCount": "3",
        "trialStartDate": "2026-03-01T12:00:00.000Z",
        "stripeCustomerId": "cus_1",
        "unrelated": "ignored",
    })
    assert rec.subscription_status == SubscriptionStatus.TRIALING
    assert rec.listing_count == 3
    assert rec.trial_start_date == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert rec.stripe_customer_id == "cus_1"


def test_garbage_count_reads_as_zero():
    assert EntitlementRecord.from_metadata({"listingCount": "lots"}).listing_count == 0
    assert EntitlementRecord.from_metadata({"listingCount": -4}).listing_count == 0


def test_to_metadata_uses_camel_case_and_iso_z():
    out = to_metadata({
        "subscription_status": SubscriptionStatus.ACTIVE,
        "trial_start_date": datetime(2026, 3, 1, tzinfo=timezone.utc),
    })
    assert out == {"subscriptionStatus": "active", "trialStartDate": "2026-03-01T00:00:00Z"}


def test_to_metadata_rejects_unknown_fields():
    with pytest.raises(KeyError):
        to_metadata({"plan_id": "pro"})


def test_parse_timestamp_accepts_epoch_and_rejects_garbage():
    assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("2026-03-01T00:00:00").tzinfo is not None


@pytest.mark.asyncio
async def test_memory_store_merges_partial_updates():
    store = InMemoryEntitlementStore()
    await store.set("u1", {"listing_count": 1})
    await store.set("u1", {"subscription_status": SubscriptionStatus.TRIALING})
    assert store.raw("u1") == {"listingCount": 1, "subscriptionStatus": "trialing"}
    assert store.writes == 2


def _clerk_store(handler):
    return ClerkEntitlementStore(
        "sk_test_123",
        api_url="https://clerk.test/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_clerk_store_reads_public_metadata():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"id": "user_1", "public_metadata": {"listingCount": 2}})

    rec = await _clerk_store(handler).get("user_1")

    assert rec.listing_count == 2
    assert seen["url"] == "https://clerk.test/v1/users/user_1"
    assert seen["auth"] == "Bearer sk_test_123"


@pytest.mark.asyncio
async def test_clerk_store_patches_only_changed_keys():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    await _clerk_store(handler).set("user_1", {"listing_count": 3})

    assert seen["method"] == "PATCH"
    assert seen["url"] == "https://clerk.test/v1/users/user_1/metadata"
    assert seen["body"] == {"public_metadata": {"listingCount": 3}}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 404, 500, 503])
async def test_clerk_store_read_errors_fail_closed(status_code):
    store = _clerk_store(lambda request: httpx.Response(status_code, json={"errors": []}))
    with pytest.raises(EntitlementStoreUnavailableError):
        await store.get("user_1")


@pytest.mark.asyncio
async def test_clerk_store_transport_errors_fail_closed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = _clerk_store(handler)
    with pytest.raises(EntitlementStoreUnavailableError):
        await store.get("user_1")
    with pytest.raises(EntitlementStoreUnavailableError):
        await store.set("user_1", {"listing_count": 1})


def test_build_store_selection():
    assert isinstance(build_store(Settings(CLERK_SECRET_KEY=None, ENTITLEMENT_STORE=None)), InMemoryEntitlementStore)
    assert isinstance(build_store(Settings(CLERK_SECRET_KEY="sk", ENTITLEMENT_STORE=None)), ClerkEntitlementStore)
    assert isinstance(build_store(Settings(CLERK_SECRET_KEY="sk", ENTITLEMENT_STORE="memory")), InMemoryEntitlementStore)
