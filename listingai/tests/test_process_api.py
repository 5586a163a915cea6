"""
POST /process contract tests.

Status mapping: 401 unauthenticated, 403 entitlement denied (with
requiresSubscription), 400 invalid upload, 500 generation failure, 503
store unavailable, 200 with camelCase listing content.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from listingai.features.entitlements.service import EntitlementService
from listingai.features.entitlements.store import InMemoryEntitlementStore
from listingai.features.pipeline.config import GenerationMode, OcrMode, PipelineConfig
from listingai.features.pipeline.service import ContentPipeline
from listingai.features.providers.base import ProviderError
from listingai.tests.mocks import FailingStore, FakeGenerator, FakeOcr


JPEG = b"\xff\xd8\xff\xe0" + b"0" * 256
USER = {"X-User-Id": "user_1"}


def upload(n=1, media_type="image/jpeg", data=JPEG):
    return [("images", (f"photo{i}.jpg", data, media_type)) for i in range(n)]


def test_requires_authentication(client, memory_store):
    resp = client.post("/process", files=upload())
    assert resp.status_code == 401
    body = resp.json()
    assert body["code"] == "unauthorized"
    assert body["request_id"] == resp.headers.get("x-request-id")
    assert memory_store.writes == 0


def test_first_listing_starts_trial_and_counts_usage(client, memory_store):
    resp = client.post("/process", files=upload(2), headers=USER)

    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"mlsDescription", "hashtags", "socialCaption", "carouselText", "ocrText", "isRealOcr"}
    assert 1 <= len(body["hashtags"]) <= 5
    assert body["isRealOcr"] is False
    assert "features 2 thoughtfully designed spaces" in body["mlsDescription"]

    raw = memory_store.raw("user_1")
    assert raw["subscriptionStatus"] == "trialing"
    assert raw["trialStartDate"]
    assert raw["listingCount"] == 1


def test_quota_exhausted_returns_403_with_requires_subscription(app_state, mock_pipeline):
    store = InMemoryEntitlementStore({
        "user_1": {"subscriptionStatus": "none", "listingCount": 2, "trialStartDate": "2020-01-01T00:00:00Z"},
    })
    client = TestClient(app_state(entitlements=EntitlementService(store, free_quota=2), pipeline=mock_pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 403
    body = resp.json()
    assert body["requiresSubscription"] is True
    assert body["code"] == "quota_exhausted"
    assert isinstance(body["error"], str)
    assert "free listings" in body["error"]
    assert body["error"] == body["detail"]
    assert store.raw("user_1")["listingCount"] == 2


def test_expired_trial_returns_403(app_state, mock_pipeline):
    store = InMemoryEntitlementStore({
        "user_1": {"subscriptionStatus": "trialing", "listingCount": 0, "trialStartDate": "2020-01-01T00:00:00Z"},
    })
    client = TestClient(app_state(entitlements=EntitlementService(store), pipeline=mock_pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 403
    assert resp.json()["code"] == "trial_ended"


def test_active_subscriber_is_not_limited(app_state, mock_pipeline):
    store = InMemoryEntitlementStore({
        "user_1": {"subscriptionStatus": "active", "listingCount": 99, "trialStartDate": "2020-01-01T00:00:00Z"},
    })
    client = TestClient(app_state(entitlements=EntitlementService(store), pipeline=mock_pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 200
    assert store.raw("user_1")["listingCount"] == 100


def test_no_images_is_400_and_not_counted(client, memory_store):
    resp = client.post("/process", data={"note": "no files"}, headers=USER)
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"
    assert "No images provided" in resp.json()["detail"]
    assert memory_store.raw("user_1")["listingCount"] == 0


def test_too_many_images_is_400(client, memory_store):
    resp = client.post("/process", files=upload(6), headers=USER)
    assert resp.status_code == 400
    assert "Maximum 5 images allowed" in resp.json()["detail"]
    assert memory_store.raw("user_1")["listingCount"] == 0


def test_unsupported_media_type_is_400(client):
    resp = client.post("/process", files=upload(media_type="image/gif"), headers=USER)
    assert resp.status_code == 400
    assert "invalid file type" in resp.json()["detail"]


def test_images_field_must_be_a_file(client):
    resp = client.post("/process", data={"images": "not-a-file"}, headers=USER)
    assert resp.status_code == 400


def test_generation_failure_is_500_and_not_counted(app_state, entitlements, memory_store):
    pipeline = ContentPipeline(
        PipelineConfig(ocr_mode=OcrMode.REAL, generation_mode=GenerationMode.REAL),
        ocr=FakeOcr(),
        generator=FakeGenerator(synthesis_error=ProviderError("upstream 502")),
    )
    client = TestClient(app_state(entitlements=entitlements, pipeline=pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "synthesis_failed"
    assert isinstance(body["error"], str)
    assert "Traceback" not in body["detail"]
    assert memory_store.raw("user_1")["listingCount"] == 0
    assert entitlements.in_flight("user_1") == 0


def test_store_unavailable_is_503(app_state, mock_pipeline):
    client = TestClient(app_state(entitlements=EntitlementService(FailingStore()), pipeline=mock_pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 503
    assert resp.json()["code"] == "entitlement_store_unavailable"


def test_real_ocr_text_is_returned(app_state, entitlements):
    pipeline = ContentPipeline(
        PipelineConfig(ocr_mode=OcrMode.REAL, generation_mode=GenerationMode.MOCK, mock_delay_seconds=0),
        ocr=FakeOcr(texts={"photo0.jpg": "JUST LISTED"}),
    )
    client = TestClient(app_state(entitlements=entitlements, pipeline=pipeline))

    resp = client.post("/process", files=upload(), headers=USER)

    assert resp.status_code == 200
    assert resp.json()["ocrText"] == "JUST LISTED"
    assert resp.json()["isRealOcr"] is True


@pytest.mark.asyncio
async def test_concurrent_requests_cannot_overrun_quota(app_state):
    store = InMemoryEntitlementStore({
        "user_1": {"subscriptionStatus": "none", "listingCount": 1, "trialStartDate": "2020-01-01T00:00:00Z"},
    })
    pipeline = ContentPipeline(PipelineConfig(mock_delay_seconds=0.05))
    app = app_state(entitlements=EntitlementService(store, free_quota=2), pipeline=pipeline)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        responses = await asyncio.gather(*(
            ac.post("/process", files=upload(), headers=USER) for _ in range(4)
        ))

    codes = sorted(r.status_code for r in responses)
    assert codes == [200, 403, 403, 403]
    assert store.raw("user_1")["listingCount"] == 2
