"""
Health and diagnostics API.

Lightweight endpoints for operational monitoring without exposing secrets.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from listingai.api.deps import get_entitlement_service, get_pipeline
from listingai.core.config import settings
from listingai.features.billing.service import billing_enabled
from listingai.features.entitlements.service import EntitlementService
from listingai.features.entitlements.store import InMemoryEntitlementStore
from listingai.features.pipeline.service import ContentPipeline

logger = logging.getLogger("listingai")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(
    entitlements: EntitlementService = Depends(get_entitlement_service),
    pipeline: ContentPipeline = Depends(get_pipeline),
):
    """Readiness check: which modes are active and whether the store is durable."""
    store = "memory" if isinstance(entitlements.store, InMemoryEntitlementStore) else "clerk"
    body = {
        "status": "ok",
        "env": settings.ENV,
        "ocrMode": pipeline.config.ocr_mode.value,
        "generationMode": pipeline.config.generation_mode.value,
        "entitlementStore": store,
        "billingEnabled": billing_enabled(),
    }

    if settings.ENV == "production" and store == "memory":
        logger.warning("[readyz] in-memory entitlement store in production")
        body["status"] = "error"
        body["detail"] = "entitlement store is not durable"
        return JSONResponse(status_code=503, content=body)

    return body
