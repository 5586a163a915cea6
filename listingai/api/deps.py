"""Shared FastAPI dependencies.

Services are built once per app on first use and kept on app.state, so
tests can swap them by assigning app.state.entitlements / app.state.pipeline.
"""

from fastapi import Request

from listingai.core.config import settings
from listingai.features.entitlements.service import EntitlementService
from listingai.features.entitlements.store import build_store
from listingai.features.pipeline.service import ContentPipeline, build_pipeline


def get_entitlement_service(request: Request) -> EntitlementService:
    service = getattr(request.app.state, "entitlements", None)
    if service is None:
        service = EntitlementService(
            build_store(settings),
            trial_days=settings.TRIAL_DAYS,
            free_quota=settings.FREE_QUOTA,
        )
        request.app.state.entitlements = service
    return service


def get_pipeline(request: Request) -> ContentPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        pipeline = build_pipeline(settings)
        request.app.state.pipeline = pipeline
    return pipeline
