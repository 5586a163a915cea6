"""Listing generation API.

POST /process: multipart upload of 1-5 photos (parts named "images").

Order of operations:
authenticate -> start trial on first sight -> reserve an entitlement slot
-> validate uploads -> run pipeline -> record usage -> respond.
Usage is recorded only when the pipeline succeeds.
"""

import logging

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from listingai.core.auth import get_current_user_id
from listingai.core.errors import ValidationError
from listingai.api.deps import get_entitlement_service, get_pipeline
from listingai.features.entitlements.service import EntitlementService
from listingai.features.pipeline.service import ContentPipeline
from listingai.models.listing import GenerationRequest, GenerationResult, ImageInput

logger = logging.getLogger("listingai")

router = APIRouter(tags=["process"])


async def _read_images(request: Request) -> list[ImageInput]:
    form = await request.form()
    images = []
    for item in form.getlist("images"):
        if not isinstance(item, UploadFile):
            raise ValidationError("Each 'images' part must be a file upload")
        data = await item.read()
        images.append(
            ImageInput(
                data=data,
                media_type=(item.content_type or "application/octet-stream").lower(),
                filename=item.filename,
            )
        )
    return images


@router.post("/process", response_model=GenerationResult)
async def process_images(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    entitlements: EntitlementService = Depends(get_entitlement_service),
    pipeline: ContentPipeline = Depends(get_pipeline),
):
    await entitlements.initialize_trial(user_id)

    async with entitlements.listing_slot(user_id):
        images = await _read_images(request)
        result = await pipeline.run(GenerationRequest(images=images, user_id=user_id))

    logger.info("[process] listing generated", extra={"user_id": user_id, "image_count": len(images)})
    return result
