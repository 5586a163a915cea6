"""Listing content generation pipeline.

Turns 1-5 property photos into MLS copy in three stages:

- A. text extraction: one OCR call per image, concurrently; failures
  degrade to "" for that image
- B. visual analysis: one multimodal call raced against a timeout;
  timeout or error degrades to a placeholder
- C. content synthesis: one JSON call raced against a timeout; timeout,
  provider error or malformed output fails the whole request

A request moves Validating -> ExtractingText -> AnalyzingVisuals ->
Synthesizing -> Done, with Validating -> Rejected and
Synthesizing -> Failed as the only exits.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from listingai.core.config import Settings, settings
from listingai.core.errors import GenerationFailedError, ValidationError
from listingai.core.logging import latency_bucket_ms, log_event, stage_timer
from listingai.features.pipeline import prompts
from listingai.features.pipeline.config import GenerationMode, OcrMode, PipelineConfig
from listingai.features.providers.base import (
    GenerationProvider,
    OcrProvider,
    ProviderError,
    ProviderMalformedResponseError,
    ProviderTimeoutError,
)
from listingai.models.listing import ALLOWED_MEDIA_TYPES, GenerationRequest, GenerationResult, ImageInput


logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_HASHTAGS = 5
REQUIRED_TEXT_FIELDS = ("mlsDescription", "socialCaption", "carouselText")


class PipelineState(str, Enum):
    VALIDATING = "validating"
    EXTRACTING_TEXT = "extracting_text"
    ANALYZING_VISUALS = "analyzing_visuals"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class TextExtraction:
    extracted_text: str  # fed to synthesis
    display_text: str  # returned to the client as ocrText
    is_real_ocr: bool


def normalize_hashtags(raw: Any) -> List[str]:
    """Keep at most 5 tags, trimmed and '#'-prefixed; fall back to the default set."""
    if not isinstance(raw, list):
        raw = []
    tags = []
    for tag in raw[:MAX_HASHTAGS]:
        cleaned = str(tag).strip()
        if not cleaned.startswith("#"):
            cleaned = f"#{cleaned}"
        if len(cleaned) > 1:
            tags.append(cleaned)
    return tags or list(prompts.DEFAULT_HASHTAGS)


def parse_listing_content(raw: str) -> Dict[str, Any]:
    """Parse the synthesis response into the four listing fields.

    Raises:
        ProviderMalformedResponseError: empty, non-JSON, or missing a required field
    """
    if not raw or not raw.strip():
        raise ProviderMalformedResponseError("No content generated")
    try:
        data = json.loads(raw)
    except ValueError:
        raise ProviderMalformedResponseError("Invalid response format from AI service")
    if not isinstance(data, dict):
        raise ProviderMalformedResponseError("Invalid response format from AI service")

    for field in REQUIRED_TEXT_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ProviderMalformedResponseError("Incomplete response from AI service")

    return {
        "mls_description": data["mlsDescription"],
        "hashtags": normalize_hashtags(data.get("hashtags")),
        "social_caption": data["socialCaption"],
        "carousel_text": data["carouselText"],
    }


def _discard_result(task: "asyncio.Task") -> None:
    # Retrieve the outcome of an abandoned call so asyncio does not warn about it
    if not task.cancelled():
        task.exception()


async def race_timeout(awaitable: Awaitable[T], timeout: float, label: str) -> T:
    """Await `awaitable` for at most `timeout` seconds.

    The call runs as its own task behind asyncio.shield: losing the race
    stops waiting but leaves the call running; its result is dropped.

    Raises:
        ProviderTimeoutError: deadline passed first
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        task.add_done_callback(_discard_result)
        raise ProviderTimeoutError(f"{label} timeout")


class ContentPipeline:
    """Orchestrates the three stages for one request."""

    def __init__(
        self,
        config: PipelineConfig,
        *,
        ocr: Optional[OcrProvider] = None,
        generator: Optional[GenerationProvider] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if config.ocr_mode == OcrMode.REAL and ocr is None:
            raise ValueError("OCR mode is real but no OCR provider was given")
        if config.generation_mode == GenerationMode.REAL and generator is None:
            raise ValueError("Generation mode is real but no generation provider was given")
        self.config = config
        self.ocr = ocr
        self.generator = generator
        self._sleep = sleep

    def validate(self, request: GenerationRequest) -> None:
        images = request.images
        if not images:
            raise ValidationError("No images provided")
        if len(images) > self.config.max_images:
            raise ValidationError(f"Maximum {self.config.max_images} images allowed")
        for index, image in enumerate(images, start=1):
            if image.media_type.lower() not in ALLOWED_MEDIA_TYPES:
                raise ValidationError(
                    f"Image {index}: invalid file type. Please upload JPEG, PNG, or WebP images."
                )
            if image.size == 0:
                raise ValidationError(f"Image {index} is empty")
            if image.size > self.config.max_image_bytes:
                limit_mb = self.config.max_image_bytes / (1024 * 1024)
                raise ValidationError(f"Image {index}: file size too large. Maximum size is {limit_mb:g} MB.")

    async def extract_text(self, images: Sequence[ImageInput]) -> TextExtraction:
        if self.config.ocr_mode == OcrMode.ABSENT or self.ocr is None:
            return TextExtraction(
                extracted_text=prompts.PLACEHOLDER_OCR_TEXT,
                display_text=prompts.PLACEHOLDER_OCR_TEXT,
                is_real_ocr=False,
            )

        outcomes = await asyncio.gather(
            *(self.ocr.extract_text(image) for image in images),
            return_exceptions=True,
        )
        texts = []
        for index, outcome in enumerate(outcomes, start=1):
            if isinstance(outcome, BaseException):
                log_event(
                    "warning",
                    "[pipeline] ocr failed for image",
                    stage=PipelineState.EXTRACTING_TEXT.value,
                    error_code="ocr_failed",
                    extra={"image_index": index, "error_message": outcome},
                )
                texts.append("")
            else:
                texts.append(outcome or "")

        aggregate = "\n\n".join(text for text in texts if text.strip())
        if not aggregate:
            return TextExtraction(
                extracted_text=prompts.NO_TEXT_DETECTED,
                display_text=prompts.NO_TEXT_DETECTED_DISPLAY,
                is_real_ocr=False,
            )
        return TextExtraction(extracted_text=aggregate, display_text=aggregate, is_real_ocr=True)

    async def analyze_visuals(self, images: Sequence[ImageInput]) -> str:
        if self.config.generation_mode == GenerationMode.MOCK:
            return prompts.PLACEHOLDER_VISUAL_ANALYSIS

        try:
            content = await race_timeout(
                self.generator.complete(
                    prompts.VISION_SYSTEM_PROMPT,
                    prompts.VISION_USER_PROMPT,
                    images=images,
                    max_tokens=1000,
                ),
                self.config.vision_timeout_seconds,
                "Vision analysis",
            )
        except Exception as exc:
            # Visual analysis never fails the request; synthesis gets a degraded input
            log_event(
                "warning",
                "[pipeline] visual analysis degraded",
                stage=PipelineState.ANALYZING_VISUALS.value,
                error_code="vision_timeout" if isinstance(exc, ProviderTimeoutError) else "vision_failed",
                extra={"error_message": exc},
            )
            return prompts.VISUAL_ANALYSIS_UNAVAILABLE
        return content or prompts.VISUAL_ANALYSIS_UNAVAILABLE

    async def synthesize(self, extraction: TextExtraction, visual_analysis: str, image_count: int) -> Dict[str, Any]:
        if self.config.generation_mode == GenerationMode.MOCK:
            await self._sleep(self.config.mock_delay_seconds)
            return {
                "mls_description": prompts.mock_mls_description(image_count),
                "hashtags": list(prompts.MOCK_HASHTAGS),
                "social_caption": prompts.MOCK_SOCIAL_CAPTION,
                "carousel_text": prompts.MOCK_CAROUSEL_TEXT,
            }

        context = prompts.build_context(extraction.extracted_text, visual_analysis)
        try:
            raw = await race_timeout(
                self.generator.complete(
                    prompts.SYNTHESIS_SYSTEM_PROMPT,
                    prompts.SYNTHESIS_USER_PROMPT.format(context=context),
                    json_mode=True,
                    max_tokens=1500,
                ),
                self.config.synthesis_timeout_seconds,
                "Content generation",
            )
            return parse_listing_content(raw)
        except ProviderError as exc:
            if isinstance(exc, ProviderTimeoutError):
                code = "synthesis_timeout"
            elif isinstance(exc, ProviderMalformedResponseError):
                code = "synthesis_malformed"
            else:
                code = "synthesis_failed"
            log_event(
                "error",
                "[pipeline] synthesis failed",
                stage=PipelineState.FAILED.value,
                error_code=code,
                extra={"error_message": exc},
            )
            raise GenerationFailedError(str(exc) or "Failed to generate listing content", code=code)

    async def run(self, request: GenerationRequest) -> GenerationResult:
        started = time.perf_counter()
        user_id = request.user_id
        images = request.images

        with stage_timer(PipelineState.VALIDATING.value, user_id=user_id, extra={"image_count": len(images)}):
            try:
                self.validate(request)
            except ValidationError as exc:
                log_event(
                    "warning",
                    "[pipeline] rejected",
                    user_id=user_id,
                    stage=PipelineState.REJECTED.value,
                    error_code=exc.code,
                    extra={"error_message": exc.message},
                )
                raise

        with stage_timer(PipelineState.EXTRACTING_TEXT.value, user_id=user_id, extra={"ocr_mode": self.config.ocr_mode.value}):
            extraction = await self.extract_text(images)

        with stage_timer(
            PipelineState.ANALYZING_VISUALS.value,
            user_id=user_id,
            extra={"generation_mode": self.config.generation_mode.value},
        ):
            visual_analysis = await self.analyze_visuals(images)

        with stage_timer(PipelineState.SYNTHESIZING.value, user_id=user_id):
            content = await self.synthesize(extraction, visual_analysis, len(images))

        result = GenerationResult(
            **content,
            ocr_text=extraction.display_text,
            is_real_ocr=extraction.is_real_ocr,
        )
        elapsed_ms = (time.perf_counter() - started) * 1000
        log_event(
            "info",
            "[pipeline] done",
            user_id=user_id,
            stage=PipelineState.DONE.value,
            extra={"is_real_ocr": extraction.is_real_ocr, "latency_bucket": latency_bucket_ms(elapsed_ms)},
        )
        return result


def build_pipeline(settings_obj: Optional[Settings] = None) -> ContentPipeline:
    """Wire providers for the modes selected by configuration."""
    cfg = settings_obj or settings
    config = PipelineConfig.from_settings(cfg)

    ocr = None
    if config.ocr_mode == OcrMode.REAL:
        from listingai.features.providers.google_vision import GoogleVisionOcrProvider
        ocr = GoogleVisionOcrProvider(cfg.GOOGLE_VISION_API_KEY, url=cfg.GOOGLE_VISION_URL, timeout=cfg.OCR_TIMEOUT_SECONDS)

    generator = None
    if config.generation_mode == GenerationMode.REAL:
        from listingai.features.providers.groq_provider import GroqGenerationProvider
        generator = GroqGenerationProvider(
            cfg.GROQ_API_KEY,
            vision_model=cfg.GROQ_VISION_MODEL,
            text_model=cfg.GROQ_TEXT_MODEL,
        )

    logger.info(
        "[pipeline] configured",
        extra={"ocr_mode": config.ocr_mode.value, "generation_mode": config.generation_mode.value},
    )
    return ContentPipeline(config, ocr=ocr, generator=generator)
