"""Per-capability pipeline modes.

OCR and generation are switched independently: OCR runs for real whenever
Google Vision credentials exist, even while generation is mocked.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from listingai.core.config import Settings, settings


class OcrMode(str, Enum):
    REAL = "real"
    ABSENT = "absent"


class GenerationMode(str, Enum):
    REAL = "real"
    MOCK = "mock"


@dataclass(frozen=True)
class PipelineConfig:
    ocr_mode: OcrMode = OcrMode.ABSENT
    generation_mode: GenerationMode = GenerationMode.MOCK
    max_images: int = 5
    max_image_bytes: int = 10 * 1024 * 1024
    vision_timeout_seconds: float = 30.0
    synthesis_timeout_seconds: float = 45.0
    mock_delay_seconds: float = 1.5

    @classmethod
    def from_settings(cls, settings_obj: Optional[Settings] = None) -> "PipelineConfig":
        cfg = settings_obj or settings
        ocr_mode = OcrMode.REAL if cfg.GOOGLE_VISION_API_KEY else OcrMode.ABSENT
        if cfg.USE_MOCK_DATA or not cfg.GROQ_API_KEY:
            generation_mode = GenerationMode.MOCK
        else:
            generation_mode = GenerationMode.REAL
        return cls(
            ocr_mode=ocr_mode,
            generation_mode=generation_mode,
            max_images=cfg.MAX_IMAGES,
            max_image_bytes=cfg.MAX_IMAGE_BYTES,
            vision_timeout_seconds=cfg.VISION_TIMEOUT_SECONDS,
            synthesis_timeout_seconds=cfg.SYNTHESIS_TIMEOUT_SECONDS,
            mock_delay_seconds=cfg.MOCK_DELAY_SECONDS,
        )
