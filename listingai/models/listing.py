"""
listingai/models/listing.py

Request/result models for one listing generation. Nothing here is persisted.
"""

import base64
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ALLOWED_MEDIA_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})


class ImageInput(BaseModel):
    """One uploaded photo: raw bytes plus declared media type."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    media_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.to_base64()}"


class GenerationRequest(BaseModel):
    """Ordered batch of 1-5 images. Bounds are enforced by the pipeline, not here."""
    model_config = ConfigDict(frozen=True)

    images: List[ImageInput]
    user_id: Optional[str] = None


class GenerationResult(BaseModel):
    """Marketing copy for one listing. Serialized over HTTP with camelCase keys."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    mls_description: str = Field(min_length=1)
    hashtags: List[str] = Field(min_length=1, max_length=5)
    social_caption: str = Field(min_length=1)
    carousel_text: str = Field(min_length=1)
    ocr_text: Optional[str] = None
    is_real_ocr: bool = False
