"""
Google Vision OCR provider.

Implements OcrProvider with the images:annotate REST endpoint and an API
key, using TEXT_DETECTION. The first text annotation carries the full
detected text block.
"""
from typing import Optional

import httpx

from listingai.features.providers.base import ProviderError
from listingai.models.listing import ImageInput


class GoogleVisionOcrProvider:
    """Google Vision implementation of OcrProvider."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str = "https://vision.googleapis.com/v1/images:annotate",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ProviderError("GOOGLE_VISION_API_KEY not configured")
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def _payload(self, image: ImageInput) -> dict:
        return {
            "requests": [
                {
                    "image": {"content": image.to_base64()},
                    "features": [{"type": "TEXT_DETECTION", "maxResults": 10}],
                }
            ]
        }

    async def extract_text(self, image: ImageInput) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    params={"key": self.api_key},
                    json=self._payload(image),
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Google Vision request failed: {e}")

        if response.status_code >= 300:
            raise ProviderError(f"Google Vision API error: {response.status_code} {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Google Vision returned invalid JSON: {e}")

        responses = data.get("responses") or [{}]
        first = responses[0] or {}
        if "error" in first:
            message = first["error"].get("message", "unknown error")
            raise ProviderError(f"Google Vision API error: {message}")

        annotations = first.get("textAnnotations") or []
        if not annotations:
            return ""
        return annotations[0].get("description") or ""
