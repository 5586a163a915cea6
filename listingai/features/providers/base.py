"""
AI provider protocols.

Defines the interface for the OCR and generation providers so the
pipeline can be driven by Google Vision / Groq in production and by
fakes in tests.
"""
from typing import Optional, Protocol, Sequence

from listingai.models.listing import ImageInput


class OcrProvider(Protocol):
    """Extracts printed text from a single image."""

    async def extract_text(self, image: ImageInput) -> str:
        """
        Run text detection on one image.

        Returns:
            Detected text, or "" when the image contains none

        Raises:
            ProviderError: transport or auth failure
        """
        ...


class GenerationProvider(Protocol):
    """Chat-completion style model, optionally multimodal."""

    async def complete(
        self,
        system: str,
        prompt: str,
        images: Optional[Sequence[ImageInput]] = None,
        json_mode: bool = False,
        max_tokens: int = 1000,
    ) -> str:
        """
        Run one completion.

        Args:
            system: System instruction
            prompt: User message text
            images: Images attached to the user message (vision model)
            json_mode: Ask the model for a single JSON object

        Returns:
            Raw message content ("" when the model returned nothing)

        Raises:
            ProviderError: transport, auth or API failure
        """
        ...


class ProviderError(Exception):
    """Base exception for AI provider errors."""
    pass


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within the stage deadline."""
    pass


class ProviderMalformedResponseError(ProviderError):
    """Provider answered with content that does not match the expected shape."""
    pass
