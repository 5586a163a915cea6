"""
Groq generation provider.

Implements GenerationProvider on the async Groq SDK. Calls with images go
to the vision model with image_url content parts (data URLs); text-only
calls go to the text model.
"""
from typing import Any, Dict, List, Optional, Sequence

import groq

from listingai.features.providers.base import ProviderError
from listingai.models.listing import ImageInput


class GroqGenerationProvider:
    """Groq implementation of GenerationProvider."""

    def __init__(
        self,
        api_key: str,
        *,
        vision_model: str,
        text_model: str,
        temperature: float = 0.7,
        client: Optional[Any] = None,
    ):
        if not api_key and client is None:
            raise ProviderError("GROQ_API_KEY not configured")
        self.vision_model = vision_model
        self.text_model = text_model
        self.temperature = temperature
        self.client = client or groq.AsyncGroq(api_key=api_key)

    def _user_content(self, prompt: str, images: Optional[Sequence[ImageInput]]):
        if not images:
            return prompt
        parts: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            parts.append({"type": "image_url", "image_url": {"url": image.to_data_url()}})
        return parts

    async def complete(
        self,
        system: str,
        prompt: str,
        images: Optional[Sequence[ImageInput]] = None,
        json_mode: bool = False,
        max_tokens: int = 1000,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.vision_model if images else self.text_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": self._user_content(prompt, images)},
            ],
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except groq.GroqError as e:
            raise ProviderError(f"Groq API error: {e}")

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
