"""
OpenAI vision provider — gpt-4o / gpt-4o-mini as an alternative to Claude.

The image goes in as a base64 data URL with detail=high so label text
stays legible.
"""
from __future__ import annotations

import logging
import time

from openai import AsyncOpenAI

from providers.base import VisionProvider, encode_image

logger = logging.getLogger(__name__)


class OpenAIProvider(VisionProvider):

    def __init__(self, api_key: str, model: str = "gpt-4o", max_tokens: int = 1024):
        self.name = "openai"
        self.model_id = model
        self.max_tokens = max_tokens
        self._client = AsyncOpenAI(api_key=api_key)

    async def describe(self, image_bytes: bytes, media_type: str, prompt: str) -> str:
        t0 = time.monotonic()

        response = await self._client.chat.completions.create(
            model=self.model_id,
            max_tokens=self.max_tokens,
            temperature=0,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{media_type};base64,{encode_image(image_bytes)}",
                                "detail": "high",
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                },
            ],
        )

        latency_ms = int((time.monotonic() - t0) * 1000)
        usage = response.usage
        logger.debug(
            "[%s] %s in / %s out tokens, %dms",
            self.full_name,
            usage.prompt_tokens if usage else "?",
            usage.completion_tokens if usage else "?",
            latency_ms,
        )
        return response.choices[0].message.content or ""
