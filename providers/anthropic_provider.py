"""
Anthropic vision provider — the default for photo identification.

Claude reads small label text well, which is most of what identifies a
candle or skincare product from a photo.
"""
from __future__ import annotations

import logging
import time

import anthropic

from providers.base import VisionProvider, encode_image

logger = logging.getLogger(__name__)


class AnthropicProvider(VisionProvider):

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514", max_tokens: int = 1024):
        self.name = "anthropic"
        self.model_id = model
        self.max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def describe(self, image_bytes: bytes, media_type: str, prompt: str) -> str:
        t0 = time.monotonic()

        message = await self._client.messages.create(
            model=self.model_id,
            max_tokens=self.max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": encode_image(image_bytes),
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
        )

        latency_ms = int((time.monotonic() - t0) * 1000)
        logger.debug(
            "[%s] %d in / %d out tokens, %dms",
            self.full_name, message.usage.input_tokens, message.usage.output_tokens, latency_ms,
        )

        # First text block only; anything else (tool use, etc.) means no answer
        for block in message.content:
            if block.type == "text":
                return block.text
        return ""
