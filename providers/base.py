"""
Shared prompt and base class for all vision providers.

A provider only has to turn (image bytes, media type, prompt) into the
model's raw text reply. Parsing that reply into ExtractedAttributes is the
caller's job (image_analyzer.parse_extracted_info), so every provider gets
the same fallback behaviour for free.
"""
from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from typing import Sequence

# ── Prompt (shared across all providers) ──────────────────────────────────────

EXTRACTION_PROMPT = """You are analyzing a product image for "{store_name}", a handmade candle and skincare business.

Please analyze this image and extract the following information in JSON format:

{{
  "productName": "The exact product name as it appears on the label or packaging",
  "scentName": "The scent name if visible (e.g., 'Eucalyptus Spearmint', 'Lavender', 'Calm Down Girl')",
  "productType": "The type of product (e.g., 'Candle', 'Body Butter', 'Body Oil', 'Hair Oil', 'Room Spray', 'Clothing', 'Accessory')",
  "visualFeatures": {{
    "colors": ["List of prominent colors in the product"],
    "containerType": "Type of container (e.g., 'jar', 'tin', 'bottle', 'spray bottle', 'tube')",
    "size": "Any size indicators visible (e.g., '8oz', '4oz', 'large', 'small')"
  }}
}}

Important:
- Be precise with the product name - read any text on labels carefully
- If you can't determine something, use an empty string or empty array
- Focus on text that appears on the product itself, not background elements
{hints}
Return ONLY the JSON object, no additional text."""


def build_extraction_prompt(store_name: str, hints: Sequence[str] = ()) -> str:
    """
    Fill the store name into the extraction prompt.
    `hints` are store-specific bullets (brand names, scent collections)
    appended to the "Important" list.
    """
    lines = "".join(f"- {h.strip()}\n" for h in hints if h and h.strip())
    return EXTRACTION_PROMPT.format(store_name=store_name, hints=lines)


def encode_image(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode()


# ── Abstract base ──────────────────────────────────────────────────────────────

class VisionProvider(ABC):
    """Base class all vision providers must implement."""

    name: str           # e.g. "anthropic"
    model_id: str       # e.g. "claude-sonnet-4-20250514"

    @abstractmethod
    async def describe(self, image_bytes: bytes, media_type: str, prompt: str) -> str:
        """Send one image + prompt to the model and return its text reply."""
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
