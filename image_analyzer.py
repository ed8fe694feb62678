"""
image_analyzer.py — per-image step of the identification pipeline.

  fetch image  →  detect media type  →  vision model  →  parse JSON  →  match

Canonical home of ExtractedAttributes and ImageAnalysisResult; matching.py
and batch.py import them from here.

analyze_image() never raises: a photo that cannot be fetched or described
comes back as a degraded result (imageUrl "", no matches) so one bad photo
never sinks the rest of the batch.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
import re
import string
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

import aiohttp

import config
from matching import CatalogProduct, MatchCandidate, match_products
from providers.base import VisionProvider, build_extraction_prompt

logger = logging.getLogger(__name__)

# Top match must be strictly above this to recommend assigning without review
AUTO_ASSIGN_THRESHOLD = 90

DEFAULT_MEDIA_TYPE = "image/jpeg"

# Checked in this order against the content-type header, then the URL suffix
_MEDIA_TYPES: list[tuple[str, tuple[str, ...], str]] = [
    # (content-type keyword, url extensions, media type)
    ("png",  (".png",),          "image/png"),
    ("webp", (".webp",),         "image/webp"),
    ("gif",  (".gif",),          "image/gif"),
    ("jpeg", (".jpg", ".jpeg"),  "image/jpeg"),
    ("jpg",  (),                 "image/jpeg"),
]

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_ID_ALPHABET = string.ascii_lowercase + string.digits


# ── Data types ────────────────────────────────────────────────────────────────

@dataclass
class VisualFeatures:
    colors: list[str] = field(default_factory=list)
    container_type: str = ""
    size: str = ""


@dataclass
class ExtractedAttributes:
    """The vision model's structured guess about one photo."""
    product_name: str = ""
    scent_name: str = ""
    product_type: str = ""
    visual_features: VisualFeatures = field(default_factory=VisualFeatures)

    @classmethod
    def empty(cls) -> "ExtractedAttributes":
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedAttributes":
        """
        Build from the model's camelCase JSON. The model is told the schema
        but does not always follow it, so missing keys become empty values and
        nulls / numbers are coerced to strings.
        """
        visual = data.get("visualFeatures")
        if not isinstance(visual, dict):
            visual = {}
        colors = visual.get("colors")
        if not isinstance(colors, list):
            colors = []
        return cls(
            product_name=_as_str(data.get("productName")),
            scent_name=_as_str(data.get("scentName")),
            product_type=_as_str(data.get("productType")),
            visual_features=VisualFeatures(
                colors=[_as_str(c) for c in colors if c is not None],
                container_type=_as_str(visual.get("containerType")),
                size=_as_str(visual.get("size")),
            ),
        )

    def to_dict(self) -> dict:
        return {
            "productName": self.product_name,
            "scentName":   self.scent_name,
            "productType": self.product_type,
            "visualFeatures": {
                "colors":        list(self.visual_features.colors),
                "containerType": self.visual_features.container_type,
                "size":          self.visual_features.size,
            },
        }


@dataclass
class ImageAnalysisResult:
    image_id: str
    image_url: str                  # "" when the photo could not be analysed
    extracted_info: ExtractedAttributes
    matches: list[MatchCandidate]   # ≤3, best first
    auto_assign_recommended: bool

    @property
    def is_degraded(self) -> bool:
        return not self.image_url

    def to_dict(self) -> dict:
        return {
            "imageId":               self.image_id,
            "imageUrl":              self.image_url,
            "extractedInfo":         self.extracted_info.to_dict(),
            "matches":               [m.to_dict() for m in self.matches],
            "autoAssignRecommended": self.auto_assign_recommended,
        }


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# ── Helpers ───────────────────────────────────────────────────────────────────

def new_image_id() -> str:
    """Epoch milliseconds + 9 random base36 chars, e.g. '1735689600000-k3j9x0a2b'."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


def detect_media_type(content_type: Optional[str], url: str) -> str:
    """
    Pick the media type sent to the vision model.
    Content-type header wins; otherwise guess from the URL path; default JPEG.
    """
    header = (content_type or "").lower()
    for keyword, _, media_type in _MEDIA_TYPES:
        if keyword in header:
            return media_type

    path = urlparse(url).path.lower()
    for _, extensions, media_type in _MEDIA_TYPES:
        if extensions and path.endswith(extensions):
            return media_type

    return DEFAULT_MEDIA_TYPE


def parse_extracted_info(raw: str) -> ExtractedAttributes:
    """
    Pull the first {...} block out of the model's reply and parse it.
    The model sometimes wraps JSON in prose or ``` fences; anything we
    cannot read falls back to ExtractedAttributes.empty().
    """
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        logger.warning("No JSON found in vision response: %s", (raw or "")[:300])
        return ExtractedAttributes.empty()
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.warning("Vision response JSON parse error: %s — %s", exc, raw[:300])
        return ExtractedAttributes.empty()
    if not isinstance(data, dict):
        return ExtractedAttributes.empty()
    return ExtractedAttributes.from_dict(data)


async def fetch_image(image_url: str) -> tuple[bytes, str]:
    """
    Download an image. Returns (bytes, content-type header).
    Raises RuntimeError on a non-2xx response or an oversized body.
    """
    async with aiohttp.ClientSession() as session:
        async with session.get(
            image_url,
            timeout=aiohttp.ClientTimeout(total=config.IMAGE_FETCH_TIMEOUT),
        ) as resp:
            if not 200 <= resp.status < 300:
                raise RuntimeError(f"Failed to fetch image: HTTP {resp.status} {resp.reason or ''}".strip())
            if resp.content_length and resp.content_length > config.MAX_IMAGE_BYTES:
                raise RuntimeError(f"Image too large: {resp.content_length} bytes")
            data = await resp.read()
            content_type = resp.headers.get("Content-Type", "")
    if len(data) > config.MAX_IMAGE_BYTES:
        raise RuntimeError(f"Image too large: {len(data)} bytes")
    return data, content_type


def _failed_result() -> ImageAnalysisResult:
    return ImageAnalysisResult(
        image_id=new_image_id(),
        image_url="",
        extracted_info=ExtractedAttributes.empty(),
        matches=[],
        auto_assign_recommended=False,
    )


# ── Core per-image step ───────────────────────────────────────────────────────

async def analyze_image(
    image_url: str,
    vision_client: VisionProvider,
    catalog: Sequence[CatalogProduct],
) -> ImageAnalysisResult:
    """Identify one photo and rank catalog matches for it."""
    try:
        image_bytes, content_type = await fetch_image(image_url)
        media_type = detect_media_type(content_type, image_url)

        raw = await asyncio.wait_for(
            vision_client.describe(
                image_bytes, media_type,
                build_extraction_prompt(config.STORE_NAME, config.PROMPT_HINTS),
            ),
            timeout=config.VISION_TIMEOUT,
        )

        extracted = parse_extracted_info(raw)
        matches = match_products(extracted, catalog)
    except Exception as exc:
        logger.error("Error analysing image %s: %r", image_url, exc)
        return _failed_result()

    auto_assign = bool(matches) and matches[0].confidence > AUTO_ASSIGN_THRESHOLD

    logger.info(
        "Analysed %s — name=%r matches=%d top=%s auto_assign=%s",
        image_url,
        extracted.product_name,
        len(matches),
        matches[0].confidence if matches else "-",
        auto_assign,
    )
    return ImageAnalysisResult(
        image_id=new_image_id(),
        image_url=image_url,
        extracted_info=extracted,
        matches=matches,
        auto_assign_recommended=auto_assign,
    )
