"""
batch.py — runs the per-image step over a batch of photo URLs.

At most `concurrency` images (default 3) are analysed at once, which keeps
outbound vision calls inside the provider's rate limits. Results come back
in input order, one per URL, whatever happens to individual images.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from image_analyzer import ImageAnalysisResult, analyze_image
from matching import CatalogProduct
from providers.base import VisionProvider

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10
DEFAULT_CONCURRENCY = 3


class BatchValidationError(ValueError):
    """The request itself is unusable; nothing was analysed."""


def validate_image_urls(image_urls: object) -> list[str]:
    """Check the caller-supplied URL list. Returns it as a list of str."""
    if not isinstance(image_urls, (list, tuple)) or not image_urls:
        raise BatchValidationError("No image URLs provided")
    if len(image_urls) > MAX_BATCH_SIZE:
        raise BatchValidationError(f"Maximum {MAX_BATCH_SIZE} images per batch")
    if not all(isinstance(url, str) and url.strip() for url in image_urls):
        raise BatchValidationError("Every image URL must be a non-empty string")
    return list(image_urls)


async def run_batch(
    image_urls: Sequence[str],
    vision_client: VisionProvider,
    catalog: Sequence[CatalogProduct],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[ImageAnalysisResult]:
    """
    Analyse every URL against the catalog.

    Raises BatchValidationError before any network call if the URL list is
    empty / too long or the catalog is empty. Per-image failures never
    raise; they show up as degraded results in their input slot.
    """
    urls = validate_image_urls(image_urls)
    if not catalog:
        raise BatchValidationError("No products in catalog")
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    semaphore = asyncio.Semaphore(concurrency)
    snapshot = tuple(catalog)

    async def _limited(url: str) -> ImageAnalysisResult:
        async with semaphore:
            return await analyze_image(url, vision_client, snapshot)

    logger.info(
        "Analysing %d image(s) against %d products (concurrency=%d)",
        len(urls), len(snapshot), concurrency,
    )
    # gather() preserves argument order regardless of completion order
    results = list(await asyncio.gather(*[_limited(url) for url in urls]))

    degraded = sum(1 for r in results if r.is_degraded)
    auto = sum(1 for r in results if r.auto_assign_recommended)
    logger.info(
        "Batch done — %d analysed, %d failed, %d auto-assignable",
        len(results), degraded, auto,
    )
    return results
