"""
seeding.py — load a JSON product file into the catalog.

Accepted file shapes:
  [ {product}, ... ]
  {"products": [ {product}, ... ]}

Each product needs a "title". Everything else is optional:
  handle        → defaults to a slug of the title
  id            → defaults to the handle
  product_type  → "product_type" or "productType"
  tags          → list of strings, or a comma-separated string (Shopify CSV style)
  description   → plain text or "body_html" (HTML tags are stripped)

Loading is an upsert, so re-running a seed file updates products in place
and keeps their catalog order.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

import database as db

logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_HTML_TAG = re.compile(r"<[^>]+>")


class CatalogFileError(ValueError):
    """The seed file is not a usable product list."""


def slugify(title: str) -> str:
    return _SLUG_STRIP.sub("-", title.lower()).strip("-")


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise CatalogFileError(f"tags must be a list or a comma-separated string, got {value!r}")
    return [str(t).strip() for t in value if t is not None and str(t).strip()]


def product_fields(raw: Any, position: int) -> dict:
    """Turn one entry of the seed file into upsert_product() keyword arguments."""
    if not isinstance(raw, dict):
        raise CatalogFileError(f"Product #{position} is not an object")
    title = _opt_str(raw.get("title"))
    if not title:
        raise CatalogFileError(f"Product #{position} has no title")

    handle = _opt_str(raw.get("handle")) or slugify(title)
    description = _opt_str(raw.get("description"))
    if description is None and raw.get("body_html"):
        description = _opt_str(_HTML_TAG.sub(" ", str(raw["body_html"])))
        if description:
            description = " ".join(description.split())

    return {
        "product_id": _opt_str(raw.get("id")) or handle,
        "title": title,
        "handle": handle,
        "product_type": _opt_str(raw.get("product_type", raw.get("productType"))),
        "tags": _tags(raw.get("tags")),
        "description": description,
    }


def read_catalog_file(path: str | Path) -> list[dict]:
    """Parse and validate the whole file before anything is written."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CatalogFileError(f"{path} is not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("products")
    if not isinstance(data, list):
        raise CatalogFileError(f"{path} must contain a list of products")
    return [product_fields(raw, i) for i, raw in enumerate(data, start=1)]


async def seed_catalog(path: str | Path) -> int:
    """Upsert every product in the file. Returns the number loaded."""
    products = read_catalog_file(path)
    await db.init_db()
    for fields in products:
        await db.upsert_product(**fields)
    logger.info("Seeded %d product(s) from %s", len(products), path)
    return len(products)
