"""
matching.py — scores one photo's extracted attributes against the catalog.

Scoring rules (all additive, clamped to 0–100):

  Name          exact +50 │ ≥80% similar +35 │ ≥60% +20 │ partial +15
  Scent         in a tag +20, in the title +15 (both may apply)
  Product type  exact +15 │ ≥70% similar +10
  Visual        colours +2 each (max 5), container type +5
  Description   +1 per name keyword found in the description (max 5)

Products that score 0 are not candidates. Only the top 3 are returned,
ordered by confidence, ties going to whichever product came first in the
catalog.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from fuzzy import fuzzy_contains, normalize, similarity

if TYPE_CHECKING:
    from image_analyzer import ExtractedAttributes

logger = logging.getLogger(__name__)

MAX_MATCHES = 3


@dataclass(frozen=True)
class CatalogProduct:
    """Read-only snapshot of one catalog row for the duration of a batch."""
    id: str
    title: str
    handle: str
    product_type: Optional[str] = None
    tags: frozenset[str] = field(default_factory=frozenset)
    description: Optional[str] = None

    def __post_init__(self) -> None:
        # Accept any iterable of tags (list from JSON, set, …)
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags or ()))

    @property
    def searchable_text(self) -> str:
        """Title + tags + description, the text visual features are matched in."""
        return f"{self.title} {' '.join(sorted(self.tags))} {self.description or ''}"


@dataclass
class MatchCandidate:
    product_id: str
    product_title: str
    product_handle: str
    confidence: int                 # 0–100
    match_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "productId":     self.product_id,
            "productTitle":  self.product_title,
            "productHandle": self.product_handle,
            "confidence":    self.confidence,
            "matchReasons":  list(self.match_reasons),
        }


# ── Individual rules ──────────────────────────────────────────────────────────
# Each rule returns the points it awards and appends its reason(s).

def _score_name(norm_title: str, norm_name: str, reasons: list[str]) -> int:
    if not norm_name:
        return 0
    if norm_title == norm_name:
        reasons.append("Exact product name match")
        return 50
    sim = similarity(norm_title, norm_name)
    if sim >= 80:
        reasons.append(f"Product name {round(sim)}% similar")
        return 35
    if sim >= 60:
        reasons.append(f"Product name {round(sim)}% similar")
        return 20
    if fuzzy_contains(norm_title, norm_name, 75):
        reasons.append("Product name partially matches")
        return 15
    return 0


def _score_scent(
    product: CatalogProduct,
    norm_title: str,
    scent_name: str,
    reasons: list[str],
) -> int:
    norm_scent = normalize(scent_name)
    if not norm_scent:
        return 0

    points = 0
    for tag in sorted(product.tags):
        norm_tag = normalize(tag)
        if norm_tag == norm_scent or fuzzy_contains(norm_tag, norm_scent, 85):
            points += 20
            reasons.append(f'Scent name matches tag: "{scent_name}"')
            break

    if fuzzy_contains(norm_title, norm_scent, 85):
        points += 15
        reasons.append("Scent name found in product title")
    return points


def _score_type(product: CatalogProduct, extracted_type: str, reasons: list[str]) -> int:
    norm_extracted = normalize(extracted_type)
    norm_product = normalize(product.product_type)
    if not norm_extracted or not norm_product:
        return 0
    if norm_extracted == norm_product:
        reasons.append("Product type matches")
        return 15
    if similarity(norm_extracted, norm_product) >= 70:
        reasons.append("Product type similar")
        return 10
    return 0


def _score_visual(
    product: CatalogProduct,
    colors: Iterable[str],
    container_type: str,
    reasons: list[str],
) -> int:
    points = 0
    product_text = product.searchable_text
    norm_product_text = normalize(product_text)

    color_matches = sum(
        1 for color in colors
        if normalize(color) and fuzzy_contains(norm_product_text, color, 85)
    )
    if color_matches:
        points += min(5, color_matches * 2)
        reasons.append(f"{color_matches} color(s) match")

    if normalize(container_type) and fuzzy_contains(product_text, container_type, 80):
        points += 5
        reasons.append(f"Container type matches: {container_type}")
    return points


def _score_description(product: CatalogProduct, norm_name: str, reasons: list[str]) -> int:
    norm_description = normalize(product.description)
    if not norm_description or not norm_name:
        return 0
    keywords = [w for w in norm_name.split(" ") if len(w) > 3]
    keyword_matches = sum(1 for w in keywords if w in norm_description)
    if keyword_matches:
        reasons.append(f"{keyword_matches} keyword(s) in description")
        return min(5, keyword_matches)
    return 0


# ── Public entry point ────────────────────────────────────────────────────────

def score_product(extracted: "ExtractedAttributes", product: CatalogProduct) -> MatchCandidate:
    """Apply every rule to one product. The returned confidence may be 0."""
    reasons: list[str] = []
    norm_title = normalize(product.title)
    norm_name = normalize(extracted.product_name)
    features = extracted.visual_features

    score = 0
    score += _score_name(norm_title, norm_name, reasons)
    score += _score_scent(product, norm_title, extracted.scent_name, reasons)
    score += _score_type(product, extracted.product_type, reasons)
    score += _score_visual(product, features.colors, features.container_type, reasons)
    score += _score_description(product, norm_name, reasons)

    return MatchCandidate(
        product_id=product.id,
        product_title=product.title,
        product_handle=product.handle,
        confidence=max(0, min(100, score)),
        match_reasons=reasons,
    )


def match_products(
    extracted: "ExtractedAttributes",
    catalog: Sequence[CatalogProduct],
) -> list[MatchCandidate]:
    """
    Rank catalog products against one photo's extracted attributes.

    Returns at most 3 candidates, highest confidence first. Equal scores
    keep catalog order.
    """
    scored: list[tuple[int, MatchCandidate]] = []
    for index, product in enumerate(catalog):
        candidate = score_product(extracted, product)
        if candidate.confidence > 0:
            scored.append((index, candidate))

    scored.sort(key=lambda pair: (-pair[1].confidence, pair[0]))
    top = [candidate for _, candidate in scored[:MAX_MATCHES]]

    logger.debug(
        "Matched '%s' against %d products → %d candidate(s)",
        extracted.product_name, len(catalog), len(scored),
    )
    return top
