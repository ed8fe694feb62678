"""
fuzzy.py — text normalisation and edit-distance similarity.

Everything here is pure and synchronous; matching.py calls these once per
(product, rule) pair, so they must stay side-effect free.

  normalize("Calm-Down Girl!  ")        → "calmdown girl"
  similarity("candle", "candl")         → 83.3…
  fuzzy_contains("lavender candle", "lavendar")  → True (word-level)
"""
from __future__ import annotations

import re
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

# Needle words shorter than this are too ambiguous for word-level matching
_MIN_WORD_LEN = 3


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip everything but a-z / 0-9 / whitespace, collapse spaces."""
    if not text:
        return ""
    cleaned = _NON_ALNUM.sub("", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance (insert / delete / substitute = 1)."""
    # Only the previous row of the matrix is kept
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,          # deletion
                current[j - 1] + 1,       # insertion
                previous[j - 1] + cost,   # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Percentage similarity in [0, 100] based on Levenshtein distance.
    Two empty strings are 100% similar.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 100.0
    distance = levenshtein_distance(a, b)
    return (max_len - distance) / max_len * 100


def fuzzy_contains(haystack: Optional[str], needle: Optional[str], threshold: float = 80) -> bool:
    """
    True when `needle` appears in `haystack`.

    Exact substring (after normalisation) is checked first; only if that
    fails do we fall back to word-by-word similarity, skipping needle words
    shorter than 3 characters.
    """
    norm_haystack = normalize(haystack)
    norm_needle = normalize(needle)

    if norm_needle in norm_haystack:
        return True

    haystack_words = norm_haystack.split(" ")
    for needle_word in norm_needle.split(" "):
        if len(needle_word) < _MIN_WORD_LEN:
            continue
        for haystack_word in haystack_words:
            if similarity(needle_word, haystack_word) >= threshold:
                return True
    return False
