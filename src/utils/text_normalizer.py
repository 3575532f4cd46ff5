"""Text normalization utilities for crop and disease identities.

This module handles three distinct normalization concerns:

1. **Identity keys** -- Case-folds and collapses whitespace so that
   "Solanum  Lycopersicum" and "solanum lycopersicum" resolve to the same
   stored record.

2. **Search tokens** -- Splits free text into lowercase word tokens used by
   the knowledge store's relevance search.

3. **Slugs and name lists** -- Derives kebab-case slugs for crop URLs and
   collapses near-duplicate names that the model sometimes returns twice
   in one suggestion list (e.g. "Solanum lycopersicum" and
   "Solanum lycopersicum L.").
"""

import re

from rapidfuzz import fuzz

_WORD_RE = re.compile(r"\w+")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def normalize_identity(value: str) -> str:
    """Return the case-insensitive natural-identity key for *value*.

    Args:
        value: Raw name (scientific name, disease name, crop name).

    Returns:
        The lower-cased value with surrounding whitespace removed and inner
        runs of whitespace collapsed to a single space.
    """
    return re.sub(r"\s+", " ", value.strip()).casefold()


def tokenize(text: str) -> list[str]:
    """Split *text* into lowercase ``\\w+`` tokens, preserving order."""
    return _WORD_RE.findall(text.lower())


def slugify(value: str) -> str:
    """Convert a display name to a kebab-case slug.

    "Bell Pepper (Sweet)" becomes "bell-pepper-sweet".  Returns ``"item"``
    when nothing slug-safe remains so callers always get a usable base.
    """
    slug = _SLUG_STRIP_RE.sub("-", value.lower()).strip("-")
    return slug or "item"


def collapse_near_duplicates(names: list[str], threshold: float = 0.92) -> list[str]:
    """Drop names that are near-duplicates of an earlier name in *names*.

    Uses rapidfuzz ``token_sort_ratio`` on the identity keys.  The first
    occurrence wins, so list order is preserved.

    Args:
        names: Candidate names in model output order.
        threshold: Minimum similarity (0.0-1.0) for two names to be
                   considered the same.

    Returns:
        The filtered list.
    """
    kept: list[str] = []
    kept_keys: list[str] = []
    for name in names:
        key = normalize_identity(name)
        if not key:
            continue
        if any(
            fuzz.token_sort_ratio(key, other) / 100.0 >= threshold
            for other in kept_keys
        ):
            continue
        kept.append(name)
        kept_keys.append(key)
    return kept
