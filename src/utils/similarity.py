"""Cosine similarity and best-match selection for embedding dedup.

Used by both pipelines after an exact-identity lookup misses: the query
embedding is compared against stored records and the closest one is
reused instead of generating a new record.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Generic, TypeVar

import numpy as np

_T = TypeVar("_T")


class ScoredMatch(Generic[_T]):
    """A selected candidate together with its cosine score."""

    __slots__ = ("item", "score")

    def __init__(self, item: _T, score: float) -> None:
        self.item = item
        self.score = score

    def __repr__(self) -> str:
        return f"ScoredMatch(item={self.item!r}, score={self.score:.4f})"


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|), or ``0.0`` when either norm is zero.

    Raises
    ------
    ValueError
        If the vectors have different lengths.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"dimension mismatch: {va.shape[0]} != {vb.shape[0]}")

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def find_best_match(
    query: Sequence[float],
    candidates: Sequence[tuple[_T, Sequence[float] | None]],
    threshold: float | None = None,
) -> ScoredMatch[_T] | None:
    """Pick the candidate whose vector is most similar to *query*.

    Parameters
    ----------
    query:
        The query embedding.
    candidates:
        ``(item, vector)`` pairs in a stable order.  Candidates without a
        vector or with a different dimensionality are skipped.
    threshold:
        Minimum acceptable score.  ``None`` accepts any best candidate.

    Returns
    -------
    ScoredMatch or None
        The highest-scoring candidate (the first one wins ties), or
        ``None`` when nothing comparable exists or the best score falls
        below *threshold*.
    """
    dimension = len(query)
    best: ScoredMatch[_T] | None = None

    for item, vector in candidates:
        if vector is None or len(vector) != dimension:
            continue
        score = cosine_similarity(query, vector)
        if best is None or score > best.score:
            best = ScoredMatch(item, score)

    if best is None:
        return None
    if threshold is not None and best.score < threshold:
        return None
    return best
