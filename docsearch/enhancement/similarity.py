"""Cosine similarity and semantic boost.

Similarity is the dot product over the product of Euclidean norms, defined
as zero when either norm is zero. Similarities at or above the threshold
map linearly from ``[threshold, 1.0]`` onto a multiplicative boost range.
"""

from typing import List, Sequence

import numpy as np

from ..models import SemanticMatch

DEFAULT_THRESHOLD = 0.3
DEFAULT_MIN_BOOST = 1.2
DEFAULT_MAX_BOOST = 3.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 for a zero vector)."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector shapes differ: {va.shape} != {vb.shape}")

    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    similarity = float(np.dot(va, vb)) / denominator
    return max(-1.0, min(1.0, similarity))


def semantic_boost(
    similarity: float,
    threshold: float = DEFAULT_THRESHOLD,
    min_boost: float = DEFAULT_MIN_BOOST,
    max_boost: float = DEFAULT_MAX_BOOST,
) -> float:
    """Map a similarity in ``[threshold, 1.0]`` onto ``[min_boost, max_boost]``."""
    normalized = (similarity - threshold) / (1.0 - threshold)
    return min_boost + normalized * (max_boost - min_boost)


def score_similarities(
    query_embedding: np.ndarray,
    chunk_ids: Sequence[str],
    matrix: np.ndarray,
    threshold: float = DEFAULT_THRESHOLD,
    min_boost: float = DEFAULT_MIN_BOOST,
    max_boost: float = DEFAULT_MAX_BOOST,
) -> List[SemanticMatch]:
    """Score every row of ``matrix`` against the query.

    Returns matches at or above ``threshold`` sorted by descending
    similarity. ``matrix`` rows line up with ``chunk_ids``.
    """
    query = np.asarray(query_embedding, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[-1]:
        raise ValueError(
            f"Query dimension {query.shape[-1]} does not match corpus dimension {matrix.shape[-1]}"
        )

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        similarities = np.where(norms > 0, dots / norms, 0.0)
    similarities = np.clip(similarities, -1.0, 1.0)

    matches = [
        SemanticMatch(
            chunk_id=chunk_ids[i],
            similarity=float(similarities[i]),
            boost=semantic_boost(float(similarities[i]), threshold, min_boost, max_boost),
        )
        for i in np.flatnonzero(similarities >= threshold)
    ]
    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches
