"""Pairwise visual similarity between photo embeddings.

Two complementary metrics are computed for a pair of embeddings and fused
into a single 0-100 combined score:

* cosine similarity, mapped to 0-100 and penalized below a high-confidence
  cutoff so that only near-identical directions score highly;
* Euclidean distance, mapped to 0-100 through a four-band piecewise-linear
  curve fitted to the empirical range of CLIP image embeddings.

Distance carries 70% of the fused score because it separates individual
animals better than direction alone in this embedding space.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from petmatch.data.schemas import Embedding, ScoreResult
from petmatch.errors import DimensionMismatchError, InputError

COSINE_WEIGHT = 0.3
DISTANCE_WEIGHT = 0.7

# (upper distance bound, score at band start, score at band end)
_DISTANCE_BANDS: tuple[tuple[float, float, float], ...] = (
    (0.5, 100.0, 90.0),
    (1.5, 90.0, 60.0),
    (3.0, 60.0, 30.0),
)
# Beyond the last band the score keeps falling at this rate per unit distance.
_TAIL_SLOPE = 10.0


def _as_arrays(v1: Sequence[float], v2: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    a = np.asarray(v1, dtype=np.float64)
    b = np.asarray(v2, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(
            f"Embedding dimensions differ: {a.shape[0]} != {b.shape[0]}"
        )
    return a, b


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """Cosine similarity clamped to [-1, 1]; 0 when either vector is zero."""
    a, b = _as_arrays(v1, v2)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def euclidean_distance(v1: Sequence[float], v2: Sequence[float]) -> float:
    a, b = _as_arrays(v1, v2)
    return float(np.linalg.norm(a - b))


def cosine_score(similarity: float, penalty: float = 0.85, cutoff: float = 95.0) -> float:
    """Map cosine similarity to 0-100, scaling down everything below ``cutoff``.

    Args:
        similarity: Cosine similarity in [-1, 1].
        penalty: Multiplier applied to scores at or below the cutoff.
        cutoff: Scores strictly above this value are kept unchanged.

    Returns:
        Score in [0, 100].
    """
    raw = (similarity + 1.0) / 2.0 * 100.0
    if raw > cutoff:
        return raw
    return raw * penalty


def distance_score(distance: float) -> float:
    """Map a Euclidean distance to a 0-100 score via the banded curve."""
    lower = 0.0
    for upper, start, end in _DISTANCE_BANDS:
        if distance < upper:
            fraction = (distance - lower) / (upper - lower)
            return start + (end - start) * fraction
        lower = upper
    tail_start = _DISTANCE_BANDS[-1][2]
    return max(0.0, tail_start - (distance - lower) * _TAIL_SLOPE)


def score_vectors(
    v1: Sequence[float],
    v2: Sequence[float],
    penalty: float = 0.85,
    cutoff: float = 95.0,
) -> ScoreResult:
    """Compute both metrics for two raw vectors and fuse them.

    Raises:
        DimensionMismatchError: If the vectors have different lengths.
    """
    cos = cosine_similarity(v1, v2)
    dist = euclidean_distance(v1, v2)
    c_score = cosine_score(cos, penalty=penalty, cutoff=cutoff)
    d_score = distance_score(dist)
    combined = round(c_score * COSINE_WEIGHT + d_score * DISTANCE_WEIGHT)

    return ScoreResult(
        cosine_similarity=cos,
        euclidean_distance=dist,
        cosine_score=c_score,
        distance_score=d_score,
        combined_score=max(0, min(100, combined)),
    )


def score_embeddings(
    e1: Embedding,
    e2: Embedding,
    penalty: float = 0.85,
    cutoff: float = 95.0,
) -> ScoreResult:
    """Score two embeddings produced by the same provider version."""
    if e1.provider_version != e2.provider_version:
        raise InputError(
            f"Embeddings come from different providers: "
            f"{e1.provider_version} vs {e2.provider_version}"
        )
    return score_vectors(e1.vector, e2.vector, penalty=penalty, cutoff=cutoff)
