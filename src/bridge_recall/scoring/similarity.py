"""
Vector similarity helpers.

Cosine similarity here is total: mismatched lengths, empty vectors and
all-zero vectors give 0.0 rather than raising or returning NaN.
"""

from typing import List, Optional, Sequence

import numpy as np

from bridge_recall.models import QualityVector


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine similarity of two vectors, in [-1, 1]."""
    if len(vec1) == 0 or len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)

    magnitude1 = np.linalg.norm(a)
    magnitude2 = np.linalg.norm(b)
    if magnitude1 == 0 or magnitude2 == 0 or not np.isfinite(magnitude1 * magnitude2):
        return 0.0

    similarity = float(np.dot(a, b) / (magnitude1 * magnitude2))
    if not np.isfinite(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))


def quality_vector_similarity(
    target: QualityVector, record_vector: Optional[QualityVector]
) -> Optional[float]:
    """Similarity of a record's quality vector to a target, None if the record has none."""
    if record_vector is None:
        return None
    return cosine_similarity(target.as_list(), record_vector.as_list())


def similarity_matrix(vectors: List[List[float]]) -> np.ndarray:
    """
    Pairwise cosine similarities for vectors of equal length.

    Rows for all-zero vectors are zero everywhere except the diagonal, which
    is always 1.0.
    """
    if not vectors:
        return np.zeros((0, 0))

    matrix = np.asarray(vectors, dtype=float)
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0, 1.0, norms)
    unit = matrix / safe[:, None]
    sims = np.clip(unit @ unit.T, -1.0, 1.0)
    sims[norms == 0, :] = 0.0
    sims[:, norms == 0] = 0.0
    np.fill_diagonal(sims, 1.0)
    return sims


def mean_pairwise_similarity(vectors: List[List[float]]) -> float:
    """Mean cosine similarity over all distinct pairs, 1.0 for fewer than two vectors."""
    if len(vectors) < 2:
        return 1.0
    sims = similarity_matrix(vectors)
    upper = sims[np.triu_indices(len(vectors), k=1)]
    return float(upper.mean())


def centroid(vectors: List[List[float]]) -> List[float]:
    """Component-wise mean of equal-length vectors."""
    return np.asarray(vectors, dtype=float).mean(axis=0).tolist()
