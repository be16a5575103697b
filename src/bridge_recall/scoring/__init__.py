"""
Relevance scoring: vector similarity and the composite recall score.
"""

from bridge_recall.scoring.relevance import (
    RelevanceScorer,
    ScoredRecord,
    filter_relevance,
    text_relevance,
)
from bridge_recall.scoring.similarity import (
    centroid,
    cosine_similarity,
    mean_pairwise_similarity,
    quality_vector_similarity,
    similarity_matrix,
)

__all__ = [
    "RelevanceScorer",
    "ScoredRecord",
    "text_relevance",
    "filter_relevance",
    "cosine_similarity",
    "quality_vector_similarity",
    "similarity_matrix",
    "mean_pairwise_similarity",
    "centroid",
]
