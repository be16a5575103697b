"""Pattern discovery: signature, hierarchical and per-dimension clustering."""

from bridge_recall.clustering.engine import ClusteringEngine
from bridge_recall.clustering.hard import hard_cluster
from bridge_recall.clustering.keywords import QualityAwareKeywordExtractor, frequent_keywords
from bridge_recall.clustering.models import ClusterArena, ClusteringResult, ClusteringStatistics
from bridge_recall.clustering.summary import common_qualities, dimension_label, summarize

__all__ = [
    "ClusteringEngine",
    "ClusterArena",
    "ClusteringResult",
    "ClusteringStatistics",
    "QualityAwareKeywordExtractor",
    "frequent_keywords",
    "hard_cluster",
    "common_qualities",
    "dimension_label",
    "summarize",
]
