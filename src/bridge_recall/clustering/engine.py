"""
Pattern discovery over experience records.

Three passes feed one ClusterArena:

1. Exact quality-signature grouping. Every record lands in exactly one
   signature cluster (singletons included).
2. Hierarchical refinement. Signature clusters whose members carry semantic
   embeddings are split by threshold hard clustering, recursively, with a
   stricter threshold and smaller minimum size at each level.
3. Per-dimension clustering. For each quality dimension, records where that
   dimension is prominent are hard-clustered on their embeddings and
   labelled with quality-aware keywords.

The engine is synchronous and CPU-bound; async callers run it in a worker
thread. Output depends only on the input, so the same records always give
the same clusters.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from bridge_recall.clustering.hard import hard_cluster
from bridge_recall.clustering.keywords import QualityAwareKeywordExtractor, frequent_keywords
from bridge_recall.clustering.models import ClusterArena, ClusteringResult, ClusteringStatistics
from bridge_recall.clustering.summary import common_qualities, dimension_label, level_label, summarize
from bridge_recall.config import ClusteringSettings
from bridge_recall.models import ClusterResult, ExperienceRecord
from bridge_recall.qualities.registry import DIMENSIONS, Dimension, quality_signature
from bridge_recall.scoring.similarity import centroid, mean_pairwise_similarity

logger = logging.getLogger(__name__)


def _clamp_coherence(value: float) -> float:
    return min(1.0, max(0.0, value))


class ClusteringEngine:
    """Signature, hierarchical and per-dimension clustering of records."""

    def __init__(
        self,
        settings: Optional[ClusteringSettings] = None,
        keyword_extractor: Optional[QualityAwareKeywordExtractor] = None,
    ):
        self.settings = settings or ClusteringSettings()
        self.keyword_extractor = keyword_extractor or QualityAwareKeywordExtractor()

    def cluster(
        self,
        records: Sequence[ExperienceRecord],
        options: Optional[ClusteringSettings] = None,
    ) -> ClusteringResult:
        """
        Cluster records.

        Args:
            records: Records to cluster, in the order results should follow
            options: Per-call settings; the engine's settings when omitted

        Returns:
            ClusteringResult with every cluster, the outlier IDs and statistics
        """
        options = options or self.settings
        records = list(records)
        arena = ClusterArena()

        if not records:
            return ClusteringResult(arena=arena, outliers=[], statistics=ClusteringStatistics())

        embedding_dimension = self._working_dimension(records)

        for signature_cluster, members in self._signature_clusters(records, embedding_dimension):
            arena.add(signature_cluster)
            embedded = self._embedded(members, embedding_dimension)
            if signature_cluster.size >= 2 and len(embedded) >= 2:
                self._refine(arena, signature_cluster, embedded, 1, options)

        for dimension_cluster in self._dimension_clusters(records, embedding_dimension, options):
            arena.add(dimension_cluster)

        outliers = self._outliers(records, arena)
        statistics = self._statistics(records, arena, outliers)

        logger.info(
            f"Clustered {len(records)} records: {statistics.signature_clusters} signature, "
            f"{statistics.hierarchical_clusters} hierarchical, "
            f"{statistics.dimension_clusters} dimension clusters, "
            f"{statistics.outliers_count} outliers"
        )
        return ClusteringResult(arena=arena, outliers=outliers, statistics=statistics)

    @staticmethod
    def _working_dimension(records: List[ExperienceRecord]) -> Optional[int]:
        # Embeddings of any other length are ignored for similarity work
        for record in records:
            if record.semantic_embedding:
                return len(record.semantic_embedding)
        return None

    @staticmethod
    def _embedded(
        records: Sequence[ExperienceRecord], dimension: Optional[int]
    ) -> List[ExperienceRecord]:
        if dimension is None:
            return []
        embedded = [
            r for r in records if r.semantic_embedding and len(r.semantic_embedding) == dimension
        ]
        return sorted(embedded, key=lambda r: r.created_at)

    def _geometry(self, records: Sequence[ExperienceRecord], dimension: Optional[int]):
        embedded = self._embedded(records, dimension)
        if len(embedded) < 2:
            vectors = [r.semantic_embedding for r in embedded]
            return 1.0, (centroid(vectors) if vectors else None)
        vectors = [r.semantic_embedding for r in embedded]
        return _clamp_coherence(mean_pairwise_similarity(vectors)), centroid(vectors)

    def _signature_clusters(self, records: List[ExperienceRecord], dimension: Optional[int]):
        groups: Dict[str, List[ExperienceRecord]] = {}
        for record in records:
            groups.setdefault(quality_signature(record.qualities), []).append(record)

        for index, members in enumerate(groups.values(), start=1):
            shared = common_qualities(members)
            coherence, center = self._geometry(members, dimension)
            cluster = ClusterResult(
                id=f"cluster-{index}",
                summary=summarize(members, shared),
                member_ids=[r.id for r in members],
                common_qualities=shared,
                size=len(members),
                coherence=coherence,
                centroid=center,
                kind="signature",
                level=0,
            )
            yield cluster, members

    def _refine(
        self,
        arena: ClusterArena,
        parent: ClusterResult,
        members: List[ExperienceRecord],
        level: int,
        options: ClusteringSettings,
    ):
        if level > options.max_hierarchy_depth:
            return

        min_size = max(2, options.min_cluster_size - (level - 1))
        if len(members) < min_size:
            return

        threshold = options.hierarchical_threshold + (level - 1) * options.level_threshold_step
        groups = hard_cluster(
            [r.semantic_embedding for r in members],
            threshold=threshold,
            min_size=min_size,
            max_clusters=options.max_clusters_per_level,
            max_members=options.max_cluster_members,
        )

        # A single group holding every member would just repeat the parent
        if len(groups) == 1 and len(groups[0]) == len(members):
            return

        for index, group in enumerate(groups, start=1):
            children = [members[i] for i in group]
            vectors = [r.semantic_embedding for r in children]
            keywords = frequent_keywords((r.text for r in children), limit=5)
            shared = common_qualities(children)
            child = arena.add(
                ClusterResult(
                    id=f"{parent.id}.{index}",
                    summary=summarize(children, shared, keywords),
                    member_ids=[r.id for r in children],
                    common_qualities=shared,
                    size=len(children),
                    coherence=_clamp_coherence(mean_pairwise_similarity(vectors)),
                    centroid=centroid(vectors),
                    kind="hierarchical",
                    level=level,
                    parent_id=parent.id,
                    keywords=keywords,
                    semantic_label=level_label(level, keywords),
                )
            )
            self._refine(arena, child, children, level + 1, options)

    def _dimension_clusters(
        self,
        records: List[ExperienceRecord],
        embedding_dimension: Optional[int],
        options: ClusteringSettings,
    ) -> List[ClusterResult]:
        if embedding_dimension is None:
            return []

        def run(dimension: Dimension) -> List[ClusterResult]:
            return self._cluster_dimension(dimension, records, embedding_dimension, options)

        if options.parallel:
            with ThreadPoolExecutor(max_workers=len(DIMENSIONS)) as executor:
                per_dimension = list(executor.map(run, DIMENSIONS))
        else:
            per_dimension = [run(d) for d in DIMENSIONS]

        return [cluster for clusters in per_dimension for cluster in clusters]

    def _cluster_dimension(
        self,
        dimension: Dimension,
        records: List[ExperienceRecord],
        embedding_dimension: int,
        options: ClusteringSettings,
    ) -> List[ClusterResult]:
        relevant = [
            r
            for r in self._embedded(records, embedding_dimension)
            if r.quality_vector is not None
            and r.quality_vector.get(dimension.vector_name) > options.dimension_prominence
        ]
        if len(relevant) < options.min_cluster_size:
            logger.debug(
                f"{dimension.vector_name}: only {len(relevant)} prominent records, skipping"
            )
            return []

        groups = hard_cluster(
            [r.semantic_embedding for r in relevant],
            threshold=options.dimension_threshold,
            min_size=options.min_cluster_size,
            max_clusters=options.max_dimension_clusters,
            max_members=options.max_cluster_members,
        )

        clusters = []
        for index, group in enumerate(groups, start=1):
            members = [relevant[i] for i in group]
            vectors = [r.semantic_embedding for r in members]
            keywords = self.keyword_extractor.extract_keywords(
                members, records, dimension.vector_name, options.max_keywords
            )
            clusters.append(
                ClusterResult(
                    id=f"{dimension.vector_name}-{index}",
                    summary=summarize(members, [], keywords),
                    member_ids=[r.id for r in members],
                    common_qualities=common_qualities(members),
                    size=len(members),
                    coherence=_clamp_coherence(mean_pairwise_similarity(vectors)),
                    centroid=centroid(vectors),
                    kind="dimension",
                    level=0,
                    dimension=dimension.vector_name,
                    keywords=keywords,
                    semantic_label=dimension_label(dimension.vector_name, keywords),
                )
            )

        logger.debug(f"{dimension.vector_name}: {len(clusters)} clusters")
        return clusters

    @staticmethod
    def _outliers(records: List[ExperienceRecord], arena: ClusterArena) -> List[str]:
        clustered = set()
        for cluster in arena:
            if cluster.kind == "dimension" or cluster.size >= 2:
                clustered.update(cluster.member_ids)
        return [r.id for r in records if r.id not in clustered]

    @staticmethod
    def _statistics(
        records: List[ExperienceRecord], arena: ClusterArena, outliers: List[str]
    ) -> ClusteringStatistics:
        hierarchical = arena.of_kind("hierarchical")
        all_clusters = arena.as_list()
        average = (
            sum(c.coherence for c in all_clusters) / len(all_clusters) if all_clusters else 0.0
        )
        return ClusteringStatistics(
            total_records=len(records),
            signature_clusters=len(arena.of_kind("signature")),
            hierarchical_clusters=len(hierarchical),
            dimension_clusters=len(arena.of_kind("dimension")),
            outliers_count=len(outliers),
            max_depth=max((c.level for c in hierarchical), default=0),
            average_coherence=average,
        )
