"""
Result types for clustering.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from bridge_recall.models import ClusterResult


@dataclass
class ClusterArena:
    """
    Flat store of clusters keyed by id.

    Hierarchical clusters point at their parent through `parent_id`; the
    tree is navigated with `children_of` instead of nested lists. Insertion
    order is kept and is the order clusters are reported in.
    """

    clusters: Dict[str, ClusterResult] = field(default_factory=dict)

    def add(self, cluster: ClusterResult) -> ClusterResult:
        if cluster.id in self.clusters:
            raise ValueError(f"Duplicate cluster id: {cluster.id}")
        if cluster.parent_id is not None and cluster.parent_id not in self.clusters:
            raise ValueError(f"Parent cluster {cluster.parent_id} not found for {cluster.id}")
        self.clusters[cluster.id] = cluster
        return cluster

    def get(self, cluster_id: str) -> Optional[ClusterResult]:
        return self.clusters.get(cluster_id)

    def children_of(self, cluster_id: str) -> List[ClusterResult]:
        return [c for c in self.clusters.values() if c.parent_id == cluster_id]

    def roots(self) -> List[ClusterResult]:
        return [c for c in self.clusters.values() if c.parent_id is None]

    def of_kind(self, kind: str) -> List[ClusterResult]:
        return [c for c in self.clusters.values() if c.kind == kind]

    def as_list(self) -> List[ClusterResult]:
        return list(self.clusters.values())

    def __iter__(self) -> Iterator[ClusterResult]:
        return iter(self.clusters.values())

    def __len__(self) -> int:
        return len(self.clusters)


@dataclass
class ClusteringStatistics:
    """
    Summary counts for one clustering run.

    Attributes:
        total_records: Records passed in
        signature_clusters: Exact quality-signature clusters
        hierarchical_clusters: Clusters produced by embedding refinement, all levels
        dimension_clusters: Per-dimension clusters
        outliers_count: Records that ended up in no meaningful cluster
        max_depth: Deepest hierarchical level reached (0 when none)
        average_coherence: Mean coherence over all clusters (0.0 when none)
    """

    total_records: int = 0
    signature_clusters: int = 0
    hierarchical_clusters: int = 0
    dimension_clusters: int = 0
    outliers_count: int = 0
    max_depth: int = 0
    average_coherence: float = 0.0


@dataclass
class ClusteringResult:
    """
    Output of ClusteringEngine.cluster.

    Attributes:
        arena: Every cluster, in report order (signature, their hierarchical
            children, then per-dimension clusters)
        outliers: IDs of records in no cluster of size 2 or more and in no
            per-dimension cluster, in input order
        statistics: Summary counts
    """

    arena: ClusterArena
    outliers: List[str]
    statistics: ClusteringStatistics

    @property
    def clusters(self) -> List[ClusterResult]:
        return self.arena.as_list()
