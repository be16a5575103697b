"""
Threshold hard clustering over embeddings.

Every item belongs to at most one cluster. Seeds are taken in input order
(callers pass items sorted by creation time); a candidate joins a cluster
only when its similarity to every current member reaches the threshold, so
clusters never chain loosely related items together.
"""

import logging
from typing import List, Sequence

import numpy as np

from bridge_recall.scoring.similarity import similarity_matrix

logger = logging.getLogger(__name__)


def hard_cluster(
    vectors: Sequence[Sequence[float]],
    threshold: float,
    min_size: int,
    max_clusters: int,
    max_members: int = 20,
) -> List[List[int]]:
    """
    Partition vectors into non-overlapping clusters.

    Args:
        vectors: Equal-length vectors, in seeding order
        threshold: Minimum similarity to every member for a candidate to join
        min_size: Clusters smaller than this are dissolved and their items
            become available to later seeds
        max_clusters: Stop seeding once this many clusters exist
        max_members: Stop growing a cluster at this size

    Returns:
        Member indices per cluster, each list in ascending order
    """
    if not vectors:
        return []

    sims = similarity_matrix([list(v) for v in vectors])
    assigned = np.zeros(len(vectors), dtype=bool)
    clusters: List[List[int]] = []

    for seed in range(len(vectors)):
        if len(clusters) >= max_clusters:
            break
        if assigned[seed]:
            continue

        members = [seed]
        for candidate in range(len(vectors)):
            if candidate == seed or assigned[candidate]:
                continue
            if sims[candidate, members].min() >= threshold:
                members.append(candidate)
                if len(members) >= max_members:
                    break

        if len(members) >= min_size:
            assigned[members] = True
            clusters.append(sorted(members))

    logger.debug(
        f"Hard clustering: {len(vectors)} items -> {len(clusters)} clusters "
        f"(threshold={threshold:.2f}, min_size={min_size})"
    )
    return clusters
