"""
In-memory vector storage implementation.

Provides a simple in-process store for record embeddings and similarity search,
suitable for testing, development and small collections. Data is lost on
restart; see JSONVectorStore for a file-backed variant.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bridge_recall.scoring.similarity import cosine_similarity
from bridge_recall.storage.vector.models import (
    SimilarVector,
    VectorPoint,
    VectorStoreHealth,
    VectorValidation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    """Immutable store state; writers build a new one and swap the reference."""

    points: Dict[str, VectorPoint] = field(default_factory=dict)
    dimension: Optional[int] = None
    next_sequence: int = 0


def _check_point(id: str, vector: List[float]):
    if not isinstance(id, str) or not id:
        raise ValueError("Vector ID must be a non-empty string")
    if not vector:
        raise ValueError(f"Vector for {id} is empty")
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in vector):
        raise ValueError(f"Vector for {id} contains non-finite values")


class InMemoryVectorStore:
    """
    In-memory implementation of the VectorStore protocol.

    Writes are serialized with an asyncio.Lock and replace the whole snapshot
    (copy-on-write), so a reader holding the previous snapshot never sees a
    partially applied write.
    """

    def __init__(self):
        self._state = _Snapshot()
        self._write_lock = asyncio.Lock()

        logger.info(f"{type(self).__name__} initialized")

    @property
    def dimension(self) -> Optional[int]:
        """Working dimensionality, None until the first vector is stored."""
        return self._state.dimension

    async def initialize(self) -> None:
        pass

    async def _commit(self, state: _Snapshot) -> None:
        """Publish a new snapshot. Called with the write lock held."""
        self._state = state

    async def upsert(
        self, id: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        _check_point(id, vector)

        async with self._write_lock:
            state = self._state
            dimension = state.dimension if state.dimension is not None else len(vector)
            if len(vector) != dimension:
                logger.warning(
                    f"Vector {id} has dimension {len(vector)}, store dimension is {dimension}; "
                    f"stored but excluded from search until removed"
                )

            existing = state.points.get(id)
            sequence = existing.sequence if existing else state.next_sequence
            point = VectorPoint(
                id=id,
                vector=list(vector),
                metadata=dict(metadata or {}),
                sequence=sequence,
                created_at=existing.created_at if existing else datetime.now(timezone.utc),
            )

            points = dict(state.points)
            points[id] = point
            await self._commit(
                _Snapshot(
                    points=points,
                    dimension=dimension,
                    next_sequence=state.next_sequence if existing else state.next_sequence + 1,
                )
            )

        logger.debug(f"Upserted vector {id} (dimension={len(vector)})")

    async def delete(self, id: str) -> bool:
        async with self._write_lock:
            state = self._state
            if id not in state.points:
                return False
            points = {k: v for k, v in state.points.items() if k != id}
            await self._commit(
                _Snapshot(points=points, dimension=state.dimension, next_sequence=state.next_sequence)
            )

        logger.debug(f"Deleted vector {id}")
        return True

    async def delete_collection(self) -> None:
        async with self._write_lock:
            count = len(self._state.points)
            await self._commit(_Snapshot())

        logger.info(f"Deleted all vectors ({count} total)")

    async def find_similar(
        self, query_vector: List[float], limit: int = 10, min_similarity: float = 0.0
    ) -> List[SimilarVector]:
        state = self._state

        if not state.points or state.dimension is None:
            return []

        if len(query_vector) != state.dimension:
            logger.warning(
                f"Query vector has dimension {len(query_vector)}, "
                f"store dimension is {state.dimension}; no results"
            )
            return []

        hits = []
        for point in state.points.values():
            if len(point.vector) != state.dimension:
                continue
            similarity = cosine_similarity(query_vector, point.vector)
            if similarity >= min_similarity:
                hits.append((similarity, point.sequence, point))

        hits.sort(key=lambda hit: (-hit[0], hit[1]))
        results = [
            SimilarVector(id=point.id, similarity=similarity, metadata=point.metadata)
            for similarity, _, point in hits[:limit]
        ]

        logger.debug(f"{len(results)} similar vectors found (min_similarity={min_similarity})")
        return results

    async def get_vector(self, id: str) -> Optional[VectorPoint]:
        return self._state.points.get(id)

    async def count(self) -> int:
        return len(self._state.points)

    async def get_health_stats(self) -> VectorStoreHealth:
        state = self._state
        valid = sum(1 for p in state.points.values() if len(p.vector) == state.dimension)
        return VectorStoreHealth(
            total_vectors=len(state.points),
            valid_vectors=valid,
            invalid_vectors=len(state.points) - valid,
            dimension=state.dimension,
        )

    async def validate_vectors(self, expected_dimension: int) -> VectorValidation:
        state = self._state
        details = [
            f"Vector {p.id} has dimension {len(p.vector)}, expected {expected_dimension}"
            for p in state.points.values()
            if len(p.vector) != expected_dimension
        ]
        return VectorValidation(
            valid=len(state.points) - len(details), invalid=len(details), details=details
        )

    async def remove_invalid_vectors(self, expected_dimension: int) -> int:
        async with self._write_lock:
            state = self._state
            points = {
                k: p for k, p in state.points.items() if len(p.vector) == expected_dimension
            }
            removed = len(state.points) - len(points)
            await self._commit(
                _Snapshot(
                    points=points,
                    dimension=expected_dimension,
                    next_sequence=state.next_sequence,
                )
            )

        if removed:
            logger.warning(
                f"Removed {removed} vectors with dimension != {expected_dimension}"
            )
        return removed
