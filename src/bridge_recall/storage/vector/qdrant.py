"""
Qdrant vector storage implementation.

Record IDs are arbitrary strings, while Qdrant point IDs must be unsigned
integers or UUIDs, so each record ID is mapped to a deterministic UUID5 and
the original ID is kept in the payload under `record_id`.

Qdrant fixes a collection's vector size at creation, so the collection is
created lazily at the dimension of the first vector. Vectors of any other
length cannot be stored by the server; they are remembered locally and
reported as invalid until `remove_invalid_vectors` is called.

Cosine collections hold unit-normalized copies of the vectors, so the vector
as given is also kept in the payload under `raw_vector` and `get_vector`
returns that.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointIdsList, PointStruct, VectorParams

from bridge_recall.storage.vector.memory import _check_point
from bridge_recall.storage.vector.models import (
    SimilarVector,
    VectorPoint,
    VectorStoreHealth,
    VectorValidation,
)

logger = logging.getLogger(__name__)

_ID_NAMESPACE = uuid.UUID("6f1c3a52-9d0e-4b8f-a3c7-5e2d1b4a9c80")
_RESERVED_KEYS = ("record_id", "sequence", "raw_vector")


def point_id(record_id: str) -> str:
    """Deterministic Qdrant point ID for a record ID."""
    return str(uuid.uuid5(_ID_NAMESPACE, record_id))


class QdrantVectorStore:
    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        collection_name: str = "bridge_embeddings",
        client: Optional[AsyncQdrantClient] = None,
    ):
        """
        Initialize Qdrant vector store.

        Args:
            url: Qdrant server URL (default: http://localhost:6333)
            api_key: Optional API key for Qdrant Cloud
            collection_name: Collection name (default: bridge_embeddings)
            client: Pre-built client, mainly for tests
        """
        self.client = client or AsyncQdrantClient(url=url, api_key=api_key)
        self.collection_name = collection_name
        self._dimension: Optional[int] = None
        self._rejected: Dict[str, PointStruct] = {}
        self._write_lock = asyncio.Lock()

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    async def _collection_size(self) -> Optional[int]:
        if not await self.client.collection_exists(self.collection_name):
            return None
        info = await self.client.get_collection(self.collection_name)
        return info.config.params.vectors.size

    async def initialize(self) -> None:
        self._dimension = await self._collection_size()
        if self._dimension is None:
            logger.info(f"Qdrant collection '{self.collection_name}' will be created on first use")
        else:
            logger.info(
                f"Qdrant collection '{self.collection_name}' ready (dimension={self._dimension})"
            )

    async def _create_collection(self, dimension: int):
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
        )
        self._dimension = dimension
        logger.info(f"Created Qdrant collection '{self.collection_name}' (dimension={dimension})")

    async def upsert(
        self, id: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        _check_point(id, vector)

        async with self._write_lock:
            if self._dimension is None:
                await self._create_collection(len(vector))

            if len(vector) != self._dimension:
                self._rejected[id] = PointStruct(
                    id=point_id(id),
                    vector=list(vector),
                    payload={
                        **(metadata or {}),
                        "record_id": id,
                        "sequence": time.time_ns(),
                        "raw_vector": list(vector),
                    },
                )
                logger.warning(
                    f"Vector {id} has dimension {len(vector)}, collection dimension is "
                    f"{self._dimension}; flagged invalid"
                )
                return

            self._rejected.pop(id, None)
            existing = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[point_id(id)],
                with_payload=True,
                with_vectors=False,
            )
            sequence = existing[0].payload.get("sequence") if existing else time.time_ns()

            payload = {k: v for k, v in (metadata or {}).items() if k not in _RESERVED_KEYS}
            payload.update({"record_id": id, "sequence": sequence, "raw_vector": list(vector)})

            await self.client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=point_id(id), vector=list(vector), payload=payload)],
            )

        logger.debug(f"Upserted vector {id} (dimension={len(vector)})")

    async def delete(self, id: str) -> bool:
        async with self._write_lock:
            rejected = self._rejected.pop(id, None) is not None
            if self._dimension is None:
                return rejected

            existing = await self.client.retrieve(
                collection_name=self.collection_name, ids=[point_id(id)], with_payload=False
            )
            if existing:
                await self.client.delete(
                    collection_name=self.collection_name,
                    points_selector=PointIdsList(points=[point_id(id)]),
                )
        return bool(existing) or rejected

    async def delete_collection(self) -> None:
        async with self._write_lock:
            if await self.client.collection_exists(self.collection_name):
                await self.client.delete_collection(self.collection_name)
            self._dimension = None
            self._rejected.clear()
        logger.info(f"Deleted Qdrant collection '{self.collection_name}'")

    async def find_similar(
        self, query_vector: List[float], limit: int = 10, min_similarity: float = 0.0
    ) -> List[SimilarVector]:
        if self._dimension is None:
            return []

        if len(query_vector) != self._dimension:
            logger.warning(
                f"Query vector has dimension {len(query_vector)}, "
                f"collection dimension is {self._dimension}; no results"
            )
            return []

        response = await self.client.query_points(
            collection_name=self.collection_name,
            query=list(query_vector),
            limit=limit,
            score_threshold=min_similarity,
            with_payload=True,
        )

        hits = sorted(
            response.points,
            key=lambda p: (-p.score, (p.payload or {}).get("sequence", 0)),
        )
        results = []
        for hit in hits:
            payload = dict(hit.payload or {})
            record_id = payload.pop("record_id", str(hit.id))
            payload.pop("sequence", None)
            payload.pop("raw_vector", None)
            results.append(SimilarVector(id=record_id, similarity=hit.score, metadata=payload))

        logger.debug(f"{len(results)} similar vectors found (min_similarity={min_similarity})")
        return results

    async def get_vector(self, id: str) -> Optional[VectorPoint]:
        if self._dimension is None:
            return None

        result = await self.client.retrieve(
            collection_name=self.collection_name,
            ids=[point_id(id)],
            with_payload=True,
            with_vectors=True,
        )
        if not result:
            return None

        point = result[0]
        payload = dict(point.payload or {})
        payload.pop("record_id", None)
        sequence = payload.pop("sequence", 0)
        vector = payload.pop("raw_vector", point.vector)
        return VectorPoint(id=id, vector=vector, metadata=payload, sequence=sequence)

    async def _stored_count(self) -> int:
        if self._dimension is None:
            return 0
        result = await self.client.count(collection_name=self.collection_name, exact=True)
        return result.count

    async def count(self) -> int:
        return await self._stored_count() + len(self._rejected)

    async def get_health_stats(self) -> VectorStoreHealth:
        stored = await self._stored_count()
        return VectorStoreHealth(
            total_vectors=stored + len(self._rejected),
            valid_vectors=stored,
            invalid_vectors=len(self._rejected),
            dimension=self._dimension,
        )

    async def validate_vectors(self, expected_dimension: int) -> VectorValidation:
        stored = await self._stored_count()
        details = []
        invalid = 0

        if stored and self._dimension != expected_dimension:
            invalid += stored
            details.append(
                f"Collection '{self.collection_name}' holds {stored} vectors of dimension "
                f"{self._dimension}, expected {expected_dimension}"
            )

        for record_id, point in self._rejected.items():
            if len(point.vector) != expected_dimension:
                invalid += 1
                details.append(
                    f"Vector {record_id} has dimension {len(point.vector)}, "
                    f"expected {expected_dimension}"
                )

        total = stored + len(self._rejected)
        return VectorValidation(valid=total - invalid, invalid=invalid, details=details)

    async def remove_invalid_vectors(self, expected_dimension: int) -> int:
        async with self._write_lock:
            restorable = [
                p for p in self._rejected.values() if len(p.vector) == expected_dimension
            ]
            removed = len(self._rejected) - len(restorable)
            self._rejected.clear()

            if self._dimension is not None and self._dimension != expected_dimension:
                removed += await self._stored_count()
                await self.client.delete_collection(self.collection_name)
                await self._create_collection(expected_dimension)
            elif self._dimension is None:
                await self._create_collection(expected_dimension)

            if restorable:
                await self.client.upsert(collection_name=self.collection_name, points=restorable)

        if removed:
            logger.warning(f"Removed {removed} vectors with dimension != {expected_dimension}")
        return removed
