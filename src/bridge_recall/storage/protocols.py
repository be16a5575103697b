"""
Storage protocol definitions for experience records and their embeddings.

These protocols define the interface that storage implementations must provide.
They are implementation-agnostic and can be backed by various stores
(Qdrant, JSON files, in-memory, etc.).
"""

from typing import Any, Dict, List, Optional, Protocol

from bridge_recall.models import ExperienceRecord
from bridge_recall.storage.vector.models import (
    SimilarVector,
    VectorPoint,
    VectorStoreHealth,
    VectorValidation,
)


class VectorStore(Protocol):
    """
    Protocol for embedding vector storage.

    A store has a single working dimensionality: the first vector it accepts
    fixes it, and vectors of any other length are flagged invalid and left out
    of similarity search until removed with `remove_invalid_vectors`.

    Writers (`upsert`, `delete`, `remove_invalid_vectors`) are serialized per
    store instance; readers see either the state before or after a write.
    """

    async def initialize(self) -> None:
        """Prepare the store (load files, connect, etc.)."""
        ...

    async def upsert(
        self, id: str, vector: List[float], metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Insert or replace the vector for a record.

        Args:
            id: Record ID
            vector: Embedding vector (non-empty, finite values)
            metadata: Optional payload stored alongside the vector

        Raises:
            ValueError: If the ID is empty or the vector is empty or non-finite
        """
        ...

    async def delete(self, id: str) -> bool:
        """
        Delete the vector for a record.

        Returns:
            True if a vector was deleted, False if none was stored
        """
        ...

    async def delete_collection(self) -> None:
        """Delete every stored vector and reset the working dimensionality."""
        ...

    async def find_similar(
        self, query_vector: List[float], limit: int = 10, min_similarity: float = 0.0
    ) -> List[SimilarVector]:
        """
        Find the nearest stored vectors by cosine similarity.

        Args:
            query_vector: Vector to compare against
            limit: Maximum number of results
            min_similarity: Minimum cosine similarity to include

        Returns:
            Hits sorted by similarity descending, ties in insertion order.
            An empty store, or a query whose length differs from the working
            dimensionality, gives an empty list.
        """
        ...

    async def get_vector(self, id: str) -> Optional[VectorPoint]:
        """Retrieve a stored vector by record ID."""
        ...

    async def count(self) -> int:
        """Number of stored vectors, valid or not."""
        ...

    async def get_health_stats(self) -> VectorStoreHealth:
        """Vector counts relative to the working dimensionality."""
        ...

    async def validate_vectors(self, expected_dimension: int) -> VectorValidation:
        """
        Check stored vectors against an expected dimensionality.

        Returns:
            Counts of valid and invalid vectors, with one detail line per invalid vector
        """
        ...

    async def remove_invalid_vectors(self, expected_dimension: int) -> int:
        """
        Remove vectors whose length differs from the expected dimensionality.

        The expected dimensionality becomes the working dimensionality.

        Returns:
            Number of vectors removed
        """
        ...


class RecordStore(Protocol):
    """
    Protocol for experience record persistence.

    Pure CRUD: the recall pipeline loads every record and does its own
    filtering, so no query capability is assumed.
    """

    async def get_all_records(self) -> List[ExperienceRecord]:
        """
        Load every stored record.

        Returns:
            Records in storage order (the order they were first saved)
        """
        ...

    async def save_record(self, record: ExperienceRecord) -> None:
        """Insert a record, or replace the record with the same ID in place."""
        ...

    async def get_record(self, id: str) -> Optional[ExperienceRecord]:
        """Retrieve a record by ID, None if not found."""
        ...
