"""
Storage protocols and implementations for records and embeddings.

Provides protocol definitions for storage backends. Implementations can use
various stores (Qdrant, JSON files, in-memory, etc.) as long as they satisfy
the protocol interface.
"""

from bridge_recall.storage.protocols import RecordStore, VectorStore
from bridge_recall.storage.records import InMemoryRecordStore, JSONRecordStore
from bridge_recall.storage.vector import (
    InMemoryVectorStore,
    JSONVectorStore,
    create_vector_store,
)

__all__ = [
    "RecordStore",
    "VectorStore",
    "InMemoryRecordStore",
    "JSONRecordStore",
    "InMemoryVectorStore",
    "JSONVectorStore",
    "create_vector_store",
]

try:
    from bridge_recall.storage.vector.qdrant import QdrantVectorStore  # noqa: F401

    __all__.append("QdrantVectorStore")
except ImportError:
    pass
