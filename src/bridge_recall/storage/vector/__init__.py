"""
Vector store implementations.

- InMemoryVectorStore: in-process, no persistence
- JSONVectorStore: in-process with atomic JSON file persistence
- QdrantVectorStore: remote Qdrant collection (requires the `qdrant` extra)
"""

import logging

from bridge_recall.config import VectorStoreSettings
from bridge_recall.storage.vector.json_store import JSONVectorStore
from bridge_recall.storage.vector.memory import InMemoryVectorStore
from bridge_recall.storage.vector.models import (
    SimilarVector,
    VectorPoint,
    VectorStoreHealth,
    VectorValidation,
)

logger = logging.getLogger(__name__)

__all__ = [
    "InMemoryVectorStore",
    "JSONVectorStore",
    "SimilarVector",
    "VectorPoint",
    "VectorStoreHealth",
    "VectorValidation",
    "create_vector_store",
]

try:
    from bridge_recall.storage.vector.qdrant import QdrantVectorStore  # noqa: F401

    __all__.append("QdrantVectorStore")
except ImportError:
    pass


def create_vector_store(settings: VectorStoreSettings):
    """
    Build the vector store selected by configuration.

    Raises:
        ValueError: If the backend name is not recognised
    """
    logger.info(f"Creating vector store (backend={settings.backend})")

    if settings.backend == "memory":
        return InMemoryVectorStore()
    if settings.backend == "json":
        return JSONVectorStore(settings.json_path)
    if settings.backend == "qdrant":
        from bridge_recall.storage.vector.qdrant import QdrantVectorStore

        return QdrantVectorStore(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            collection_name=settings.qdrant_collection,
        )

    raise ValueError(f"Unknown vector store backend: {settings.backend}")
