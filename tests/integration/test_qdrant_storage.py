"""Integration tests for the Qdrant vector store against a running server."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from bridge_recall.models import ExperienceRecord, RecallQuery
from bridge_recall.recall_service import RecallService
from bridge_recall.storage.records import InMemoryRecordStore


@pytest.fixture
def qdrant_store(skip_if_no_qdrant):
    pytest.importorskip("qdrant_client")
    from bridge_recall.storage.vector.qdrant import QdrantVectorStore

    return QdrantVectorStore(collection_name=f"test_collection_{uuid4().hex[:8]}")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_qdrant_upsert_and_search(qdrant_store):
    """Vectors round-trip through a real collection."""
    await qdrant_store.initialize()

    try:
        await qdrant_store.upsert("rec-1", [1.0, 0.0, 0.0], {"type": "experience"})
        await qdrant_store.upsert("rec-2", [0.0, 1.0, 0.0], {"type": "experience"})

        results = await qdrant_store.find_similar([0.9, 0.1, 0.0], limit=5, min_similarity=0.5)

        assert [r.id for r in results] == ["rec-1"]
        assert results[0].metadata["type"] == "experience"
        assert await qdrant_store.count() == 2

    finally:
        await qdrant_store.delete_collection()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_qdrant_semantic_recall(qdrant_store):
    """A semantic query through the service finds records indexed in Qdrant."""
    embedding = Mock()
    embedding.dimension = 3
    embedding.model_name = "test-embedder"
    embedding.embed_query = AsyncMock(return_value=[1.0, 0.0, 0.0])
    embedding.embed_document = AsyncMock(return_value=[0.0, 0.0, 1.0])

    service = RecallService(InMemoryRecordStore(), qdrant_store, embedding=embedding)
    await qdrant_store.initialize()

    try:
        created = datetime(2024, 1, 15, tzinfo=timezone.utc)
        await service.remember(
            ExperienceRecord(
                id="harbour", text="Harbour at dusk", created_at=created,
                semantic_embedding=[1.0, 0.0, 0.0],
            )
        )
        await service.remember(
            ExperienceRecord(id="office", text="Office meeting", created_at=created)
        )

        response = await service.search(RecallQuery(semantic_query="evening by the water"))

        assert [r.id for r in response.results] == ["harbour"]

    finally:
        await qdrant_store.delete_collection()
