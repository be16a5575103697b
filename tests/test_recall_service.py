"""
Tests for RecallService.

Uses in-memory stores and a mocked embedding provider.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from bridge_recall.config import RecallSettings
from bridge_recall.recall_service import RecallService
from bridge_recall.storage.records import InMemoryRecordStore
from bridge_recall.storage.vector import InMemoryVectorStore


@pytest.fixture
def mock_embedding():
    embedding = Mock()
    embedding.dimension = 3
    embedding.model_name = "test-embedder"
    embedding.embed_document = AsyncMock(return_value=[0.0, 1.0, 0.0])
    embedding.embed_query = AsyncMock(return_value=[0.0, 1.0, 0.0])
    return embedding


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def service(record_store, vector_store, mock_embedding):
    return RecallService(record_store, vector_store, embedding=mock_embedding)


@pytest.mark.asyncio
async def test_remember_embeds_and_indexes(service, record_store, vector_store, mock_embedding, make_record):
    """A record without an embedding is embedded, saved and indexed."""
    stored = await service.remember(make_record(id="r1", text="Harbour at dusk"))

    mock_embedding.embed_document.assert_called_once_with("Harbour at dusk")
    assert stored.semantic_embedding == [0.0, 1.0, 0.0]
    assert (await record_store.get_record("r1")).semantic_embedding == [0.0, 1.0, 0.0]

    point = await vector_store.get_vector("r1")
    assert point.vector == [0.0, 1.0, 0.0]
    assert point.metadata["type"] == "experience"


@pytest.mark.asyncio
async def test_remember_keeps_existing_embedding(service, vector_store, mock_embedding, make_record):
    await service.remember(make_record(id="r1", semantic_embedding=[1.0, 0.0, 0.0]))

    mock_embedding.embed_document.assert_not_called()
    assert (await vector_store.get_vector("r1")).vector == [1.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_remember_without_embedder_skips_index(record_store, vector_store, make_record):
    service = RecallService(record_store, vector_store)

    await service.remember(make_record(id="r1"))

    assert await record_store.get_record("r1") is not None
    assert await vector_store.count() == 0


@pytest.mark.asyncio
async def test_remember_propagates_store_errors(vector_store, make_record):
    failing_store = Mock()
    failing_store.save_record = AsyncMock(side_effect=OSError("disk full"))
    service = RecallService(failing_store, vector_store)

    with pytest.raises(OSError):
        await service.remember(make_record(id="r1", semantic_embedding=[1.0, 0.0]))

    assert await vector_store.count() == 0


@pytest.mark.asyncio
async def test_reindex(vector_store, mock_embedding, make_record):
    record_store = InMemoryRecordStore(
        [
            make_record(id="r1", semantic_embedding=[1.0, 0.0, 0.0]),
            make_record(id="r2"),
        ]
    )
    service = RecallService(record_store, vector_store, embedding=mock_embedding)

    indexed = await service.reindex()

    assert indexed == 2
    assert await vector_store.count() == 2
    assert (await record_store.get_record("r2")).semantic_embedding == [0.0, 1.0, 0.0]


@pytest.mark.asyncio
async def test_status(service, make_record):
    await service.remember(make_record(id="r1"))

    status = await service.status()

    assert status["records"] == 1
    assert status["embedded_records"] == 1
    assert status["vector_store"]["total_vectors"] == 1
    assert status["vector_store"]["dimension"] == 3
    assert status["embedding_model"] == "test-embedder"


@pytest.mark.asyncio
async def test_search_delegates_to_pipeline(service, make_record):
    await service.remember(make_record(id="r1", text="Harbour at dusk"))
    await service.remember(make_record(id="r2", text="Office meeting"))

    response = await service.search({"query": "harbour"})

    assert [r.id for r in response.results] == ["r1"]
    assert response.total == 1


@pytest.mark.asyncio
async def test_cluster_stored_records(service, make_record):
    await service.remember(make_record(id="r1", qualities=["mood.open"]))
    await service.remember(make_record(id="r2", qualities=["mood.open"]))

    result = await service.cluster()

    assert result.statistics.total_records == 2
    assert result.clusters[0].member_ids == ["r1", "r2"]


@pytest.mark.asyncio
async def test_debug_settings_attach_diagnostics(record_store, vector_store, make_record):
    service = RecallService(record_store, vector_store, settings=RecallSettings(debug=True))
    await service.remember(make_record(id="r1"))

    response = await service.search({})

    assert response.diagnostics is not None
    assert response.diagnostics.total_records == 1
